"""Tests for dependency constraint resolution."""

import httpx
import pytest
from conftest import json_router, npm_document

from pkgrater.adapters.npm import NpmAdapter
from pkgrater.costs.identity import package_id
from pkgrater.costs.resolver import DependencyResolver, Resolved, Unresolved
from pkgrater.costs.store import PackageStore
from pkgrater.models.schemas import PackageOrigin


def registry_adapter(routes: dict) -> NpmAdapter:
    return NpmAdapter(client=httpx.AsyncClient(transport=httpx.MockTransport(json_router(routes))))


class TestStoreResolution:
    """Tests for resolving against the package store."""

    @pytest.mark.anyio
    async def test_highest_matching_version(self, store: PackageStore) -> None:
        """The highest stored version satisfying the constraint wins."""
        store.register("chalk", "4.1.0")
        best = store.register("chalk", "4.1.2")
        store.register("chalk", "5.0.0")

        resolution = await DependencyResolver(store).resolve("chalk", "^4")
        assert resolution == Resolved(package_id=best.id, name="chalk", version="4.1.2")

    @pytest.mark.anyio
    async def test_no_match_without_adapter(self, store: PackageStore) -> None:
        """Without a registry, an unmatched constraint is unresolved."""
        resolution = await DependencyResolver(store).resolve("chalk", "^4")
        assert isinstance(resolution, Unresolved)
        assert resolution.constraint == "^4"


class TestRegistryResolution:
    """Tests for falling back to the npm registry."""

    @pytest.mark.anyio
    async def test_records_registry_package(self, store: PackageStore) -> None:
        """A registry match is recorded in the store with unknown size."""
        adapter = registry_adapter({
            "/ms": npm_document("ms", {"2.0.0": {}, "2.1.3": {"dependencies": {"x": "1.0.0"}}, "3.0.0": {}}),
        })
        resolution = await DependencyResolver(store, adapter).resolve("ms", "^2.0.0")

        assert resolution == Resolved(package_id=package_id("ms", "2.1.3"), name="ms", version="2.1.3")
        record = store.get(resolution.package_id)
        assert record.origin == PackageOrigin.REGISTRY
        assert record.standalone_cost is None
        assert record.dependencies == {"x": "1.0.0"}

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "constraint, expected",
        [(">=2.0.0 <3.0.0", "2.1.3"), ("2.x", "2.1.3"), (">=1.0.0", "3.0.0"), ("^1 || ^2", "2.1.3")],
    )
    async def test_npm_ranges(self, store: PackageStore, constraint: str, expected: str) -> None:
        """Registry versions are chosen with npm range semantics."""
        adapter = registry_adapter({"/ms": npm_document("ms", {"2.0.0": {}, "2.1.3": {}, "3.0.0": {}})})
        resolution = await DependencyResolver(store, adapter).resolve("ms", constraint)

        assert resolution == Resolved(package_id=package_id("ms", expected), name="ms", version=expected)
        assert store.get(resolution.package_id).origin == PackageOrigin.REGISTRY

    @pytest.mark.anyio
    async def test_store_wins_over_registry(self, store: PackageStore) -> None:
        """Stored versions are used without asking the registry."""
        local = store.register("ms", "2.0.0")

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("registry should not be queried")

        adapter = NpmAdapter(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        resolution = await DependencyResolver(store, adapter).resolve("ms", "^2")
        assert resolution.package_id == local.id

    @pytest.mark.anyio
    async def test_unknown_package(self, store: PackageStore) -> None:
        """A package the registry does not know is unresolved."""
        resolution = await DependencyResolver(store, registry_adapter({})).resolve("nope", "*")
        assert isinstance(resolution, Unresolved)

    @pytest.mark.anyio
    async def test_no_matching_version(self, store: PackageStore) -> None:
        """No published version satisfying the constraint is unresolved."""
        adapter = registry_adapter({"/ms": npm_document("ms", {"2.1.3": {}})})
        resolution = await DependencyResolver(store, adapter).resolve("ms", "^3")
        assert isinstance(resolution, Unresolved)

    @pytest.mark.anyio
    async def test_registry_error(self, store: PackageStore) -> None:
        """Server errors are unresolved rather than raised."""
        adapter = NpmAdapter(
            client=httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
        )
        resolution = await DependencyResolver(store, adapter).resolve("ms", "*")
        assert isinstance(resolution, Unresolved)
        assert "registry error" in resolution.reason
