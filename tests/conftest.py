"""Shared pytest fixtures for pkgrater tests."""

import asyncio
import json
from collections.abc import Callable

import httpx
import pytest

from pkgrater.costs.aggregator import CostAggregator
from pkgrater.costs.cache import InMemoryCostCache
from pkgrater.costs.resolver import DependencyResolver
from pkgrater.costs.sizing import SizingError
from pkgrater.costs.store import PackageStore
from pkgrater.models.schemas import PackageRecord


@pytest.fixture
def anyio_backend() -> str:
    """Run async tests on asyncio only."""
    return "asyncio"


class FakeSizer:
    """Sizer returning fixed sizes by package name, counting every call."""

    def __init__(self, sizes: dict[str, float] | None = None, gate: asyncio.Event | None = None) -> None:
        self.sizes = sizes or {}
        self.gate = gate
        self.calls: list[str] = []

    async def measure(self, record: PackageRecord) -> float:
        self.calls.append(record.name)
        if self.gate is not None:
            await self.gate.wait()
        if record.name not in self.sizes:
            raise SizingError(record.id, f"no tarball for {record.name}")
        return self.sizes[record.name]


@pytest.fixture
def store() -> PackageStore:
    """Create an in-memory package store."""
    return PackageStore()


@pytest.fixture
def cache() -> InMemoryCostCache:
    """Create an in-memory cost cache."""
    return InMemoryCostCache()


@pytest.fixture
def sizer() -> FakeSizer:
    """Create a sizer with no known packages."""
    return FakeSizer()


@pytest.fixture
def aggregator(store: PackageStore, cache: InMemoryCostCache, sizer: FakeSizer) -> CostAggregator:
    """Create an aggregator resolving only against the store."""
    return CostAggregator(store, cache, DependencyResolver(store), sizer=sizer)


def npm_document(name: str, versions: dict[str, dict], latest: str | None = None) -> dict:
    """Build a registry document like https://registry.npmjs.org/{name} returns."""
    return {
        "name": name,
        "dist-tags": {"latest": latest or list(versions)[-1]},
        "versions": {
            version: {
                "name": name,
                "version": version,
                "dependencies": data.get("dependencies", {}),
                "license": data.get("license", "MIT"),
                "repository": data.get("repository", {"type": "git", "url": f"git+https://github.com/{name}/{name}.git"}),
                "dist": {"tarball": f"https://registry.npmjs.org/{name}/-/{name}-{version}.tgz"},
            }
            for version, data in versions.items()
        },
    }


def json_router(routes: dict[str, object], default_status: int = 404) -> Callable[[httpx.Request], httpx.Response]:
    """Build a MockTransport handler answering JSON by request path.

    Values that are ``httpx.Response`` instances are returned as-is.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.raw_path.decode().split("?")[0]
        if path in routes:
            body = routes[path]
            if isinstance(body, httpx.Response):
                return body
            return httpx.Response(200, content=json.dumps(body).encode(), headers={"Content-Type": "application/json"})
        return httpx.Response(default_status, json={"message": "Not Found"})

    return handler
