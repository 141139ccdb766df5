"""Tests for the package store."""

from pathlib import Path

import pytest

from pkgrater.costs.identity import package_id
from pkgrater.costs.store import PackageStore, UnknownPackageError
from pkgrater.models.schemas import MetricScore, PackageOrigin, ScoreRecord


class TestPackageStore:
    """Tests for PackageStore."""

    def test_register_and_get(self, store: PackageStore) -> None:
        """Registered packages are retrievable by id."""
        record = store.register("lodash", "4.17.21", {"dep": "^1"}, standalone_cost=0.5)
        assert record.id == package_id("lodash", "4.17.21")
        assert store.get(record.id) == record
        assert store.get_dependencies(record.id) == {"dep": "^1"}
        assert store.get_standalone_cost(record.id) == 0.5
        assert len(store) == 1

    def test_unknown_id(self, store: PackageStore) -> None:
        """Unknown ids raise UnknownPackageError."""
        with pytest.raises(UnknownPackageError) as exc_info:
            store.get("0000000000000000")
        assert exc_info.value.package_id == "0000000000000000"
        assert store.find("0000000000000000") is None
        assert not store.contains("0000000000000000")

    def test_versions(self, store: PackageStore) -> None:
        """Versions are indexed by name."""
        a = store.register("react", "18.2.0")
        b = store.register("react", "18.3.1")
        assert store.versions("react") == {"18.2.0": a.id, "18.3.1": b.id}
        assert store.versions("vue") == {}

    def test_set_standalone_cost_and_score(self, store: PackageStore) -> None:
        """Sizes and scores update the stored record."""
        record = store.register("react", "18.2.0")
        store.set_standalone_cost(record.id, 1.25)
        score = ScoreRecord(
            metrics={"License": MetricScore(value=1.0, latency_seconds=0.1)},
            net_score=0.2,
            net_score_latency=0.1,
        )
        store.update_score(record.id, score)
        updated = store.get(record.id)
        assert updated.standalone_cost == 1.25
        assert updated.score == score

    def test_search(self, store: PackageStore) -> None:
        """Search filters by name and constraint, sorted by version."""
        store.register("react", "18.3.1")
        store.register("react", "17.0.2")
        store.register("react", "18.2.0")
        store.register("vue", "3.4.0")

        assert [r.version for r in store.search("react", "^18")] == ["18.2.0", "18.3.1"]
        assert [r.name for r in store.search("*")] == ["react", "react", "react", "vue"]
        assert store.search("angular") == []

    def test_search_excludes_registry_packages(self, store: PackageStore) -> None:
        """Packages discovered during resolution are hidden unless asked for."""
        store.register("react", "18.2.0")
        store.register("loose-envify", "1.4.0", origin=PackageOrigin.REGISTRY)
        assert [r.name for r in store.search("*")] == ["react"]
        assert len(store.search("*", include_registry=True)) == 2

    def test_reset(self, store: PackageStore) -> None:
        """Reset removes every package."""
        store.register("react", "18.2.0")
        store.reset()
        assert len(store) == 0
        assert store.versions("react") == {}


class TestPackageStorePersistence:
    """Tests for JSON persistence."""

    def test_round_trip(self, tmp_path: Path) -> None:
        """A new store loads what a previous one saved."""
        path = tmp_path / "packages.json"
        record = PackageStore(path).register("lodash", "4.17.21", {"a": "1.0.0"}, standalone_cost=0.3)

        reloaded = PackageStore(path)
        assert reloaded.get(record.id).dependencies == {"a": "1.0.0"}
        assert reloaded.versions("lodash") == {"4.17.21": record.id}

    def test_corrupt_file(self, tmp_path: Path) -> None:
        """An unreadable file starts an empty store."""
        path = tmp_path / "packages.json"
        path.write_text("{not json")
        assert len(PackageStore(path)) == 0
