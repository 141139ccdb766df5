"""Package metadata store."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

from pkgrater.costs import identity
from pkgrater.costs.versions import is_version_match, version_key
from pkgrater.models.schemas import PackageOrigin, PackageRecord, ScoreRecord

logger = logging.getLogger(__name__)


class UnknownPackageError(LookupError):
    """Raised when a package id is not present in the store."""

    def __init__(self, package_id: str) -> None:
        self.package_id = package_id
        super().__init__(f"Package {package_id} does not exist")


class PackageExistsError(ValueError):
    """Raised when registering a package version that is already stored."""

    def __init__(self, name: str, version: str, package_id: str) -> None:
        self.name = name
        self.version = version
        self.package_id = package_id
        super().__init__(f"Package {name}@{version} already exists as {package_id}")


class PackageStore:
    """Package versions indexed by id and by name.

    Holds both packages registered by clients and packages discovered in
    the registry while resolving dependencies. When a path is given the
    store is persisted as JSON after every mutation.

    Usage:
        store = PackageStore(Path("data/packages.json"))
        record = store.register("lodash", "4.17.21", standalone_cost=0.3)
        store.versions("lodash")  # {"4.17.21": record.id}
    """

    def __init__(self, path: Path | None = None) -> None:
        """Initialize the store.

        Args:
            path: JSON file to load from and persist to. In-memory if None.
        """
        self.path = path
        self._lock = threading.Lock()
        self._by_id: dict[str, PackageRecord] = {}
        self._by_name: dict[str, dict[str, str]] = {}  # name -> {version: id}

        if path is not None and path.exists():
            self._load()

    def _load(self) -> None:
        try:
            data = json.loads(self.path.read_text())
            for item in data.get("packages", []):
                self._index(PackageRecord.model_validate(item))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Could not parse {self.path}, starting empty: {e}")
            self._by_id.clear()
            self._by_name.clear()

    def _save(self) -> None:
        """Persist the store (must be called with lock held)."""
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {"packages": [record.model_dump(mode="json") for record in self._by_id.values()]}
        self.path.write_text(json.dumps(data, indent=2))

    def _index(self, record: PackageRecord) -> None:
        self._by_id[record.id] = record
        self._by_name.setdefault(record.name, {})[record.version] = record.id

    def add(self, record: PackageRecord) -> PackageRecord:
        """Insert or replace a package record."""
        with self._lock:
            self._index(record)
            self._save()
        return record

    def register(
        self,
        name: str,
        version: str,
        dependencies: dict[str, str] | None = None,
        standalone_cost: float | None = None,
        origin: PackageOrigin = PackageOrigin.UPLOADED,
        url: str | None = None,
    ) -> PackageRecord:
        """Create and store a record for ``name@version``."""
        record = PackageRecord(
            id=identity.package_id(name, version),
            name=name,
            version=version,
            dependencies=dependencies or {},
            standalone_cost=standalone_cost,
            origin=origin,
            url=url,
        )
        return self.add(record)

    def find(self, package_id: str) -> PackageRecord | None:
        with self._lock:
            return self._by_id.get(package_id)

    def get(self, package_id: str) -> PackageRecord:
        """Return the record for an id.

        Raises:
            UnknownPackageError: If the id is not in the store.
        """
        record = self.find(package_id)
        if record is None:
            raise UnknownPackageError(package_id)
        return record

    def contains(self, package_id: str) -> bool:
        with self._lock:
            return package_id in self._by_id

    def versions(self, name: str) -> dict[str, str]:
        """Return ``{version: id}`` for every known version of a package."""
        with self._lock:
            return dict(self._by_name.get(name, {}))

    def get_dependencies(self, package_id: str) -> dict[str, str]:
        return dict(self.get(package_id).dependencies)

    def get_standalone_cost(self, package_id: str) -> float | None:
        """Return the standalone size in MB, or None if not measured yet."""
        return self.get(package_id).standalone_cost

    def set_standalone_cost(self, package_id: str, cost: float) -> PackageRecord:
        record = self.get(package_id).model_copy(update={"standalone_cost": cost})
        return self.add(record)

    def update_score(self, package_id: str, score: ScoreRecord) -> PackageRecord:
        record = self.get(package_id).model_copy(update={"score": score})
        return self.add(record)

    def search(
        self,
        name: str,
        constraint: str = "*",
        include_registry: bool = False,
    ) -> list[PackageRecord]:
        """Find package versions by name and version constraint.

        Args:
            name: Package name, or ``*`` for every package.
            constraint: Version constraint (exact, ``^``, ``~``, range or wildcard).
            include_registry: Also return packages discovered during resolution.

        Returns:
            Matching records sorted by name, then version.
        """
        with self._lock:
            records = list(self._by_id.values())

        results = [
            record
            for record in records
            if (name == "*" or record.name == name)
            and (include_registry or record.origin == PackageOrigin.UPLOADED)
            and is_version_match(record.version, constraint)
        ]
        results.sort(key=lambda r: (r.name, version_key(r.version)))
        return results

    def all(self) -> list[PackageRecord]:
        with self._lock:
            return list(self._by_id.values())

    def reset(self) -> None:
        """Remove every package."""
        with self._lock:
            self._by_id.clear()
            self._by_name.clear()
            self._save()

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)
