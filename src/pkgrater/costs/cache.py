"""Dependency cost cache with single-flight computation."""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from pathlib import Path

from pkgrater.models.schemas import CostRecord

logger = logging.getLogger(__name__)


class CostCache(ABC):
    """Key-value store of cost records keyed by package id.

    Subclasses provide storage; this base class provides the single-flight
    ``get_or_compute`` primitive. Only one computation per package id is in
    flight at a time, and concurrent callers for the same id await the same
    task instead of repeating the work.
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Task[CostRecord]] = {}
        self._loading: dict[str, asyncio.Task[CostRecord]] = {}

    @abstractmethod
    def get(self, package_id: str) -> CostRecord | None:
        """Return the cached record for a package id, if any."""
        ...

    @abstractmethod
    def put(self, record: CostRecord) -> None:
        """Store a record under its package id."""
        ...

    @abstractmethod
    def records(self) -> list[CostRecord]:
        """Return every cached record."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Drop every cached record."""
        ...

    def reset(self) -> None:
        """Explicit external reset. In-flight computations and loads are left to finish."""
        self.clear()
        logger.info("Cost cache reset")

    def is_in_flight(self, package_id: str) -> bool:
        return package_id in self._in_flight

    async def get_or_compute(
        self,
        package_id: str,
        compute: Callable[[], Awaitable[CostRecord]],
    ) -> CostRecord:
        """Return a completed record, computing it at most once at a time.

        The check for a completed record and the registration of a new
        in-flight task happen without yielding to the event loop, so two
        concurrent callers can never both start a computation for the same
        id. The task is shielded: a caller that stops waiting does not cancel
        it, and its result is still written to the cache.

        Args:
            package_id: Cache key.
            compute: Coroutine factory producing the record. Only called when
                no completed record and no in-flight task exist.

        Returns:
            The record produced by the (possibly shared) computation.
        """
        record = self.get(package_id)
        if record is not None and record.is_completed:
            return record

        task = self._in_flight.get(package_id)
        if task is None:
            task = asyncio.ensure_future(compute())
            self._in_flight[package_id] = task
            task.add_done_callback(functools.partial(self._finish, package_id))
        else:
            logger.debug(f"Awaiting in-flight cost calculation for {package_id}")

        return await asyncio.shield(task)

    async def get_or_load(
        self,
        package_id: str,
        load: Callable[[], Awaitable[CostRecord]],
    ) -> CostRecord:
        """Return the cached record of a package, loading it at most once at a time.

        Used for every node of a traversal. Any cached record (pending,
        completed or failed) is returned as is; otherwise one load per id is
        in flight and concurrent traversals reaching the same package await
        it. Loads are tracked apart from ``get_or_compute`` so a computation
        can load its own root.

        Args:
            package_id: Cache key.
            load: Coroutine factory that builds the record and writes it to
                the cache.
        """
        record = self.get(package_id)
        if record is not None:
            return record

        task = self._loading.get(package_id)
        if task is None:
            task = asyncio.ensure_future(load())
            self._loading[package_id] = task
            task.add_done_callback(functools.partial(self._finish_load, package_id))
        else:
            logger.debug(f"Awaiting in-flight load of {package_id}")

        return await asyncio.shield(task)

    def _finish_load(self, package_id: str, task: asyncio.Task[CostRecord]) -> None:
        if self._loading.get(package_id) is task:
            del self._loading[package_id]

    def _finish(self, package_id: str, task: asyncio.Task[CostRecord]) -> None:
        if self._in_flight.get(package_id) is task:
            del self._in_flight[package_id]
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Cost calculation for {package_id} raised {task.exception()!r}")


class InMemoryCostCache(CostCache):
    """Cost cache held in a dict."""

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.Lock()
        self._records: dict[str, CostRecord] = {}

    def get(self, package_id: str) -> CostRecord | None:
        with self._lock:
            return self._records.get(package_id)

    def put(self, record: CostRecord) -> None:
        with self._lock:
            self._records[record.package_id] = record
            self._save()

    def records(self) -> list[CostRecord]:
        with self._lock:
            return list(self._records.values())

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._save()

    def _save(self) -> None:
        """Persist records (must be called with lock held). No-op in memory."""


class JsonCostCache(InMemoryCostCache):
    """Cost cache persisted to a JSON file after every write."""

    def __init__(self, path: Path) -> None:
        """Initialize the cache.

        Args:
            path: JSON file to load from and persist to.
        """
        super().__init__()
        self.path = path
        if path.exists():
            self._load()

    def _load(self) -> None:
        try:
            data = json.loads(self.path.read_text())
            for item in data.get("records", []):
                record = CostRecord.model_validate(item)
                self._records[record.package_id] = record
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Could not parse {self.path}, starting empty: {e}")
            self._records.clear()

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {"records": [record.model_dump(mode="json") for record in self._records.values()]}
        self.path.write_text(json.dumps(data, indent=2))
