"""Total dependency cost aggregation."""

from __future__ import annotations

import logging
import math
import time
from collections import deque

from pkgrater.costs.cache import CostCache
from pkgrater.costs.resolver import DependencyResolver, Unresolved
from pkgrater.costs.sizing import Sizer, SizingError
from pkgrater.costs.store import PackageStore, UnknownPackageError
from pkgrater.models.schemas import CostEntry, CostRecord, CostStatus
from pkgrater.monitoring.metrics import MetricsCollector

logger = logging.getLogger(__name__)


class CostCalculationError(Exception):
    """Raised when the requested package cannot be costed."""

    def __init__(self, package_id: str, reason: str) -> None:
        self.package_id = package_id
        self.reason = reason
        super().__init__(f"Cost calculation failed for package {package_id}: {reason}")


class CostAggregator:
    """Computes the total size of a package and its transitive dependencies.

    The total cost of a package is its standalone cost plus the standalone
    cost of every distinct package reachable through its dependencies, each
    counted once however many paths lead to it. Cycles are broken by a
    visited map created fresh for every top-level calculation.

    Intermediate packages are written back as completed only when their
    total is exact, i.e. their sub-traversal never had to skip a package
    that was visited before them. Packages inside a cycle opened by an
    ancestor stay pending and are computed on their own when requested.

    Usage:
        aggregator = CostAggregator(store, InMemoryCostCache(), DependencyResolver(store))
        record = await aggregator.get_total_cost(package_id)
        record.total_cost  # MB
    """

    def __init__(
        self,
        store: PackageStore,
        cache: CostCache,
        resolver: DependencyResolver,
        sizer: Sizer | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.resolver = resolver
        self.sizer = sizer
        self.metrics = metrics

    async def get_total_cost(self, package_id: str) -> CostRecord:
        """Return the completed cost record of a package.

        A completed cache entry is returned without any traversal. Otherwise
        the calculation runs at most once at a time per package id and
        concurrent callers share its result.

        Args:
            package_id: Id of the package to cost.

        Returns:
            A completed CostRecord.

        Raises:
            UnknownPackageError: If the package is neither cached nor stored.
            CostCalculationError: If the package itself cannot be costed.
        """
        cached = self.cache.get(package_id)
        if cached is not None:
            if cached.is_completed:
                if self.metrics:
                    self.metrics.record_cache_hit()
                return cached
            if cached.is_failed:
                raise CostCalculationError(package_id, cached.error or "previous calculation failed")
        elif not self.store.contains(package_id):
            raise UnknownPackageError(package_id)

        record = await self.cache.get_or_compute(package_id, lambda: self._calculate(package_id))
        if record.is_failed:
            raise CostCalculationError(package_id, record.error or "calculation failed")
        return record

    async def get_cost_closure(self, package_id: str) -> dict[str, CostEntry]:
        """Return the cost of a package and of every package in its closure.

        Each entry carries that package's own standalone and exact total
        cost. Dependencies that could not be costed are left out.

        Raises:
            UnknownPackageError: If the package is neither cached nor stored.
            CostCalculationError: If the requested package itself failed.
        """
        root = await self.get_total_cost(package_id)
        entries = {package_id: self._entry(root)}

        queue = deque(root.dependency_ids)
        seen = {package_id, *root.dependency_ids}
        while queue:
            dep_id = queue.popleft()
            try:
                record = await self.get_total_cost(dep_id)
            except (CostCalculationError, UnknownPackageError) as e:
                logger.warning(f"Leaving {dep_id} out of the cost of {package_id}: {e}")
                continue

            entries[dep_id] = self._entry(record)
            for next_id in record.dependency_ids:
                if next_id not in seen:
                    seen.add(next_id)
                    queue.append(next_id)

        return entries

    @staticmethod
    def _entry(record: CostRecord) -> CostEntry:
        return CostEntry(standalone_cost=record.standalone_cost, total_cost=record.total_cost)

    async def _calculate(self, package_id: str) -> CostRecord:
        start_time = time.perf_counter()
        visited: dict[str, int] = {}

        record, _, _ = await self._visit(package_id, visited)
        duration = time.perf_counter() - start_time

        if record.is_failed:
            logger.error(f"Cost calculation for {package_id} failed: {record.error}")
            if self.metrics:
                self.metrics.record_cost(completed=False)
            return record

        logger.info(
            f"Total cost of {package_id} is {record.total_cost:.3f} MB "
            f"({len(visited)} packages, {duration:.2f}s)"
        )
        if self.metrics:
            self.metrics.record_cost(completed=True, duration=duration)
        return record

    async def _visit(
        self,
        package_id: str,
        visited: dict[str, int],
    ) -> tuple[CostRecord, float, float]:
        """Depth-first cost of the packages first reached through ``package_id``.

        Returns:
            The package's record, the summed standalone cost of every package
            newly visited in its sub-traversal (itself included), and the
            lowest visit order among the already-visited packages it skipped.
        """
        order = len(visited)
        visited[package_id] = order

        record = await self.cache.get_or_load(package_id, lambda: self._load(package_id))
        if record.is_failed:
            return record, 0.0, math.inf

        subtotal = record.standalone_cost
        lowest_skipped = math.inf
        for dep_id in record.dependency_ids:
            if dep_id in visited:
                lowest_skipped = min(lowest_skipped, visited[dep_id])
                continue
            _, dep_total, dep_lowest = await self._visit(dep_id, visited)
            subtotal += dep_total
            lowest_skipped = min(lowest_skipped, dep_lowest)

        if lowest_skipped >= order and not record.is_completed:
            record = CostRecord(
                package_id=record.package_id,
                standalone_cost=record.standalone_cost,
                total_cost=subtotal,
                dependencies=record.dependencies,
                dependency_ids=record.dependency_ids,
                cost_status=CostStatus.COMPLETED,
            )
            self.cache.put(record)

        return record, subtotal, lowest_skipped

    async def _load(self, package_id: str) -> CostRecord:
        """Return the cached record of a package, building a pending one if absent.

        Runs through the cache single-flight so a package shared by concurrent
        traversals is sized and resolved once.
        """
        cached = self.cache.get(package_id)
        if cached is not None:
            return cached

        package = self.store.find(package_id)
        if package is None:
            return self._fail(package_id, "package is not in the package store")

        standalone_cost = package.standalone_cost
        if standalone_cost is None:
            if self.sizer is None:
                return self._fail(package_id, "standalone cost unknown and no sizer configured")
            try:
                standalone_cost = await self.sizer.measure(package)
            except SizingError as e:
                logger.error(f"Sizing {package.name}@{package.version} failed: {e.reason}")
                return self._fail(package_id, e.reason)
            self.store.set_standalone_cost(package_id, standalone_cost)

        dependency_ids: list[str] = []
        for name, constraint in package.dependencies.items():
            resolution = await self.resolver.resolve(name, constraint)
            if isinstance(resolution, Unresolved):
                logger.warning(
                    f"Skipping dependency {name}@{constraint} of {package.name}: {resolution.reason}"
                )
                continue
            if resolution.package_id not in dependency_ids:
                dependency_ids.append(resolution.package_id)

        record = CostRecord(
            package_id=package_id,
            standalone_cost=standalone_cost,
            dependencies=package.dependencies,
            dependency_ids=dependency_ids,
            cost_status=CostStatus.PENDING,
        )
        self.cache.put(record)
        return record

    def _fail(self, package_id: str, reason: str) -> CostRecord:
        record = CostRecord(package_id=package_id, cost_status=CostStatus.FAILED, error=reason)
        self.cache.put(record)
        if self.metrics:
            self.metrics.record_error(package_id, "CostCalculationError", reason)
        return record
