"""Service facade wiring scoring and cost aggregation together."""

import asyncio
import logging

import httpx

from pkgrater.adapters.npm import NpmAdapter
from pkgrater.analyzers.github import GitHubFetcher
from pkgrater.analyzers.resolver import RepositoryResolver
from pkgrater.analyzers.scorer import NetScoreEngine
from pkgrater.config import Settings
from pkgrater.costs import identity
from pkgrater.costs.aggregator import CostAggregator, CostCalculationError
from pkgrater.costs.cache import CostCache, InMemoryCostCache, JsonCostCache
from pkgrater.costs.resolver import DependencyResolver
from pkgrater.costs.sizing import BYTES_PER_MB, RegistrySizer
from pkgrater.costs.store import PackageExistsError, PackageStore, UnknownPackageError
from pkgrater.models.schemas import CostEntry, PackageOrigin, PackageRecord, ScoreRecord
from pkgrater.monitoring.metrics import MetricsCollector

logger = logging.getLogger(__name__)


class RatingPipeline:
    """Entry point for scoring packages and computing dependency costs.

    Owns the shared HTTP client and every collaborator: the package store,
    the cost cache, the cost aggregator and the NetScore engine. Use it as an
    async context manager so background cost calculations finish and the
    client is closed:

        async with RatingPipeline(Settings()) as pipeline:
            record = await pipeline.ingest_package("express")
            costs = await pipeline.get_cost(record.id, include_dependencies=True)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        metrics: MetricsCollector | None = None,
        in_memory: bool = False,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Runtime settings. Defaults to Settings().
            client: Shared HTTP client. Created (and closed on exit) if not provided.
            metrics: Metrics collector. Defaults to one persisted in the data directory.
            in_memory: Keep the package store and cost cache in memory only.
        """
        self.settings = settings or Settings()
        self._owns_client = client is None
        self._http_client = client or httpx.AsyncClient(timeout=60.0, follow_redirects=True)
        self._background: set[asyncio.Task] = set()

        if metrics is None:
            metrics = MetricsCollector(None if in_memory else self.settings.metrics_file)
        self.metrics = metrics

        self.store = PackageStore(None if in_memory else self.settings.packages_file)
        self.cache: CostCache = (
            InMemoryCostCache() if in_memory else JsonCostCache(self.settings.cost_cache_file)
        )

        self.npm = NpmAdapter(client=self._http_client, registry_url=self.settings.registry_url)
        self.github = GitHubFetcher(token=self.settings.github_token, client=self._http_client)

        self.aggregator = CostAggregator(
            self.store,
            self.cache,
            DependencyResolver(self.store, self.npm),
            sizer=RegistrySizer(self.npm),
            metrics=self.metrics,
        )
        self.engine = NetScoreEngine(
            RepositoryResolver(self.npm),
            github=self.github,
            metrics=self.metrics,
        )

    async def __aenter__(self) -> "RatingPipeline":
        return self

    async def __aexit__(self, *args) -> None:
        """Wait for background cost calculations, then close the HTTP client."""
        await self.wait_for_background()
        if self._owns_client:
            await self._http_client.aclose()

    # --- Scoring ---

    async def compute_score(self, url: str) -> ScoreRecord:
        """Rate the repository behind a GitHub or npm URL. Never raises."""
        return await self.engine.score(url)

    # --- Costs ---

    async def get_cost(self, package_id: str, include_dependencies: bool = False) -> dict[str, CostEntry]:
        """Return the cost of a package, optionally with each dependency's cost.

        Args:
            package_id: Id of a known package.
            include_dependencies: Also return an entry for every package in
                the dependency closure.

        Returns:
            Mapping of package id to its standalone and total cost.

        Raises:
            UnknownPackageError: If the id is not known.
            CostCalculationError: If the package cannot be costed.
        """
        if not self.store.contains(package_id) and self.cache.get(package_id) is None:
            raise UnknownPackageError(package_id)

        if include_dependencies:
            return await self.aggregator.get_cost_closure(package_id)

        record = await self.aggregator.get_total_cost(package_id)
        return {
            package_id: CostEntry(standalone_cost=record.standalone_cost, total_cost=record.total_cost)
        }

    def _schedule_cost(self, package_id: str) -> None:
        """Start the cost calculation of a new package without waiting for it."""
        task = asyncio.ensure_future(self._precompute_cost(package_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _precompute_cost(self, package_id: str) -> None:
        try:
            await self.aggregator.get_total_cost(package_id)
        except (CostCalculationError, UnknownPackageError) as e:
            logger.error(f"Background cost calculation for {package_id} failed: {e}")

    async def wait_for_background(self) -> None:
        """Wait until every scheduled cost calculation has finished."""
        while self._background:
            await asyncio.gather(*list(self._background))

    # --- Packages ---

    def _ensure_new(self, name: str, version: str) -> None:
        """Reject a name and version that is already stored, even if only seen as a dependency."""
        package_id = identity.package_id(name, version)
        if self.store.contains(package_id):
            raise PackageExistsError(name, version, package_id)

    async def register_package(
        self,
        name: str,
        version: str,
        standalone_cost: float,
        dependencies: dict[str, str] | None = None,
        url: str | None = None,
    ) -> PackageRecord:
        """Add a package whose size and dependencies are already known.

        When a repository URL is given, the package is also scored.

        Raises:
            PackageExistsError: If this name and version are already stored.
        """
        self._ensure_new(name, version)
        record = self.store.register(
            name,
            version,
            dependencies=dependencies,
            standalone_cost=standalone_cost,
            origin=PackageOrigin.UPLOADED,
            url=url,
        )
        if url:
            record = self.store.update_score(record.id, await self.compute_score(url))

        logger.info(f"Registered {name}@{version} as {record.id}")
        self._schedule_cost(record.id)
        return record

    async def ingest_package(self, name: str, version: str | None = None) -> PackageRecord:
        """Add a package published on the npm registry.

        Fetches its metadata and tarball size, scores it through its npm
        page, and starts its cost calculation.

        Raises:
            PackageNotFoundError: If the package or version is not published.
            PackageExistsError: If this name and version are already stored.
            httpx.HTTPError: If the registry cannot be reached.
        """
        metadata = await self.npm.get_package_metadata(name, version)
        self._ensure_new(metadata.name, metadata.version)
        size_bytes = await self.npm.get_tarball_size(metadata.name, metadata.version)
        url = f"https://www.npmjs.com/package/{metadata.name}"

        self._ensure_new(metadata.name, metadata.version)
        record = self.store.register(
            metadata.name,
            metadata.version,
            dependencies=metadata.dependencies,
            standalone_cost=size_bytes / BYTES_PER_MB,
            origin=PackageOrigin.UPLOADED,
            url=url,
        )
        record = self.store.update_score(record.id, await self.compute_score(url))

        logger.info(f"Ingested {metadata.name}@{metadata.version} as {record.id}")
        self._schedule_cost(record.id)
        return record

    def search(self, name: str, constraint: str = "*", include_registry: bool = False) -> list[PackageRecord]:
        """Find registered packages by name and version constraint."""
        return self.store.search(name, constraint, include_registry=include_registry)

    def reset(self) -> None:
        """Remove every package and every cached cost."""
        self.store.reset()
        self.cache.reset()
        logger.info("Package store and cost cache reset")
