"""NetScore engine: runs every metric scorer and combines the results."""

import asyncio
import functools
import logging
import math
import time

from pkgrater.analyzers.github import GitHubFetcher
from pkgrater.analyzers.latency import TimedScore, latency_wrapper
from pkgrater.analyzers.metrics import DEFAULT_SCORERS, RepoContext, Scorer
from pkgrater.analyzers.resolver import RepositoryResolver
from pkgrater.models.schemas import MetricScore, ScoreRecord
from pkgrater.monitoring.metrics import MetricsCollector

logger = logging.getLogger(__name__)


def compute_net_score(values: dict[str, float], weights: dict[str, float]) -> float:
    """Weighted sum of metric values. Metrics without a value count as 0."""
    return sum(weight * values.get(name, 0.0) for name, weight in weights.items())


class NetScoreEngine:
    """Computes the composite trust rating of a repository.

    Scoring weights (total 1.0):
    - BusFactor: 0.10
    - Correctness: 0.20
    - RampUp: 0.10
    - ResponsiveMaintainer: 0.15
    - License: 0.20
    - GoodPinningPractice: 0.10
    - PullRequest: 0.15

    All scorers run concurrently. A scorer that fails scores 0 for its
    metric and does not affect the others; a repository that cannot be
    resolved yields an all-zero record.
    """

    WEIGHTS = {
        "BusFactor": 0.10,
        "Correctness": 0.20,
        "RampUp": 0.10,
        "ResponsiveMaintainer": 0.15,
        "License": 0.20,
        "GoodPinningPractice": 0.10,
        "PullRequest": 0.15,
    }

    def __init__(
        self,
        resolver: RepositoryResolver,
        github: GitHubFetcher | None = None,
        scorers: dict[str, Scorer] | None = None,
        weights: dict[str, float] | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            resolver: Maps the URL being scored to a GitHub repository.
            github: GitHub fetcher handed to scorers. Created if not provided.
            scorers: Scorer per metric name. Defaults to the built-in scorers.
            weights: Weight per metric name. Defaults to WEIGHTS.
            metrics: Optional collector for scorer latencies and failures.

        Raises:
            ValueError: If scorer and weight names differ, or the weights are
                negative or do not sum to 1.
        """
        self.resolver = resolver
        self.github = github or GitHubFetcher()
        self.scorers = dict(scorers if scorers is not None else DEFAULT_SCORERS)
        self.weights = dict(weights if weights is not None else self.WEIGHTS)
        self.metrics = metrics
        self._validate()

    def _validate(self) -> None:
        if set(self.scorers) != set(self.weights):
            missing = sorted(set(self.weights) - set(self.scorers))
            extra = sorted(set(self.scorers) - set(self.weights))
            raise ValueError(f"Scorers do not match weights (missing: {missing}, unweighted: {extra})")
        negative = [name for name, weight in self.weights.items() if weight < 0]
        if negative:
            raise ValueError(f"Negative weights: {negative}")
        total = sum(self.weights.values())
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ValueError(f"Weights must sum to 1.0, got {total}")

    @property
    def metric_names(self) -> list[str]:
        return list(self.weights)

    async def _setup(self, url: str) -> RepoContext:
        ref = await self.resolver.resolve(url)
        info = await self.github.fetch_repo_info(ref.owner, ref.repo)
        if info is None:
            raise LookupError(f"GitHub repository {ref.slug} not found")
        lines_of_code = await self.github.estimate_lines_of_code(ref.owner, ref.repo)
        return RepoContext(fetcher=self.github, info=info, lines_of_code=lines_of_code)

    async def score(self, url: str) -> ScoreRecord:
        """Rate the repository behind a GitHub or npm package URL.

        Never raises: unresolvable repositories produce a zeroed record.

        Args:
            url: GitHub repository URL or npm package URL.

        Returns:
            ScoreRecord with an entry for every metric.
        """
        start_time = time.perf_counter()
        try:
            context = await self._setup(url)
        except Exception as e:
            logger.error(f"Could not set up scoring for {url}: {e}")
            if self.metrics:
                self.metrics.record_score_run(0.0, zeroed=True)
                self.metrics.record_error(url, type(e).__name__, str(e))
            return ScoreRecord.zeroed(self.metric_names)
        setup_latency = time.perf_counter() - start_time

        owner, repo = context.info.owner, context.info.name
        names = self.metric_names
        results: list[TimedScore] = await asyncio.gather(
            *(
                latency_wrapper(functools.partial(self.scorers[name], owner, repo, context), name)
                for name in names
            )
        )

        timed = dict(zip(names, results))
        net_score = compute_net_score({name: result.value for name, result in timed.items()}, self.weights)
        net_score_latency = sum(result.latency for result in results) + setup_latency

        record = ScoreRecord(
            metrics={
                name: MetricScore(value=result.value, latency_seconds=result.latency)
                for name, result in timed.items()
            },
            net_score=net_score,
            net_score_latency=net_score_latency,
            setup_latency_seconds=setup_latency,
        )
        record.require_metrics(names)

        logger.info(f"NetScore for {owner}/{repo}: {net_score:.2f} ({net_score_latency:.2f}s)")
        if self.metrics:
            for name, result in timed.items():
                self.metrics.record_scorer(name, result.latency, failed=result.failed)
            self.metrics.record_score_run(net_score)
        return record
