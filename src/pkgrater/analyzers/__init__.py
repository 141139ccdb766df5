"""Analyzers for rating repositories and wiring the rating pipeline."""

from pkgrater.analyzers.github import GitHubFetcher
from pkgrater.analyzers.latency import TimedScore, latency_wrapper
from pkgrater.analyzers.pipeline import RatingPipeline
from pkgrater.analyzers.resolver import RepositoryResolver, ResolutionError
from pkgrater.analyzers.scorer import NetScoreEngine, compute_net_score

__all__ = [
    "GitHubFetcher",
    "NetScoreEngine",
    "RatingPipeline",
    "RepositoryResolver",
    "ResolutionError",
    "TimedScore",
    "compute_net_score",
    "latency_wrapper",
]
