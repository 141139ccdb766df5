"""Data models and schemas."""

from pkgrater.models.schemas import (
    CostEntry,
    CostRecord,
    CostStatus,
    Ecosystem,
    GitHubRepoInfo,
    MetricScore,
    PackageMetadata,
    PackageOrigin,
    PackageRecord,
    Platform,
    RepoRef,
    ScoreRecord,
)

__all__ = [
    "CostEntry",
    "CostRecord",
    "CostStatus",
    "Ecosystem",
    "GitHubRepoInfo",
    "MetricScore",
    "PackageMetadata",
    "PackageOrigin",
    "PackageRecord",
    "Platform",
    "RepoRef",
    "ScoreRecord",
]
