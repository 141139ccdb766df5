"""Pydantic models for scores, costs and package records."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Platform(str, Enum):
    """Source code hosting platforms."""

    GITHUB = "github"
    GITLAB = "gitlab"
    OTHER = "other"


class Ecosystem(str, Enum):
    """Package ecosystems."""

    NPM = "npm"


class RepoRef(BaseModel):
    """Coordinates of a source code repository."""

    platform: Platform
    owner: str
    repo: str

    @property
    def url(self) -> str:
        """Get the full repository URL."""
        base_urls = {
            Platform.GITHUB: "https://github.com",
            Platform.GITLAB: "https://gitlab.com",
        }
        base = base_urls.get(self.platform, "")
        return f"{base}/{self.owner}/{self.repo}"

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"


class GitHubRepoInfo(BaseModel):
    """Basic repository information from the GitHub API."""

    owner: str
    name: str
    description: str = ""
    default_branch: str = "main"
    license: str | None = None  # SPDX id
    stars: int = 0
    open_issues: int = 0
    size_kb: int = 0
    is_archived: bool = False
    pushed_at: datetime | None = None


class PackageMetadata(BaseModel):
    """Registry metadata for one published version of a package."""

    ecosystem: Ecosystem = Ecosystem.NPM
    name: str
    version: str
    description: str = ""
    homepage: str | None = None
    repository_url: str | None = None
    license: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
    tarball_url: str | None = None


# --- Scoring Models ---


class MetricScore(BaseModel):
    """One metric value and the time it took to compute."""

    value: float = Field(ge=0, le=1)
    latency_seconds: float = Field(ge=0)


class ScoreRecord(BaseModel):
    """Composite rating of a repository.

    Every declared metric has an entry, including metrics whose scorer
    failed (those carry a zero value and the latency measured up to the
    failure).
    """

    metrics: dict[str, MetricScore] = Field(default_factory=dict)
    net_score: float = Field(ge=0)
    net_score_latency: float = Field(ge=0)
    setup_latency_seconds: float = Field(ge=0, default=0.0)

    @classmethod
    def zeroed(cls, metric_names: list[str]) -> "ScoreRecord":
        """Build the all-zero record returned when the repository is unusable."""
        return cls(
            metrics={name: MetricScore(value=0.0, latency_seconds=0.0) for name in metric_names},
            net_score=0.0,
            net_score_latency=0.0,
        )

    def missing_metrics(self, metric_names: list[str]) -> list[str]:
        """Return the declared metric names that have no entry."""
        return [name for name in metric_names if name not in self.metrics]

    def require_metrics(self, metric_names: list[str]) -> None:
        """Raise ValueError unless every declared metric has an entry."""
        missing = self.missing_metrics(metric_names)
        if missing:
            raise ValueError(f"Score record is missing metrics: {', '.join(missing)}")

    def to_ndjson(self) -> dict[str, float]:
        """Flatten into the rating output format (values rounded to 2 places).

        Keys are the metric names, each followed by ``<Name>Latency``, then
        ``NetScore`` and ``NetScoreLatency``.
        """
        row: dict[str, float] = {}
        for name, metric in self.metrics.items():
            row[name] = round(metric.value, 2)
            row[f"{name}Latency"] = round(metric.latency_seconds, 2)
        row["NetScore"] = round(self.net_score, 2)
        row["NetScoreLatency"] = round(self.net_score_latency, 2)
        return row


# --- Cost Models ---


class CostStatus(str, Enum):
    """Lifecycle of a cost calculation."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class CostRecord(BaseModel):
    """Cached size of a package and of its transitive dependency closure.

    Costs are in megabytes. ``total_cost`` only exists once the record is
    completed, and is never smaller than ``standalone_cost``.
    """

    package_id: str
    standalone_cost: float = Field(ge=0, default=0.0)
    total_cost: float | None = Field(ge=0, default=None)
    dependencies: dict[str, str] = Field(default_factory=dict)
    dependency_ids: list[str] = Field(default_factory=list)
    cost_status: CostStatus = CostStatus.PENDING
    error: str | None = None

    @model_validator(mode="after")
    def _check_total_cost(self) -> "CostRecord":
        if self.cost_status == CostStatus.COMPLETED:
            if self.total_cost is None:
                raise ValueError("completed cost record requires total_cost")
            if self.total_cost < self.standalone_cost:
                raise ValueError(
                    f"total_cost {self.total_cost} is smaller than standalone_cost {self.standalone_cost}"
                )
        elif self.total_cost is not None:
            raise ValueError(f"total_cost is undefined for a {self.cost_status.value} record")
        return self

    @property
    def is_completed(self) -> bool:
        return self.cost_status == CostStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.cost_status == CostStatus.FAILED


class CostEntry(BaseModel):
    """Standalone and total cost of one package in a cost response."""

    model_config = ConfigDict(populate_by_name=True)

    standalone_cost: float = Field(ge=0, alias="standaloneCost")
    total_cost: float = Field(ge=0, alias="totalCost")


# --- Package Store Models ---


class PackageOrigin(str, Enum):
    """How a package entered the store."""

    UPLOADED = "uploaded"  # Registered directly by a client
    REGISTRY = "registry"  # Discovered while resolving someone's dependencies


class PackageRecord(BaseModel):
    """A package version known to the package store."""

    id: str
    name: str
    version: str
    dependencies: dict[str, str] = Field(default_factory=dict)
    standalone_cost: float | None = Field(ge=0, default=None)  # None until sized
    origin: PackageOrigin = PackageOrigin.UPLOADED
    url: str | None = None
    score: ScoreRecord | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
