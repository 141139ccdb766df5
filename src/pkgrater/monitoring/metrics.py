"""Thread-safe metrics collector for scoring and cost calculations."""

from __future__ import annotations

import json
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class ErrorEntry:
    """A recorded failure."""

    timestamp: datetime
    subject: str  # metric name or package id
    error_type: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "subject": self.subject,
            "error_type": self.error_type,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ErrorEntry:
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            subject=data["subject"],
            error_type=data["error_type"],
            message=data["message"],
        )


@dataclass
class ServiceMetrics:
    """Cumulative counters for the scoring engine and the cost aggregator."""

    # Scoring
    score_runs: int = 0
    zeroed_runs: int = 0
    total_net_score: float = 0.0  # For calculating average

    # Scorer timings (running averages)
    scorer_timings: dict[str, float] = field(default_factory=dict)
    scorer_counts: dict[str, int] = field(default_factory=dict)
    scorer_failures: dict[str, int] = field(default_factory=dict)

    # Costs
    costs_completed: int = 0
    costs_failed: int = 0
    cost_cache_hits: int = 0
    total_cost_seconds: float = 0.0

    # Errors (ring buffer of last N)
    recent_errors: deque[ErrorEntry] = field(default_factory=lambda: deque(maxlen=10))

    last_updated: datetime | None = None

    @property
    def average_net_score(self) -> float | None:
        """Average net score over runs that were not zeroed."""
        scored = self.score_runs - self.zeroed_runs
        if scored <= 0:
            return None
        return self.total_net_score / scored

    @property
    def average_cost_seconds(self) -> float | None:
        if self.costs_completed == 0:
            return None
        return self.total_cost_seconds / self.costs_completed

    def to_dict(self) -> dict[str, Any]:
        """Serialize metrics to a dictionary for JSON storage."""
        return {
            "score_runs": self.score_runs,
            "zeroed_runs": self.zeroed_runs,
            "total_net_score": self.total_net_score,
            "scorer_timings": self.scorer_timings,
            "scorer_counts": self.scorer_counts,
            "scorer_failures": self.scorer_failures,
            "costs_completed": self.costs_completed,
            "costs_failed": self.costs_failed,
            "cost_cache_hits": self.cost_cache_hits,
            "total_cost_seconds": self.total_cost_seconds,
            "recent_errors": [e.to_dict() for e in self.recent_errors],
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServiceMetrics:
        """Deserialize metrics from a dictionary."""
        metrics = cls(
            score_runs=data.get("score_runs", 0),
            zeroed_runs=data.get("zeroed_runs", 0),
            total_net_score=data.get("total_net_score", 0.0),
            scorer_timings=data.get("scorer_timings", {}),
            scorer_counts=data.get("scorer_counts", {}),
            scorer_failures=data.get("scorer_failures", {}),
            costs_completed=data.get("costs_completed", 0),
            costs_failed=data.get("costs_failed", 0),
            cost_cache_hits=data.get("cost_cache_hits", 0),
            total_cost_seconds=data.get("total_cost_seconds", 0.0),
            last_updated=(
                datetime.fromisoformat(data["last_updated"])
                if data.get("last_updated")
                else None
            ),
        )

        # Restore deque
        metrics.recent_errors = deque(
            [ErrorEntry.from_dict(e) for e in data.get("recent_errors", [])],
            maxlen=10,
        )

        return metrics


class MetricsCollector:
    """Thread-safe metrics collector.

    Collects metrics while scores and costs are computed and, when a file is
    given, persists them as JSON so ``pkgrater stats`` can report across
    runs.
    """

    def __init__(self, metrics_file: Path | None = None):
        self._lock = threading.Lock()
        self._metrics_file = metrics_file
        self._metrics = self.load()

    def record_scorer(self, name: str, latency: float, failed: bool = False) -> None:
        """Record one scorer run (updates the running average latency)."""
        with self._lock:
            current_count = self._metrics.scorer_counts.get(name, 0)
            current_avg = self._metrics.scorer_timings.get(name, 0.0)

            new_count = current_count + 1
            self._metrics.scorer_counts[name] = new_count
            self._metrics.scorer_timings[name] = (current_avg * current_count + latency) / new_count
            if failed:
                self._metrics.scorer_failures[name] = self._metrics.scorer_failures.get(name, 0) + 1
            # Saved with the score run, not per scorer

    def record_score_run(self, net_score: float, zeroed: bool = False) -> None:
        """Record a finished score computation."""
        with self._lock:
            self._metrics.score_runs += 1
            if zeroed:
                self._metrics.zeroed_runs += 1
            else:
                self._metrics.total_net_score += net_score
            self._metrics.last_updated = datetime.now()
            self._save()

    def record_cost(self, completed: bool, duration: float = 0.0) -> None:
        """Record a finished top-level cost calculation."""
        with self._lock:
            if completed:
                self._metrics.costs_completed += 1
                self._metrics.total_cost_seconds += duration
            else:
                self._metrics.costs_failed += 1
            self._metrics.last_updated = datetime.now()
            self._save()

    def record_cache_hit(self) -> None:
        with self._lock:
            self._metrics.cost_cache_hits += 1

    def record_error(self, subject: str, error_type: str, message: str) -> None:
        """Record a failure."""
        with self._lock:
            self._metrics.recent_errors.append(
                ErrorEntry(
                    timestamp=datetime.now(),
                    subject=subject,
                    error_type=error_type,
                    message=message,
                )
            )
            self._metrics.last_updated = datetime.now()
            self._save()

    def get_metrics(self) -> ServiceMetrics:
        """Get a copy of current metrics."""
        with self._lock:
            return ServiceMetrics.from_dict(self._metrics.to_dict())

    def save(self) -> None:
        with self._lock:
            self._save()

    def _save(self) -> None:
        """Save metrics to file (must be called with lock held)."""
        if self._metrics_file is None:
            return
        try:
            self._metrics_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self._metrics_file, "w") as f:
                json.dump(self._metrics.to_dict(), f, indent=2)
        except OSError as e:
            logger.warning(f"Could not write metrics to {self._metrics_file}: {e}")

    def load(self) -> ServiceMetrics:
        """Load metrics from file, or start empty."""
        if self._metrics_file is None or not self._metrics_file.exists():
            return ServiceMetrics()
        try:
            with open(self._metrics_file) as f:
                data = json.load(f)
            return ServiceMetrics.from_dict(data)
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Could not read metrics from {self._metrics_file}: {e}")
            return ServiceMetrics()
