"""Tests for the metrics collector."""

import json
from pathlib import Path

import pytest

from pkgrater.monitoring.metrics import MetricsCollector, ServiceMetrics


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    def test_scorer_running_average(self) -> None:
        """Scorer latencies are averaged and failures counted."""
        collector = MetricsCollector()
        collector.record_scorer("License", 0.2)
        collector.record_scorer("License", 0.4, failed=True)

        metrics = collector.get_metrics()
        assert metrics.scorer_counts["License"] == 2
        assert metrics.scorer_timings["License"] == pytest.approx(0.3)
        assert metrics.scorer_failures["License"] == 1

    def test_average_net_score_ignores_zeroed_runs(self) -> None:
        """Zeroed runs count as runs but not towards the average."""
        collector = MetricsCollector()
        collector.record_score_run(0.8)
        collector.record_score_run(0.4)
        collector.record_score_run(0.0, zeroed=True)

        metrics = collector.get_metrics()
        assert metrics.score_runs == 3
        assert metrics.zeroed_runs == 1
        assert metrics.average_net_score == pytest.approx(0.6)

    def test_cost_averages(self) -> None:
        """Only completed calculations contribute to the average duration."""
        collector = MetricsCollector()
        collector.record_cost(True, 1.0)
        collector.record_cost(True, 3.0)
        collector.record_cost(False)

        metrics = collector.get_metrics()
        assert metrics.costs_completed == 2
        assert metrics.costs_failed == 1
        assert metrics.average_cost_seconds == pytest.approx(2.0)

    def test_recent_errors_bounded(self) -> None:
        """Only the last ten errors are kept."""
        collector = MetricsCollector()
        for i in range(15):
            collector.record_error(f"pkg{i}", "SizingError", "no tarball")

        errors = collector.get_metrics().recent_errors
        assert len(errors) == 10
        assert errors[0].subject == "pkg5"

    def test_empty_averages(self) -> None:
        """Averages are None before anything is recorded."""
        metrics = ServiceMetrics()
        assert metrics.average_net_score is None
        assert metrics.average_cost_seconds is None


class TestPersistence:
    """Tests for saving and loading metrics."""

    def test_round_trip(self, tmp_path: Path) -> None:
        """Metrics written by one collector are read by the next."""
        path = tmp_path / ".metrics.json"
        collector = MetricsCollector(path)
        collector.record_scorer("BusFactor", 0.5)
        collector.record_score_run(0.7)
        collector.record_error("abc", "LookupError", "repository not found")

        restored = MetricsCollector(path).get_metrics()
        assert restored.score_runs == 1
        assert restored.scorer_counts == {"BusFactor": 1}
        assert restored.recent_errors[0].message == "repository not found"
        assert restored.last_updated is not None

    def test_corrupt_file(self, tmp_path: Path) -> None:
        """An unreadable metrics file starts from empty metrics."""
        path = tmp_path / ".metrics.json"
        path.write_text("{not json")
        assert MetricsCollector(path).get_metrics().score_runs == 0

    def test_no_file_means_no_persistence(self, tmp_path: Path) -> None:
        """Without a path nothing is written."""
        collector = MetricsCollector()
        collector.record_score_run(0.5)
        collector.save()
        assert list(tmp_path.iterdir()) == []

    def test_saved_as_json(self, tmp_path: Path) -> None:
        """The file is plain JSON."""
        path = tmp_path / "nested" / ".metrics.json"
        MetricsCollector(path).record_cost(True, 0.25)
        data = json.loads(path.read_text())
        assert data["costs_completed"] == 1
