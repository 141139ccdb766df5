"""Scoring and cost metrics collection."""

from .metrics import MetricsCollector, ServiceMetrics

__all__ = ["MetricsCollector", "ServiceMetrics"]
