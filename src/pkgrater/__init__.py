"""Package trust scoring and dependency cost aggregation."""

__version__ = "0.1.0"
