"""Dependency cost aggregation: identity, version matching, storage and traversal."""

from pkgrater.costs.identity import package_id
from pkgrater.costs.store import PackageExistsError, PackageStore, UnknownPackageError
from pkgrater.costs.cache import CostCache, InMemoryCostCache, JsonCostCache
from pkgrater.costs.resolver import DependencyResolver, Resolved, Unresolved
from pkgrater.costs.sizing import RegistrySizer, Sizer, SizingError
from pkgrater.costs.aggregator import CostAggregator, CostCalculationError

__all__ = [
    "CostAggregator",
    "CostCache",
    "CostCalculationError",
    "DependencyResolver",
    "InMemoryCostCache",
    "JsonCostCache",
    "PackageExistsError",
    "PackageStore",
    "RegistrySizer",
    "Resolved",
    "Sizer",
    "SizingError",
    "UnknownPackageError",
    "Unresolved",
    "package_id",
]
