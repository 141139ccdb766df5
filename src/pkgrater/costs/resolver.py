"""Resolve dependency constraints to concrete package ids."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from pkgrater.adapters.base import BaseAdapter, PackageNotFoundError
from pkgrater.costs import identity
from pkgrater.costs.store import PackageStore
from pkgrater.costs.versions import pick_npm_version, pick_version
from pkgrater.models.schemas import PackageOrigin

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolved:
    """A constraint resolved to one concrete package version."""

    package_id: str
    name: str
    version: str


@dataclass(frozen=True)
class Unresolved:
    """A constraint no known version satisfies."""

    name: str
    constraint: str
    reason: str


Resolution = Resolved | Unresolved


class DependencyResolver:
    """Resolves ``(name, constraint)`` pairs against known package versions.

    Versions already in the store win. When an adapter is configured and the
    store has no matching version, the registry is consulted with full npm
    range semantics (``>=1.0.0 <2.0.0``, ``1.x``, ``^1 || ^2``) and the chosen
    version is recorded in the store (with an unmeasured standalone size) so
    later traversals find it locally.
    """

    def __init__(self, store: PackageStore, adapter: BaseAdapter | None = None) -> None:
        self.store = store
        self.adapter = adapter
        self._registry_versions: dict[str, list[str]] = {}

    async def resolve(self, name: str, constraint: str) -> Resolution:
        """Resolve one dependency. Never raises."""
        local = self.store.versions(name)
        version = pick_version(local, constraint)
        if version is not None:
            return Resolved(package_id=local[version], name=name, version=version)

        if self.adapter is None:
            return Unresolved(name, constraint, "no matching version in the package store")

        return await self._resolve_from_registry(name, constraint)

    async def _resolve_from_registry(self, name: str, constraint: str) -> Resolution:
        try:
            if name not in self._registry_versions:
                self._registry_versions[name] = await self.adapter.list_versions(name)
            version = pick_npm_version(self._registry_versions[name], constraint)
            if version is None:
                return Unresolved(name, constraint, "no published version satisfies the constraint")

            package_id = identity.package_id(name, version)
            if not self.store.contains(package_id):
                metadata = await self.adapter.get_package_metadata(name, version)
                # a concurrent traversal may have recorded it while fetching
                if not self.store.contains(package_id):
                    self.store.register(
                        name,
                        version,
                        dependencies=metadata.dependencies,
                        origin=PackageOrigin.REGISTRY,
                        url=metadata.repository_url,
                    )
                    logger.debug(f"Recorded {name}@{version} from the registry as {package_id}")
        except PackageNotFoundError as e:
            return Unresolved(name, constraint, str(e))
        except httpx.HTTPError as e:
            return Unresolved(name, constraint, f"registry error: {type(e).__name__}: {e}")

        return Resolved(package_id=package_id, name=name, version=version)
