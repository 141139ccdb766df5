"""Standalone size measurement for packages."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from pkgrater.adapters.base import BaseAdapter, PackageNotFoundError
from pkgrater.models.schemas import PackageRecord

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


class SizingError(Exception):
    """Raised when the standalone size of a package cannot be measured."""

    def __init__(self, package_id: str, reason: str) -> None:
        self.package_id = package_id
        self.reason = reason
        super().__init__(f"Could not size package {package_id}: {reason}")


class Sizer(Protocol):
    """Anything that can measure the standalone size of a package in MB."""

    async def measure(self, record: PackageRecord) -> float: ...


class RegistrySizer:
    """Measures a package by the size of its published registry tarball."""

    def __init__(self, adapter: BaseAdapter) -> None:
        self.adapter = adapter

    async def measure(self, record: PackageRecord) -> float:
        """Return the tarball size of ``record`` in megabytes.

        Raises:
            SizingError: If the tarball cannot be found or downloaded.
        """
        try:
            size_bytes = await self.adapter.get_tarball_size(record.name, record.version)
        except PackageNotFoundError as e:
            raise SizingError(record.id, str(e)) from e
        except httpx.HTTPError as e:
            raise SizingError(record.id, f"{type(e).__name__}: {e}") from e

        size_mb = size_bytes / BYTES_PER_MB
        logger.debug(f"{record.name}@{record.version} tarball is {size_mb:.3f} MB")
        return size_mb
