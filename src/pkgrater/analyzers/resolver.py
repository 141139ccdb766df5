"""Resolve package or repository URLs to GitHub repository coordinates."""

import logging
import re

import httpx

from pkgrater.adapters.base import PackageNotFoundError, parse_repo_url
from pkgrater.adapters.npm import NpmAdapter
from pkgrater.models.schemas import Platform, RepoRef

logger = logging.getLogger(__name__)

NPM_PACKAGE_URL = re.compile(r"^https?://(?:www\.)?npmjs\.(?:com|org)/package/(.+?)/?$")


class ResolutionError(Exception):
    """Raised when a URL cannot be turned into a GitHub repository."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Cannot resolve {url}: {reason}")


class RepositoryResolver:
    """Maps GitHub repository URLs and npm package URLs to a RepoRef.

    Usage:
        resolver = RepositoryResolver(NpmAdapter())
        ref = await resolver.resolve("https://www.npmjs.com/package/express")
        ref.slug  # "expressjs/express"
    """

    def __init__(self, npm: NpmAdapter) -> None:
        self.npm = npm

    async def resolve(self, url: str) -> RepoRef:
        """Resolve a URL to GitHub coordinates.

        Raises:
            ResolutionError: If the URL is neither a GitHub nor an npm package
                URL, or the npm package has no GitHub repository.
        """
        url = url.strip()

        match = NPM_PACKAGE_URL.match(url)
        if match:
            return await self._resolve_npm(url, match.group(1))

        ref = parse_repo_url(url)
        if ref is None or ref.platform != Platform.GITHUB:
            raise ResolutionError(url, "not a GitHub or npm package URL")
        return ref

    async def _resolve_npm(self, url: str, package_name: str) -> RepoRef:
        try:
            metadata = await self.npm.get_package_metadata(package_name)
        except PackageNotFoundError as e:
            raise ResolutionError(url, str(e)) from e
        except httpx.HTTPError as e:
            raise ResolutionError(url, f"registry error: {e}") from e

        ref = self.npm.get_source_repo(metadata)
        if ref is None or ref.platform != Platform.GITHUB:
            raise ResolutionError(url, f"{package_name} has no GitHub repository")

        logger.debug(f"Resolved {url} to {ref.url}")
        return ref
