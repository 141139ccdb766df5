"""Abstract base class for package registry adapters."""

import re
from abc import ABC, abstractmethod

from pkgrater.models.schemas import Ecosystem, PackageMetadata, Platform, RepoRef


class BaseAdapter(ABC):
    """Base class for package registry adapters.

    Each adapter normalizes one registry's data into PackageMetadata and
    exposes what cost aggregation needs: the published versions of a
    package and the size of a published artifact.
    """

    @property
    @abstractmethod
    def ecosystem(self) -> Ecosystem:
        """Return the ecosystem this adapter handles."""
        ...

    @abstractmethod
    async def get_package_metadata(self, name: str, version: str | None = None) -> PackageMetadata:
        """Fetch metadata for one version of a package.

        Args:
            name: Package name.
            version: Exact version. Defaults to the latest published version.

        Returns:
            PackageMetadata for that version.

        Raises:
            PackageNotFoundError: If the package or version doesn't exist.
        """
        ...

    @abstractmethod
    async def list_versions(self, name: str) -> list[str]:
        """Return every published version of a package.

        Raises:
            PackageNotFoundError: If the package doesn't exist.
        """
        ...

    @abstractmethod
    async def get_tarball_size(self, name: str, version: str) -> int:
        """Return the size in bytes of the published artifact for a version."""
        ...

    def get_source_repo(self, metadata: PackageMetadata) -> RepoRef | None:
        """Extract source repository reference from metadata.

        Args:
            metadata: Package metadata containing repository_url or homepage.

        Returns:
            RepoRef if a repository URL can be parsed, None otherwise.
        """
        url = metadata.repository_url or metadata.homepage
        if not url:
            return None
        return parse_repo_url(url)


GITHUB_PATTERNS = [
    r"(?:https?://)?(?:www\.)?github\.com/([^/]+)/([^/\s#?]+?)(?:\.git)?(?:[/#?].*)?$",
    r"git@github\.com:([^/]+)/([^/\s]+?)(?:\.git)?$",
    r"(?:git\+)?(?:git|ssh)://(?:git@)?github\.com/([^/]+)/([^/\s]+?)(?:\.git)?$",
]

GITLAB_PATTERNS = [
    r"(?:https?://)?(?:www\.)?gitlab\.com/([^/]+)/([^/\s#?]+?)(?:\.git)?(?:[/#?].*)?$",
    r"git@gitlab\.com:([^/]+)/([^/\s]+?)(?:\.git)?$",
]


def parse_repo_url(url: str) -> RepoRef | None:
    """Parse a repository URL into a RepoRef.

    Handles the https, ssh and ``git+`` forms npm manifests use, plus the
    ``github:owner/repo`` shorthand.

    Args:
        url: Repository URL to parse.

    Returns:
        RepoRef if the URL can be parsed, None otherwise.
    """
    if not url:
        return None

    url = url.strip()
    if url.startswith("git+"):
        url = url[len("git+"):]

    if url.startswith("github:"):
        parts = url[len("github:"):].split("/")
        if len(parts) == 2 and all(parts):
            return RepoRef(platform=Platform.GITHUB, owner=parts[0], repo=parts[1])
        return None

    for platform, patterns in ((Platform.GITHUB, GITHUB_PATTERNS), (Platform.GITLAB, GITLAB_PATTERNS)):
        for pattern in patterns:
            match = re.match(pattern, url)
            if match:
                return RepoRef(platform=platform, owner=match.group(1), repo=match.group(2))

    return None


class PackageNotFoundError(Exception):
    """Raised when a package cannot be found."""

    def __init__(self, ecosystem: Ecosystem, name: str, version: str | None = None) -> None:
        self.ecosystem = ecosystem
        self.name = name
        self.version = version
        label = f"{name}@{version}" if version else name
        super().__init__(f"Package '{label}' not found in {ecosystem.value}")
