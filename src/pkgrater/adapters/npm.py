"""NPM package registry adapter."""

import logging

import httpx

from pkgrater.adapters.base import BaseAdapter, PackageNotFoundError
from pkgrater.models.schemas import Ecosystem, PackageMetadata

logger = logging.getLogger(__name__)


class NpmAdapter(BaseAdapter):
    """Adapter for the NPM package registry.

    Data sources:
    - Package documents: https://registry.npmjs.org/{package}
    - Tarballs: https://registry.npmjs.org/{package}/-/{name}-{version}.tgz
    """

    REGISTRY_URL = "https://registry.npmjs.org"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        registry_url: str | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            client: Optional httpx client for making requests.
            registry_url: Registry base URL. Defaults to the public registry.
        """
        self._client = client
        self.registry_url = (registry_url or self.REGISTRY_URL).rstrip("/")
        self._documents: dict[str, dict] = {}

    @property
    def ecosystem(self) -> Ecosystem:
        return Ecosystem.NPM

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client."""
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=30.0, follow_redirects=True)

    async def _fetch_json(self, url: str) -> dict:
        """Fetch JSON from a URL."""
        client = await self._get_client()
        try:
            response = await client.get(url)
            response.raise_for_status()
            return response.json()
        finally:
            if self._client is None:
                await client.aclose()

    async def _get_document(self, name: str) -> dict:
        """Fetch (once) the registry document listing every version of a package."""
        if name in self._documents:
            return self._documents[name]

        # URL-encode scoped package names
        encoded_name = name.replace("/", "%2F")
        try:
            data = await self._fetch_json(f"{self.registry_url}/{encoded_name}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise PackageNotFoundError(Ecosystem.NPM, name) from e
            raise

        self._documents[name] = data
        return data

    async def list_versions(self, name: str) -> list[str]:
        data = await self._get_document(name)
        return list(data.get("versions", {}).keys())

    async def get_package_metadata(self, name: str, version: str | None = None) -> PackageMetadata:
        """Fetch metadata for an NPM package version.

        Args:
            name: Package name (supports scoped packages like @org/pkg).
            version: Exact version. Defaults to the ``latest`` dist-tag.

        Returns:
            PackageMetadata for the version.

        Raises:
            PackageNotFoundError: If the package or the version doesn't exist.
        """
        data = await self._get_document(name)

        if version is None:
            version = data.get("dist-tags", {}).get("latest", "")

        version_data = data.get("versions", {}).get(version)
        if version_data is None:
            raise PackageNotFoundError(Ecosystem.NPM, name, version)

        repository = version_data.get("repository") or data.get("repository")

        return PackageMetadata(
            ecosystem=Ecosystem.NPM,
            name=data.get("name", name),
            version=version,
            description=version_data.get("description", "") or data.get("description", "") or "",
            homepage=version_data.get("homepage") or data.get("homepage"),
            repository_url=self._extract_repo_url(repository),
            license=self._extract_license(version_data.get("license") or data.get("license")),
            dependencies=dict(version_data.get("dependencies") or {}),
            tarball_url=version_data.get("dist", {}).get("tarball"),
        )

    def _extract_repo_url(self, repository: dict | str | None) -> str | None:
        """Extract repository URL from npm repository field.

        Handles various formats:
        - {"type": "git", "url": "git+https://github.com/owner/repo.git"}
        - "github:owner/repo"
        - "https://github.com/owner/repo"
        """
        if isinstance(repository, dict):
            url = repository.get("url", "")
        elif isinstance(repository, str):
            url = repository
        else:
            return None

        if not url:
            return None

        url = url.replace("git+", "").replace("git://", "https://").removesuffix(".git")

        if url.startswith("github:"):
            url = f"https://github.com/{url[len('github:'):]}"
        elif "://" not in url and url.count("/") == 1:
            # Bare "owner/repo" shorthand defaults to GitHub
            url = f"https://github.com/{url}"

        return url

    def _extract_license(self, license_info: dict | list | str | None) -> str | None:
        if isinstance(license_info, str):
            return license_info
        if isinstance(license_info, dict):
            return license_info.get("type") or license_info.get("name")
        if isinstance(license_info, list) and license_info:
            return self._extract_license(license_info[0])
        return None

    def tarball_url(self, name: str, version: str) -> str:
        """Build the conventional tarball URL for a package version."""
        unscoped = name.split("/")[-1]
        return f"{self.registry_url}/{name}/-/{unscoped}-{version}.tgz"

    async def get_tarball_size(self, name: str, version: str) -> int:
        """Measure the published tarball of a package version in bytes.

        Uses the Content-Length of a HEAD request when the registry sends
        one, otherwise downloads the tarball.

        Raises:
            PackageNotFoundError: If the version doesn't exist.
            httpx.HTTPError: If the tarball cannot be fetched.
        """
        metadata = await self.get_package_metadata(name, version)
        url = metadata.tarball_url or self.tarball_url(name, version)

        client = await self._get_client()
        try:
            response = await client.head(url)
            response.raise_for_status()
            content_length = response.headers.get("Content-Length")
            if content_length is not None and content_length.isdigit():
                return int(content_length)

            response = await client.get(url)
            response.raise_for_status()
            return len(response.content)
        finally:
            if self._client is None:
                await client.aclose()
