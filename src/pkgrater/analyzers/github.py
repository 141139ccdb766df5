"""GitHub data fetcher for repository scoring."""

import asyncio
import base64
import binascii
import logging
import os
from datetime import datetime, timezone

import httpx

from pkgrater.models.schemas import GitHubRepoInfo

logger = logging.getLogger(__name__)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a GitHub ISO-8601 timestamp (``2024-01-31T12:00:00Z``)."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class GitHubFetcher:
    """Fetches repository data from the GitHub REST API.

    Requires a GitHub personal access token for higher rate limits.
    Set GITHUB_TOKEN environment variable or pass token to constructor.
    """

    BASE_URL = "https://api.github.com"

    # Average bytes per source line, used to estimate lines of code from
    # the languages breakdown
    BYTES_PER_LINE = 40

    def __init__(
        self,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        stats_retries: int = 10,
        stats_retry_delay: float = 3.0,
    ) -> None:
        """Initialize the fetcher.

        Args:
            token: GitHub personal access token. If not provided, uses GITHUB_TOKEN env var.
            client: Optional httpx client. If not provided, a new client is created per request.
            stats_retries: Attempts made while GitHub is still computing statistics (HTTP 202).
            stats_retry_delay: Seconds to wait between those attempts.
        """
        self._token = token or os.environ.get("GITHUB_TOKEN")
        self._client = client
        self.stats_retries = stats_retries
        self.stats_retry_delay = stats_retry_delay

        # Rate limit tracking
        self.rate_limit_remaining: int = 5000
        self.rate_limit_total: int = 5000
        self.rate_limit_reset: datetime | None = None

    def _headers(self) -> dict[str, str]:
        """Get headers for GitHub API requests."""
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client."""
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=30.0, headers=self._headers())

    def _update_rate_limits(self, response: httpx.Response) -> None:
        """Extract and store rate limit info from response headers."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        limit = response.headers.get("X-RateLimit-Limit")
        reset = response.headers.get("X-RateLimit-Reset")

        if remaining is not None:
            self.rate_limit_remaining = int(remaining)
        if limit is not None:
            self.rate_limit_total = int(limit)
        if reset is not None:
            self.rate_limit_reset = datetime.fromtimestamp(int(reset), tz=timezone.utc)

        if self.rate_limit_remaining == 0:
            logger.warning(f"GitHub rate limit exhausted until {self.rate_limit_reset}")

    async def _fetch(self, path: str, params: dict | None = None) -> dict | list | None:
        """Fetch from GitHub API.

        Returns None if 404, raises on other errors.
        """
        client = await self._get_client()
        url = f"{self.BASE_URL}{path}"

        try:
            response = await client.get(url, params=params, headers=self._headers())
            self._update_rate_limits(response)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()
        finally:
            if self._client is None:
                await client.aclose()

    async def _fetch_all_pages(
        self,
        path: str,
        params: dict | None = None,
        max_pages: int = 10,
    ) -> list:
        """Fetch all pages from a paginated endpoint."""
        client = await self._get_client()
        url = f"{self.BASE_URL}{path}"
        params = dict(params or {})
        params.setdefault("per_page", 100)

        results = []
        page = 1

        try:
            while page <= max_pages:
                params["page"] = page
                response = await client.get(url, params=params, headers=self._headers())
                self._update_rate_limits(response)
                if response.status_code == 404:
                    break
                response.raise_for_status()

                data = response.json()
                if not data:
                    break

                results.extend(data)

                # Check if there are more pages
                if len(data) < params["per_page"]:
                    break
                page += 1

            return results
        finally:
            if self._client is None:
                await client.aclose()

    async def fetch_repo_info(self, owner: str, repo: str) -> GitHubRepoInfo | None:
        """Fetch basic repository information.

        Returns:
            GitHubRepoInfo, or None if the repository doesn't exist.
        """
        data = await self._fetch(f"/repos/{owner}/{repo}")
        if data is None:
            return None

        license_info = data.get("license") or {}
        spdx_id = license_info.get("spdx_id")

        return GitHubRepoInfo(
            owner=owner,
            name=repo,
            description=data.get("description") or "",
            default_branch=data.get("default_branch", "main"),
            license=spdx_id if spdx_id and spdx_id != "NOASSERTION" else None,
            stars=data.get("stargazers_count", 0),
            open_issues=data.get("open_issues_count", 0),
            size_kb=data.get("size", 0),
            is_archived=data.get("archived", False),
            pushed_at=parse_timestamp(data.get("pushed_at")),
        )

    async def estimate_lines_of_code(self, owner: str, repo: str) -> int:
        """Estimate lines of code from the per-language byte counts."""
        languages = await self._fetch(f"/repos/{owner}/{repo}/languages")
        if not languages or not isinstance(languages, dict):
            return 0
        return sum(languages.values()) // self.BYTES_PER_LINE

    async def fetch_contributor_stats(self, owner: str, repo: str) -> list[dict] | None:
        """Fetch per-contributor commit totals.

        GitHub answers 202 while it computes the statistics, so the request
        is retried a bounded number of times.

        Returns:
            Contributor entries (``{"author": {...}, "total": n}``), or None if
            the statistics were still not ready after every retry.
        """
        path = f"/repos/{owner}/{repo}/stats/contributors"
        client = await self._get_client()
        try:
            for attempt in range(self.stats_retries):
                response = await client.get(f"{self.BASE_URL}{path}", headers=self._headers())
                self._update_rate_limits(response)
                if response.status_code == 202:
                    logger.debug(f"Contributor stats for {owner}/{repo} not ready (attempt {attempt + 1})")
                    await asyncio.sleep(self.stats_retry_delay)
                    continue
                if response.status_code == 404:
                    return []
                response.raise_for_status()
                data = response.json()
                return data if isinstance(data, list) else []
        finally:
            if self._client is None:
                await client.aclose()

        logger.warning(f"Contributor stats for {owner}/{repo} not ready after {self.stats_retries} attempts")
        return None

    async def count_issues(self, owner: str, repo: str, qualifiers: str = "") -> int:
        """Count issues matching search qualifiers (``is:closed label:bug``)."""
        query = f"repo:{owner}/{repo} is:issue {qualifiers}".strip()
        data = await self._fetch("/search/issues", params={"q": query, "per_page": 1})
        if not data or not isinstance(data, dict):
            return 0
        return data.get("total_count", 0)

    async def fetch_recent_issues(self, owner: str, repo: str, limit: int = 100) -> list[dict]:
        """Fetch the most recently created issues (pull requests excluded)."""
        issues = await self._fetch_all_pages(
            f"/repos/{owner}/{repo}/issues",
            params={"state": "all", "sort": "created", "per_page": min(limit, 100)},
            max_pages=max(1, limit // 100),
        )
        # Pull requests are included in the issues endpoint
        return [i for i in issues if "pull_request" not in i][:limit]

    async def fetch_first_comment_time(self, owner: str, repo: str, number: int) -> datetime | None:
        """Return when the first comment on an issue was posted, if any."""
        comments = await self._fetch(
            f"/repos/{owner}/{repo}/issues/{number}/comments",
            params={"per_page": 1},
        )
        if not comments or not isinstance(comments, list):
            return None
        return parse_timestamp(comments[0].get("created_at"))

    async def fetch_root_contents(self, owner: str, repo: str) -> list[dict]:
        """List the files and directories at the repository root."""
        root = await self._fetch(f"/repos/{owner}/{repo}/contents")
        if not root or not isinstance(root, list):
            return []
        return root

    async def fetch_file_content(self, owner: str, repo: str, path: str) -> str | None:
        """Fetch and decode a file from the default branch."""
        data = await self._fetch(f"/repos/{owner}/{repo}/contents/{path}")
        return self._decode_content(data)

    async def fetch_readme_content(self, owner: str, repo: str) -> str | None:
        """Fetch the README, whatever its file name."""
        data = await self._fetch(f"/repos/{owner}/{repo}/readme")
        return self._decode_content(data)

    def _decode_content(self, data: dict | list | None) -> str | None:
        if not data or not isinstance(data, dict):
            return None

        # File content is base64 encoded
        content = data.get("content", "")
        if not content:
            return None
        try:
            return base64.b64decode(content).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return None

    async def fetch_merged_pulls(self, owner: str, repo: str, limit: int = 30) -> list[dict]:
        """Fetch the most recently closed pull requests that were merged."""
        pulls = await self._fetch_all_pages(
            f"/repos/{owner}/{repo}/pulls",
            params={"state": "closed", "sort": "updated", "direction": "desc", "per_page": 100},
            max_pages=1,
        )
        return [pr for pr in pulls if pr.get("merged_at")][:limit]

    async def fetch_pull_reviews(self, owner: str, repo: str, number: int) -> list[dict]:
        """Fetch the reviews submitted on a pull request."""
        return await self._fetch_all_pages(
            f"/repos/{owner}/{repo}/pulls/{number}/reviews",
            max_pages=1,
        )
