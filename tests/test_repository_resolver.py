"""Tests for resolving scored URLs to GitHub repositories."""

import httpx
import pytest
from conftest import json_router, npm_document

from pkgrater.adapters.npm import NpmAdapter
from pkgrater.analyzers.resolver import RepositoryResolver, ResolutionError


def make_resolver(routes: dict) -> RepositoryResolver:
    client = httpx.AsyncClient(transport=httpx.MockTransport(json_router(routes)))
    return RepositoryResolver(NpmAdapter(client=client))


class TestRepositoryResolver:
    """Tests for RepositoryResolver."""

    @pytest.mark.anyio
    async def test_github_url(self) -> None:
        """GitHub URLs resolve without any request."""
        ref = await make_resolver({}).resolve("https://github.com/lodash/lodash")
        assert ref.slug == "lodash/lodash"

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "url",
        ["https://www.npmjs.com/package/express", "https://npmjs.com/package/express/"],
    )
    async def test_npm_url(self, url: str) -> None:
        """npm package URLs resolve through the package's repository field."""
        routes = {
            "/express": npm_document(
                "express", {"4.18.2": {"repository": {"type": "git", "url": "git+https://github.com/expressjs/express.git"}}}
            )
        }
        ref = await make_resolver(routes).resolve(url)
        assert ref.slug == "expressjs/express"

    @pytest.mark.anyio
    async def test_npm_package_without_github_repo(self) -> None:
        """An npm package hosted elsewhere cannot be scored."""
        routes = {
            "/thing": npm_document("thing", {"1.0.0": {"repository": "https://gitlab.com/someone/thing"}}),
        }
        with pytest.raises(ResolutionError, match="no GitHub repository"):
            await make_resolver(routes).resolve("https://www.npmjs.com/package/thing")

    @pytest.mark.anyio
    async def test_unknown_npm_package(self) -> None:
        """Unknown npm packages raise ResolutionError."""
        with pytest.raises(ResolutionError):
            await make_resolver({}).resolve("https://www.npmjs.com/package/nope")

    @pytest.mark.anyio
    async def test_registry_unavailable(self) -> None:
        """Registry outages raise ResolutionError."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
        resolver = RepositoryResolver(NpmAdapter(client=client))
        with pytest.raises(ResolutionError, match="registry error"):
            await resolver.resolve("https://www.npmjs.com/package/express")

    @pytest.mark.anyio
    @pytest.mark.parametrize("url", ["https://example.com/foo", "https://gitlab.com/a/b", "not a url"])
    async def test_unsupported_urls(self, url: str) -> None:
        """Anything else is rejected."""
        with pytest.raises(ResolutionError):
            await make_resolver({}).resolve(url)
