"""Tests for the hosted API commits client."""

import httpx
import pytest

from code_attribution.config import RemoteConfig
from code_attribution.errors import (
    NetworkConnectionError,
    RemoteAPIError,
    RepositoryNotFoundError,
)
from code_attribution.remote import GitHubCommitsClient


def _client(handler, config=None):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GitHubCommitsClient(http_client, config=config)


class TestGitHubCommitsClient:
    @pytest.mark.asyncio
    async def test_list_commits_builds_url_and_params(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[], headers={"X-RateLimit-Remaining": "4999"})

        client = _client(handler, RemoteConfig(api_base_url="https://ghe.example.com/api/v3/"))
        await client.list_commits("octo", "demo", branch="main", page=2, per_page=50)

        url = seen[0].url
        assert str(url).startswith("https://ghe.example.com/api/v3/repos/octo/demo/commits?")
        assert url.params["page"] == "2"
        assert url.params["per_page"] == "50"
        assert url.params["sha"] == "main"
        assert "since" not in url.params
        assert client.rate_limit.remaining == 4999

    @pytest.mark.asyncio
    async def test_error_responses_still_update_quota(self):
        def handler(request):
            return httpx.Response(
                404, json={"message": "Not Found"}, headers={"X-RateLimit-Remaining": "12"}
            )

        client = _client(handler)
        with pytest.raises(RepositoryNotFoundError):
            await client.get_commit("octo", "demo", "abc123")

        assert client.rate_limit.remaining == 12

    @pytest.mark.asyncio
    async def test_unexpected_listing_payload(self):
        client = _client(lambda request: httpx.Response(200, json={"not": "a list"}))

        with pytest.raises(RemoteAPIError):
            await client.list_commits("octo", "demo")

    @pytest.mark.asyncio
    async def test_transport_errors_are_classified(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)
        with pytest.raises(NetworkConnectionError):
            await client.list_commits("octo", "demo")

    @pytest.mark.asyncio
    async def test_get_rate_limit_reads_core_resource(self):
        def handler(request):
            assert request.url.path == "/rate_limit"
            return httpx.Response(
                200,
                json={"resources": {"core": {"remaining": 321, "limit": 5000, "reset": 1700000000}}},
            )

        client = _client(handler)
        status = await client.get_rate_limit()

        assert status.remaining == 321
        assert status.limit == 5000
        assert client.rate_limit is status

    @pytest.mark.asyncio
    async def test_get_rate_limit_unavailable(self):
        client = _client(lambda request: httpx.Response(200, json={}))

        with pytest.raises(RemoteAPIError, match="unavailable"):
            await client.get_rate_limit()
