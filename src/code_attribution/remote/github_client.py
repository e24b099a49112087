"""Thin async client for the hosted API commit endpoints.

The authenticated ``httpx.AsyncClient`` is supplied by the caller. Every call
goes through the shared RequestQueue and refreshes the quota snapshot from
the response headers, successful or not.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from ..config import RemoteConfig
from ..errors import RemoteAPIError
from .network_error_handler import NetworkErrorHandler, RateLimitStatus
from .request_queue import RequestQueue

logger = logging.getLogger(__name__)


class GitHubCommitsClient:
    """List and detail access to a repository's commits."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        request_queue: Optional[RequestQueue] = None,
        config: Optional[RemoteConfig] = None,
        error_handler: Optional[NetworkErrorHandler] = None,
    ):
        self.config = config or RemoteConfig()
        self.http_client = http_client
        self.request_queue = request_queue or RequestQueue(
            self.config.max_concurrent_requests
        )
        self.base_url = self.config.api_base_url
        self._error_handler = error_handler or NetworkErrorHandler()
        self._rate_limit: Optional[RateLimitStatus] = None
        self._timeout = httpx.Timeout(
            self.config.request_timeout, connect=self.config.connect_timeout
        )

    @property
    def rate_limit(self) -> Optional[RateLimitStatus]:
        """Most recent quota snapshot, or None before the first response."""
        return self._rate_limit

    async def list_commits(
        self,
        owner: str,
        repo: str,
        branch: Optional[str] = None,
        page: int = 1,
        per_page: int = 100,
        since: Optional[str] = None,
        until: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"per_page": per_page, "page": page}
        if branch:
            params["sha"] = branch
        if since:
            params["since"] = since
        if until:
            params["until"] = until

        data = await self._get_json(f"/repos/{owner}/{repo}/commits", params)
        if not isinstance(data, list):
            raise RemoteAPIError("Unexpected commit listing payload", status=502)
        return data

    async def get_commit(self, owner: str, repo: str, sha: str) -> Dict[str, Any]:
        data = await self._get_json(f"/repos/{owner}/{repo}/commits/{sha}")
        if not isinstance(data, dict):
            raise RemoteAPIError(f"Unexpected payload for commit {sha}", status=502)
        return data

    async def get_rate_limit(self) -> RateLimitStatus:
        """Query the quota endpoint and return the core resource status."""
        data = await self._get_json("/rate_limit")
        core: Dict[str, Any] = {}
        if isinstance(data, dict):
            core = (data.get("resources") or {}).get("core") or data.get("rate") or {}

        if isinstance(core.get("remaining"), int):
            reset = core.get("reset")
            self._rate_limit = RateLimitStatus(
                remaining=core["remaining"],
                limit=core.get("limit"),
                reset_at=(
                    datetime.fromtimestamp(reset, tz=timezone.utc)
                    if isinstance(reset, int)
                    else None
                ),
            )

        if self._rate_limit is None:
            raise RemoteAPIError("Rate limit status unavailable", status=502)
        return self._rate_limit

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self.request_queue.submit(lambda: self._send(path, params))
        try:
            return response.json()
        except ValueError as e:
            raise RemoteAPIError(f"Invalid JSON from {path}", status=502) from e

    async def _send(self, path: str, params: Optional[Dict[str, Any]]) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            response = await self.http_client.get(
                url, params=params, timeout=self._timeout
            )
        except httpx.HTTPError as e:
            logger.debug(f"Request to {path} failed: {e}")
            raise self._error_handler.classify_network_error(e) from e

        status = RateLimitStatus.from_headers(response.headers)
        if status is not None:
            self._rate_limit = status

        if response.status_code >= 400:
            error = self._error_handler.classify_response(response)
            logger.debug(f"{path} answered {response.status_code}: {error.message}")
            raise error

        return response
