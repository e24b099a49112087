"""Fixtures for tests that talk to a fake hosted API over httpx.MockTransport."""

import re
from typing import Any, Dict, List, Optional, Set

import httpx
import pytest

from code_attribution.config import RemoteConfig
from code_attribution.remote import GitHubCommitsClient, RemoteCommitFetcher

RESET_EPOCH = 1700000000

_DETAIL_PATH = re.compile(r"^/repos/[^/]+/[^/]+/commits/([0-9a-f]+)$")
_LIST_PATH = re.compile(r"^/repos/[^/]+/[^/]+/commits$")


def commit_payload(
    index: int,
    login: Optional[str] = "alice",
    name: str = "Alice",
    email: str = "alice@example.com",
    date: str = "2024-01-15T10:00:00Z",
    message: str = "feat: change",
    merge: bool = False,
    stats: Optional[Dict[str, int]] = None,
    files: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """Commit object shaped like the hosted API's listing and detail payloads."""
    payload: Dict[str, Any] = {
        "sha": f"{index + 1:040x}",
        "commit": {
            "author": {"name": name, "email": email, "date": date},
            "message": message,
        },
        "author": (
            {
                "login": login,
                "id": 1000 + sum(map(ord, login)),
                "avatar_url": f"https://avatars.example.com/{login}",
            }
            if login
            else None
        ),
        "parents": [{"sha": "0" * 40}, {"sha": "1" * 40}] if merge else [{"sha": "0" * 40}],
    }
    if stats is not None:
        payload["stats"] = dict(stats, total=stats["additions"] + stats["deletions"])
    if files is not None:
        payload["files"] = files
    return payload


class FakeGitHubAPI:
    """In-memory commits API; records every request path and query."""

    def __init__(self, commits: Optional[List[Dict[str, Any]]] = None):
        self.commits: List[Dict[str, Any]] = commits or []
        self.remaining = 5000
        self.listing_status: Optional[int] = None
        self.listing_body: Dict[str, Any] = {"message": "Git Repository is empty."}
        self.failing_details: Set[str] = set()
        self.requests: List[httpx.Request] = []

    @property
    def listing_calls(self) -> List[httpx.Request]:
        return [r for r in self.requests if _LIST_PATH.match(r.url.path)]

    @property
    def detail_calls(self) -> List[httpx.Request]:
        return [r for r in self.requests if _DETAIL_PATH.match(r.url.path)]

    def _headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Limit": "5000",
            "X-RateLimit-Reset": str(RESET_EPOCH),
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/rate_limit":
            return httpx.Response(
                200,
                json={
                    "resources": {
                        "core": {
                            "remaining": self.remaining,
                            "limit": 5000,
                            "reset": RESET_EPOCH,
                        }
                    }
                },
                headers=self._headers(),
            )

        if _LIST_PATH.match(path):
            if self.listing_status is not None:
                return httpx.Response(
                    self.listing_status, json=self.listing_body, headers=self._headers()
                )
            page = int(request.url.params.get("page", "1"))
            per_page = int(request.url.params.get("per_page", "30"))
            start = (page - 1) * per_page
            items = [
                {k: v for k, v in c.items() if k not in ("stats", "files")}
                for c in self.commits[start : start + per_page]
            ]
            return httpx.Response(200, json=items, headers=self._headers())

        detail = _DETAIL_PATH.match(path)
        if detail:
            sha = detail.group(1)
            if sha in self.failing_details:
                return httpx.Response(
                    500, json={"message": "Server Error"}, headers=self._headers()
                )
            for commit in self.commits:
                if commit["sha"] == sha:
                    return httpx.Response(200, json=commit, headers=self._headers())
            return httpx.Response(404, json={"message": "Not Found"}, headers=self._headers())

        return httpx.Response(404, json={"message": "Not Found"})

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_api() -> FakeGitHubAPI:
    return FakeGitHubAPI()


@pytest.fixture
def remote_config() -> RemoteConfig:
    return RemoteConfig(page_delay=0, inter_batch_delay=0)


@pytest.fixture
def build_fetcher(fake_api, remote_config):
    """Returns a factory producing a fetcher wired to ``fake_api``."""

    def _build(config: Optional[RemoteConfig] = None) -> RemoteCommitFetcher:
        config = config or remote_config
        client = GitHubCommitsClient(fake_api.http_client(), config=config)
        return RemoteCommitFetcher(client, config=config)

    return _build


@pytest.fixture
def make_payload():
    return commit_payload
