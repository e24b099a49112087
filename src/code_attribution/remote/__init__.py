"""Remote commit history: hosted API client, request queue and fetcher."""

from .commit_fetcher import FetchOptions, FetchResult, RemoteCommitFetcher
from .github_client import GitHubCommitsClient
from .network_error_handler import NetworkErrorHandler, RateLimitStatus
from .request_queue import RequestQueue

__all__ = [
    "FetchOptions",
    "FetchResult",
    "GitHubCommitsClient",
    "NetworkErrorHandler",
    "RateLimitStatus",
    "RemoteCommitFetcher",
    "RequestQueue",
]
