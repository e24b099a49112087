"""Network error classification for the hosted API client.

Maps httpx exceptions and error responses onto the attribution error
taxonomy. Nothing here retries; quota and availability problems surface to
the caller immediately.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional

import httpx

from ..errors import (
    AttributionError,
    AuthenticationError,
    EmptyRepositoryError,
    ForbiddenError,
    NetworkConnectionError,
    NetworkTimeoutError,
    RateLimitExceededError,
    RemoteAPIError,
    RemoteServerError,
    RepositoryNotFoundError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitStatus:
    """Quota snapshot read from X-RateLimit-* response headers."""

    remaining: int
    limit: Optional[int] = None
    reset_at: Optional[datetime] = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> Optional["RateLimitStatus"]:
        remaining = _int_header(headers, "X-RateLimit-Remaining")
        if remaining is None:
            return None
        reset_epoch = _int_header(headers, "X-RateLimit-Reset")
        return cls(
            remaining=remaining,
            limit=_int_header(headers, "X-RateLimit-Limit"),
            reset_at=(
                datetime.fromtimestamp(reset_epoch, tz=timezone.utc)
                if reset_epoch is not None
                else None
            ),
        )


def _int_header(headers: Mapping[str, str], name: str) -> Optional[int]:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class NetworkErrorHandler:
    """Translates transport failures and error responses into taxonomy errors."""

    def classify_network_error(self, error: Exception) -> AttributionError:
        """Return the taxonomy error for an httpx exception."""
        if isinstance(error, httpx.HTTPStatusError):
            return self.classify_response(error.response)
        if isinstance(error, httpx.TimeoutException):
            if isinstance(error, httpx.ConnectTimeout):
                return NetworkTimeoutError(
                    "Connection timed out. Check your network connection or try again later."
                )
            return NetworkTimeoutError(
                "Request timed out. Check your network connection or try again later."
            )
        if isinstance(error, httpx.ConnectError):
            return NetworkConnectionError(f"Connection failed: {error}")
        if isinstance(error, httpx.TransportError):
            return NetworkConnectionError(f"Network error: {error}")
        return NetworkConnectionError(f"Unknown network error: {error}")

    def classify_response(self, response: httpx.Response) -> AttributionError:
        """Return the taxonomy error for a non-success response."""
        status_code = response.status_code
        detail = self._error_detail(response)
        rate_limit = RateLimitStatus.from_headers(response.headers)

        if status_code == 429 or (
            status_code == 403
            and (
                (rate_limit is not None and rate_limit.remaining == 0)
                or "rate limit" in detail.lower()
            )
        ):
            retry_after = _int_header(response.headers, "Retry-After")
            return RateLimitExceededError(
                reset_at=rate_limit.reset_at if rate_limit else None,
                retry_after=retry_after,
            )

        if status_code == 401:
            return AuthenticationError(f"Authentication failed: {detail}")
        if status_code == 403:
            return ForbiddenError(f"Access forbidden: {detail}")
        if status_code == 404:
            return RepositoryNotFoundError()
        if status_code == 409:
            # The commits endpoint answers 409 for a repository with no commits
            return EmptyRepositoryError()
        if 500 <= status_code < 600:
            return RemoteServerError(
                f"API server is experiencing issues: {detail}", status=status_code
            )
        return RemoteAPIError(detail, status=status_code)

    def _error_detail(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError):
            return response.text or f"HTTP {response.status_code}"
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return f"HTTP {response.status_code}"
