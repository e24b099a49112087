"""
Error taxonomy for attribution analysis.

Every failure that crosses a component boundary is an AttributionError with a
stable machine-readable ``code`` and an HTTP-like ``status`` so callers can
render it without inspecting the message text.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


class AttributionError(Exception):
    """Base class for all attribution errors."""

    code = "ATTRIBUTION_ERROR"
    status = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status


class NotARepositoryError(AttributionError):
    """Target path is missing or is not a git working tree."""

    code = "NOT_A_REPOSITORY"
    status = 400

    def __init__(self, path: str):
        super().__init__(f"Not a git repository: {path}")
        self.path = path


class ProcessFailureError(AttributionError):
    """External process exited non-zero or could not be started."""

    code = "PROCESS_FAILURE"
    status = 500

    def __init__(
        self, message: str, returncode: Optional[int] = None, stderr: str = ""
    ):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class OutputLimitExceededError(ProcessFailureError):
    """Captured process output grew past the configured ceiling."""

    code = "OUTPUT_LIMIT_EXCEEDED"

    def __init__(self, limit_bytes: int, actual_bytes: int):
        super().__init__(
            f"Process output of {actual_bytes} bytes exceeds limit of {limit_bytes} bytes"
        )
        self.limit_bytes = limit_bytes
        self.actual_bytes = actual_bytes


class ProcessTimeoutError(AttributionError):
    """External process exceeded its wall-clock timeout."""

    code = "PROCESS_TIMEOUT"
    status = 504

    def __init__(self, message: str, timeout: Optional[float] = None):
        super().__init__(message)
        self.timeout = timeout


class RateLimitLowError(AttributionError):
    """Remaining API quota fell below the safety threshold."""

    code = "RATE_LIMIT_LOW"
    status = 429

    def __init__(self, remaining: int, reset_at: Optional[datetime] = None):
        reset_hint = (
            f" Resets at {reset_at.isoformat()}." if reset_at is not None else ""
        )
        super().__init__(
            f"API rate limit too low to continue ({remaining} requests remaining).{reset_hint}"
        )
        self.remaining = remaining
        self.reset_at = reset_at


class RateLimitExceededError(AttributionError):
    """The hosted API rejected a request because the quota is exhausted."""

    code = "RATE_LIMIT_EXCEEDED"
    status = 403

    def __init__(
        self,
        message: str = "API rate limit exceeded. Please try again later.",
        reset_at: Optional[datetime] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.reset_at = reset_at
        self.retry_after = retry_after


class EmptyRepositoryError(AttributionError):
    """The repository has no commits at all."""

    code = "EMPTY_REPOSITORY"
    status = 404

    def __init__(self, message: str = "This repository has no commits yet."):
        super().__init__(message)


class NoNonMergeCommitsError(AttributionError):
    """The repository has commits, but every one of them is a merge."""

    code = "NO_NON_MERGE_COMMITS"
    status = 404

    def __init__(
        self,
        message: str = "No non-merge commits found. This repository only contains merge commits.",
    ):
        super().__init__(message)


class InvalidCommitDataError(AttributionError):
    """A commit payload failed validation."""

    code = "INVALID_COMMIT_DATA"
    status = 422


class NetworkTimeoutError(AttributionError):
    """A remote request did not complete within its timeout."""

    code = "NETWORK_TIMEOUT"
    status = 408


class NetworkConnectionError(AttributionError):
    """A remote request could not reach the server."""

    code = "NETWORK_ERROR"
    status = 503


class RemoteAPIError(AttributionError):
    """The hosted API answered with an unexpected error status."""

    code = "GITHUB_API_ERROR"
    status = 502

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message, status=status)


class AuthenticationError(RemoteAPIError):
    code = "UNAUTHORIZED"
    status = 401

    def __init__(self, message: str = "Authentication with the API failed."):
        super().__init__(message, status=401)


class ForbiddenError(RemoteAPIError):
    code = "FORBIDDEN"
    status = 403

    def __init__(self, message: str = "Access to this repository is forbidden."):
        super().__init__(message, status=403)


class RepositoryNotFoundError(RemoteAPIError):
    code = "NOT_FOUND"
    status = 404

    def __init__(self, message: str = "Repository or branch not found."):
        super().__init__(message, status=404)


class RemoteServerError(RemoteAPIError):
    code = "REMOTE_SERVER_ERROR"


class AnalysisCancelledError(AttributionError):
    """The caller cancelled the analysis before it finished."""

    code = "CANCELLED"
    status = 499

    def __init__(self, message: str = "Analysis was cancelled."):
        super().__init__(message)


@dataclass(frozen=True)
class ErrorResponse:
    """Caller-facing rendering of an error."""

    message: str
    code: str
    status: int


def to_error_response(error: BaseException, debug: bool = False) -> ErrorResponse:
    """Convert any exception into an ErrorResponse.

    Taxonomy errors keep their message and code. Anything else is reported as
    an internal error; its message is only exposed when ``debug`` is set.
    """
    if isinstance(error, AttributionError):
        return ErrorResponse(message=error.message, code=error.code, status=error.status)

    message = str(error) if debug and str(error) else "An unexpected error occurred."
    return ErrorResponse(message=message, code="INTERNAL_ERROR", status=500)
