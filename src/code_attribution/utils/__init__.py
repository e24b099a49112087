"""Shared helpers: git process runner, exception log, UTC dates."""

from .exception_logger import ExceptionLogger, record_exception
from .git_runner import (
    DEFAULT_MAX_OUTPUT_BYTES,
    GitOutput,
    ensure_git_repository,
    get_git_environment,
    run_git_command,
)

__all__ = [
    "DEFAULT_MAX_OUTPUT_BYTES",
    "ExceptionLogger",
    "GitOutput",
    "ensure_git_repository",
    "get_git_environment",
    "record_exception",
    "run_git_command",
]
