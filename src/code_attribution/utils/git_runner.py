"""
Git command runner with bounded output and timeout classification.

Commands are passed as argument lists and never go through a shell. Output is
spooled to an anonymous temporary file and size-checked before decoding, so a
runaway command cannot exhaust memory. Failures are raised as the attribution
error taxonomy and never retried.
"""

import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..errors import (
    NotARepositoryError,
    OutputLimitExceededError,
    ProcessFailureError,
    ProcessTimeoutError,
)
from .exception_logger import record_exception

logger = logging.getLogger(__name__)

DEFAULT_MAX_OUTPUT_BYTES = 200 * 1024 * 1024

PathLike = Union[str, Path]


@dataclass(frozen=True)
class GitOutput:
    """Decoded output of a successful git invocation."""

    stdout: str
    stderr: str


def get_git_environment(project_dir: Path) -> Dict[str, str]:
    """
    Get environment variables for git commands to handle dubious ownership.

    Adds ``safe.directory`` for the project as config entry 0 and shifts any
    GIT_CONFIG_* entries already present in the calling environment.

    Args:
        project_dir: Path to the repository

    Returns:
        Dictionary of environment variables for git commands
    """
    env = os.environ.copy()

    try:
        existing_count = int(os.environ.get("GIT_CONFIG_COUNT", "0"))
    except ValueError:
        existing_count = 0

    for idx in range(existing_count):
        key = os.environ.get(f"GIT_CONFIG_KEY_{idx}")
        if key is None:
            continue
        env[f"GIT_CONFIG_KEY_{idx + 1}"] = key
        env[f"GIT_CONFIG_VALUE_{idx + 1}"] = os.environ.get(
            f"GIT_CONFIG_VALUE_{idx}", ""
        )

    env["GIT_CONFIG_KEY_0"] = "safe.directory"
    env["GIT_CONFIG_VALUE_0"] = str(Path(project_dir).resolve())
    env["GIT_CONFIG_COUNT"] = str(existing_count + 1)

    return env


def ensure_git_repository(path: PathLike) -> Path:
    """Return ``path`` as a Path if it is a git working tree.

    Raises:
        NotARepositoryError: If the path is missing or has no ``.git`` marker
    """
    repo_path = Path(path)
    if not repo_path.is_dir() or not (repo_path / ".git").exists():
        raise NotARepositoryError(str(repo_path))
    return repo_path


def run_git_command(
    cmd: List[str],
    cwd: PathLike,
    timeout: Optional[float] = None,
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
) -> GitOutput:
    """
    Run a git command and return its decoded output.

    Args:
        cmd: Git command as a list (e.g., ["git", "log", "--numstat"])
        cwd: Working directory for the command
        timeout: Optional wall-clock timeout in seconds
        max_output_bytes: Ceiling for captured stdout

    Returns:
        GitOutput with UTF-8 decoded stdout and stderr

    Raises:
        ProcessFailureError: Non-zero exit, or git could not be started
        OutputLimitExceededError: stdout exceeded ``max_output_bytes``
        ProcessTimeoutError: The timeout expired
    """
    if not cmd or cmd[0] != "git":
        raise ValueError("Command must start with 'git'")

    cwd = Path(cwd)
    env = get_git_environment(cwd)

    with tempfile.TemporaryFile() as stdout_file, tempfile.TemporaryFile() as stderr_file:
        try:
            completed = subprocess.run(
                cmd,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=stdout_file,
                stderr=stderr_file,
                timeout=timeout,
                env=env,
            )
        except subprocess.TimeoutExpired as e:
            error = ProcessTimeoutError(
                f"git command timed out after {timeout}s: {' '.join(cmd)}",
                timeout=timeout,
            )
            _log_git_timeout(error, cmd, cwd, timeout)
            raise error from e
        except OSError as e:
            error = ProcessFailureError(f"Unable to start git: {e}")
            _log_git_failure(error, cmd, cwd)
            raise error from e

        stderr = _read_text(stderr_file, max_output_bytes)

        if completed.returncode != 0:
            error = ProcessFailureError(
                f"git command failed with exit code {completed.returncode}: "
                f"{' '.join(cmd)}: {stderr.strip()}",
                returncode=completed.returncode,
                stderr=stderr,
            )
            _log_git_failure(error, cmd, cwd)
            raise error

        output_size = stdout_file.seek(0, os.SEEK_END)
        if output_size > max_output_bytes:
            error = OutputLimitExceededError(max_output_bytes, output_size)
            _log_git_failure(error, cmd, cwd)
            raise error

        stdout = _read_text(stdout_file, max_output_bytes)

    return GitOutput(stdout=stdout, stderr=stderr)


def _read_text(handle, limit: int) -> str:
    handle.seek(0)
    return handle.read(limit).decode("utf-8", errors="replace")


def _log_git_failure(error: ProcessFailureError, cmd: List[str], cwd: Path) -> None:
    logger.debug(f"git command failed in {cwd}: {error}")
    record_exception(
        error,
        context={
            "git_command": " ".join(cmd),
            "cwd": str(cwd),
            "returncode": error.returncode,
            "stderr": error.stderr,
        },
    )


def _log_git_timeout(
    error: ProcessTimeoutError, cmd: List[str], cwd: Path, timeout: Optional[float]
) -> None:
    logger.debug(f"git command timed out in {cwd} after {timeout}s")
    record_exception(
        error,
        context={
            "git_command": " ".join(cmd),
            "cwd": str(cwd),
            "timeout": timeout,
        },
    )
