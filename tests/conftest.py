"""
Shared pytest fixtures for code-attribution tests.

Git-backed tests build throwaway repositories with the real ``git`` binary,
pinning author identity and dates through the environment so results are
reproducible.
"""

import os
import subprocess
from pathlib import Path
from typing import Dict, Optional

import pytest

from code_attribution.models import CommitRecord
from code_attribution.utils.exception_logger import ExceptionLogger

DEFAULT_DATE = "2024-01-15T10:00:00+00:00"


class GitRepoBuilder:
    """Creates commits in a scratch repository."""

    def __init__(self, path: Path):
        self.path = path
        self.path.mkdir(parents=True, exist_ok=True)
        self.git("init", "-q")
        self.git("symbolic-ref", "HEAD", "refs/heads/main")
        self.git("config", "user.name", "Fixture User")
        self.git("config", "user.email", "fixture@example.com")
        self.git("config", "commit.gpgsign", "false")

    def git(self, *args: str, env: Optional[Dict[str, str]] = None) -> str:
        full_env = os.environ.copy()
        full_env["GIT_CONFIG_NOSYSTEM"] = "1"
        if env:
            full_env.update(env)
        result = subprocess.run(
            ["git", *args],
            cwd=self.path,
            env=full_env,
            check=True,
            capture_output=True,
            text=True,
        )
        return result.stdout.strip()

    def write(self, relative_path: str, content: str) -> None:
        target = self.path / relative_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)

    def commit(
        self,
        files: Dict[str, str],
        message: str,
        author: str = "Alice",
        email: str = "alice@example.com",
        date: str = DEFAULT_DATE,
    ) -> str:
        """Write ``files``, commit them as ``author`` and return the new sha."""
        for relative_path, content in files.items():
            self.write(relative_path, content)
        self.git("add", "-A")
        self.git(
            "commit", "-q", "--allow-empty", "-m", message,
            env=self._identity(author, email, date),
        )
        return self.git("rev-parse", "HEAD")

    def merge(
        self,
        branch: str,
        message: str,
        author: str = "Alice",
        email: str = "alice@example.com",
        date: str = DEFAULT_DATE,
    ) -> str:
        self.git(
            "merge", "-q", "--no-ff", "-m", message, branch,
            env=self._identity(author, email, date),
        )
        return self.git("rev-parse", "HEAD")

    @staticmethod
    def _identity(author: str, email: str, date: str) -> Dict[str, str]:
        return {
            "GIT_AUTHOR_NAME": author,
            "GIT_AUTHOR_EMAIL": email,
            "GIT_AUTHOR_DATE": date,
            "GIT_COMMITTER_NAME": author,
            "GIT_COMMITTER_EMAIL": email,
            "GIT_COMMITTER_DATE": date,
        }


@pytest.fixture
def git_repo(tmp_path: Path) -> GitRepoBuilder:
    """Fresh repository on branch ``main`` with no commits."""
    return GitRepoBuilder(tmp_path / "repo")


@pytest.fixture
def make_commit():
    """Factory for in-memory CommitRecords with sensible defaults."""
    counter = {"n": 0}

    def _make(
        author_name: str = "Alice",
        author_email: str = "alice@example.com",
        author_date="2024-01-15T10:00:00Z",
        message: str = "feat: add thing",
        additions: int = 10,
        deletions: int = 2,
        parents: int = 1,
        platform_author_id: Optional[int] = None,
        platform_login: Optional[str] = None,
        avatar_url: Optional[str] = None,
        files=(),
        sha: Optional[str] = None,
    ) -> CommitRecord:
        counter["n"] += 1
        return CommitRecord(
            sha=sha or f"{counter['n']:040x}",
            author_name=author_name,
            author_email=author_email,
            author_date=author_date,
            message=message,
            additions=additions,
            deletions=deletions,
            parent_shas=tuple(f"{i:040d}" for i in range(parents)),
            platform_author_id=platform_author_id,
            platform_login=platform_login,
            avatar_url=avatar_url,
            files=tuple(files),
        )

    return _make


@pytest.fixture(autouse=True)
def reset_exception_logger():
    """Each test starts without a global exception logger."""
    ExceptionLogger.reset()
    yield
    ExceptionLogger.reset()

