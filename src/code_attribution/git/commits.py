"""Per-author commit statistics from a single ``git log --numstat`` pass."""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from ..config import CommitStatsConfig, GitConfig
from ..models import (
    CommitAuthorStats,
    CommitRecord,
    CommitStatsResult,
    FileChange,
    TimelineEntry,
)
from ..utils.git_runner import ensure_git_repository, run_git_command
from .blame import AuthorKey, author_key

logger = logging.getLogger(__name__)

LOG_FORMAT = "%H%x09%aN%x09%aE%x09%aI%x09%P%x09%s"

_HEADER_LINE = re.compile(r"^[0-9a-f]{40,64}\t")
_NUMSTAT_LINE = re.compile(r"^(\d+|-)\t(\d+|-)\t(.*)$")


@dataclass
class _PendingCommit:
    sha: str
    name: str
    email: str
    date: str
    parents: List[str]
    subject: str
    files: List[FileChange] = field(default_factory=list)

    def to_record(self) -> CommitRecord:
        return CommitRecord(
            sha=self.sha,
            author_name=self.name,
            author_email=self.email,
            author_date=self.date,
            message=self.subject,
            additions=sum(f.additions for f in self.files),
            deletions=sum(f.deletions for f in self.files),
            parent_shas=tuple(self.parents),
            files=tuple(self.files),
        )


def _stat_value(raw: str) -> int:
    # Binary files report "-"
    return 0 if raw == "-" else int(raw)


def parse_numstat_log(output: str) -> List[CommitRecord]:
    """Parse ``git log --numstat --format=LOG_FORMAT`` output in one pass.

    Header lines carry hash, author name, email, ISO date, parents and
    subject separated by tabs; the numstat lines that follow belong to the
    most recent header.
    """
    records: List[CommitRecord] = []
    current: Optional[_PendingCommit] = None

    for line in output.split("\n"):
        if not line.strip():
            continue

        if _HEADER_LINE.match(line):
            if current is not None:
                records.append(current.to_record())
            parts = line.split("\t", 5)
            parts += [""] * (6 - len(parts))
            sha, name, email, date, parents, subject = parts
            current = _PendingCommit(
                sha=sha,
                name=name.strip(),
                email=email,
                date=date.strip(),
                parents=parents.split(),
                subject=subject,
            )
            continue

        stat = _NUMSTAT_LINE.match(line)
        if stat and current is not None:
            additions = _stat_value(stat.group(1))
            deletions = _stat_value(stat.group(2))
            current.files.append(
                FileChange(
                    filename=stat.group(3),
                    additions=additions,
                    deletions=deletions,
                    changes=additions + deletions,
                )
            )

    if current is not None:
        records.append(current.to_record())

    return records


class CommitStatsEngine:
    """Runs the log query and folds it into per-author counters."""

    def __init__(
        self,
        config: Optional[CommitStatsConfig] = None,
        git_config: Optional[GitConfig] = None,
    ):
        self.config = config or CommitStatsConfig()
        self.git_config = git_config or GitConfig()

    def build_log_command(
        self,
        exclude_merges: bool,
        since: Optional[str] = None,
        until: Optional[str] = None,
        branch: Optional[str] = None,
        max_count: Optional[int] = None,
    ) -> List[str]:
        cmd = ["git", "log", "--use-mailmap", "--numstat", f"--format={LOG_FORMAT}"]
        if exclude_merges:
            cmd.append("--no-merges")
        if since:
            cmd.append(f"--since={since}")
        if until:
            cmd.append(f"--until={until}")
        if max_count:
            cmd.append(f"--max-count={max_count}")
        if branch:
            cmd.append(branch)
        # Keep revision and path arguments apart
        cmd.append("--")
        return cmd

    def read_commits(
        self,
        repo_path: Union[str, Path],
        exclude_merges: Optional[bool] = None,
        since: Optional[str] = None,
        until: Optional[str] = None,
        branch: Optional[str] = None,
        max_count: Optional[int] = None,
    ) -> List[CommitRecord]:
        """Return the commits matching the filters, newest first.

        Raises:
            NotARepositoryError: If ``repo_path`` is not a git working tree
            ProcessFailureError: If git log fails
            ProcessTimeoutError: If git log times out
        """
        repo_path = ensure_git_repository(repo_path)
        if exclude_merges is None:
            exclude_merges = self.config.exclude_merges

        cmd = self.build_log_command(
            exclude_merges,
            since=since or self.config.since,
            until=until or self.config.until,
            branch=branch or self.config.branch,
            max_count=max_count,
        )

        if not self._has_commits(repo_path):
            logger.info(f"Repository {repo_path} has no commits yet")
            return []

        output = run_git_command(
            cmd,
            cwd=repo_path,
            timeout=self.git_config.timeout_seconds,
            max_output_bytes=self.git_config.max_output_bytes,
        )
        return parse_numstat_log(output.stdout)

    def compute(
        self,
        repo_path: Union[str, Path],
        exclude_merges: Optional[bool] = None,
        since: Optional[str] = None,
        until: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> CommitStatsResult:
        """Per-author commit, addition and deletion counts plus a timeline."""
        records = self.read_commits(
            repo_path,
            exclude_merges=exclude_merges,
            since=since,
            until=until,
            branch=branch,
        )
        return summarize_commits(records)

    def _has_commits(self, repo_path: Path) -> bool:
        # git log fails outright on a branch with no commits
        output = run_git_command(
            ["git", "rev-list", "--all", "--max-count=1"],
            cwd=repo_path,
            timeout=self.git_config.timeout_seconds,
        )
        return bool(output.stdout.strip())


def summarize_commits(records: List[CommitRecord]) -> CommitStatsResult:
    """Fold commit records into per-author counters keyed like blame output."""
    commit_counts: Counter = Counter()
    additions: Counter = Counter()
    deletions: Counter = Counter()
    timeline: List[TimelineEntry] = []

    for record in records:
        key: AuthorKey = author_key(record.author_name, record.author_email)
        commit_counts[key] += 1
        additions[key] += record.additions
        deletions[key] += record.deletions
        if record.author_date is not None:
            timeline.append(TimelineEntry(date=record.author_date, author=key[0]))

    authors = sorted(
        (
            CommitAuthorStats(
                name=name,
                email=email,
                commits=count,
                additions=additions[(name, email)],
                deletions=deletions[(name, email)],
            )
            for (name, email), count in commit_counts.items()
        ),
        key=lambda a: (-a.commits, a.name, a.email or ""),
    )
    timeline.sort(key=lambda entry: (entry.date, entry.author))

    return CommitStatsResult(
        authors=tuple(authors),
        timeline=tuple(timeline),
        commits=tuple(records),
    )


def compute_commit_stats(
    repo_path: Union[str, Path],
    config: Optional[CommitStatsConfig] = None,
    git_config: Optional[GitConfig] = None,
    **filters,
) -> CommitStatsResult:
    """Convenience wrapper around CommitStatsEngine.compute."""
    return CommitStatsEngine(config=config, git_config=git_config).compute(
        repo_path, **filters
    )
