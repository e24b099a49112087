"""Contributor statistics and supplementary reports from commit records."""

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from ..config import AnalysisConfig
from ..errors import InvalidCommitDataError
from ..models import (
    AnalysisMetadata,
    AnalysisResult,
    CommitMessage,
    CommitRecord,
    CommitTime,
    DateRange,
    FileByAuthor,
    MergeCommit,
)
from ..utils.dates import format_iso, max_date, min_date
from .identity import aggregate_stats, deduplicate_contributors, is_bot

logger = logging.getLogger(__name__)

CommitInput = Union[CommitRecord, Mapping[str, Any]]


def validate_commits(
    commits: Iterable[CommitInput], warnings: List[str]
) -> List[CommitRecord]:
    """Coerce raw payloads to CommitRecords, dropping invalid ones with a warning."""
    valid: List[CommitRecord] = []
    for commit in commits:
        if isinstance(commit, CommitRecord):
            valid.append(commit)
            continue
        try:
            valid.append(CommitRecord.from_github_payload(commit))
        except InvalidCommitDataError as e:
            logger.warning(e.message)
            warnings.append(e.message)
    return valid


def analyze_commits(
    commits: Sequence[CommitInput],
    include_bots: Optional[bool] = None,
    config: Optional[AnalysisConfig] = None,
) -> AnalysisResult:
    """Aggregate contributors and build the supplementary reports.

    Invalid payloads are skipped with a warning. Bots are dropped before
    deduplication unless ``include_bots`` is set. The result depends only on
    the input commits and options.
    """
    config = config or AnalysisConfig()
    if include_bots is None:
        include_bots = config.include_bots

    warnings: List[str] = []
    valid = validate_commits(commits, warnings)

    if not valid:
        warnings.append("No valid commits to analyze")
        return AnalysisResult(
            contributors=(),
            commit_messages=(),
            commit_times=(),
            files_by_author=(),
            merges=(),
            warnings=tuple(warnings),
            metadata=AnalysisMetadata(
                total_commits=len(commits),
                analyzed_commits=0,
                total_contributors=0,
                date_range=DateRange(start=None, end=None),
            ),
        )

    if include_bots:
        processed = valid
    else:
        processed = [
            c
            for c in valid
            if not is_bot(c.author_name, c.author_email, config.bot_patterns)
        ]
        dropped = len(valid) - len(processed)
        if dropped:
            logger.debug(f"Filtered {dropped} bot commits")

    contributors = aggregate_stats(deduplicate_contributors(processed))

    commit_messages: List[CommitMessage] = []
    commit_times: List[CommitTime] = []
    files_by_author: List[FileByAuthor] = []
    merges: List[MergeCommit] = []

    for commit in processed:
        author = commit.display_author
        date = format_iso(commit.author_date) or ""

        commit_messages.append(
            CommitMessage(sha=commit.sha, author=author, date=date, message=commit.subject)
        )

        if commit.author_date is not None:
            commit_times.append(
                CommitTime(
                    sha=commit.sha,
                    author=author,
                    date=date,
                    timestamp=int(commit.author_date.timestamp() * 1000),
                )
            )

        for change in commit.files:
            # Presumed binary or generated
            if change.changes > config.max_file_changes:
                continue
            files_by_author.append(
                FileByAuthor(
                    author=author,
                    filename=change.filename,
                    additions=change.additions,
                    deletions=change.deletions,
                    changes=change.changes,
                )
            )

        if commit.is_merge:
            merges.append(
                MergeCommit(
                    sha=commit.sha,
                    author=author,
                    date=date,
                    message=commit.subject,
                    parent_count=len(commit.parent_shas),
                )
            )

    dates = [c.author_date for c in processed]
    return AnalysisResult(
        contributors=tuple(contributors),
        commit_messages=tuple(commit_messages),
        commit_times=tuple(commit_times),
        files_by_author=tuple(files_by_author),
        merges=tuple(merges),
        warnings=tuple(warnings),
        metadata=AnalysisMetadata(
            total_commits=len(commits),
            analyzed_commits=len(processed),
            total_contributors=len(contributors),
            date_range=DateRange(
                start=format_iso(min_date(dates)), end=format_iso(max_date(dates))
            ),
        ),
    )
