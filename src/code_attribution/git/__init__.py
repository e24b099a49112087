"""Local git evidence: blame line ownership and commit history stats."""

from .blame import (
    BlameAttributionEngine,
    author_key,
    compute_blame_attribution,
    default_worker_count,
    parse_line_porcelain,
    parse_ls_files_eol,
)
from .commits import (
    CommitStatsEngine,
    compute_commit_stats,
    parse_numstat_log,
    summarize_commits,
)

__all__ = [
    "BlameAttributionEngine",
    "CommitStatsEngine",
    "author_key",
    "compute_blame_attribution",
    "compute_commit_stats",
    "default_worker_count",
    "parse_line_porcelain",
    "parse_ls_files_eol",
    "parse_numstat_log",
    "summarize_commits",
]
