"""
Contributor identity resolution.

The same person often commits under several emails or display names. Each
commit is keyed by the strongest identity signal it carries: the hosted
platform account id, then a real (non no-reply) email, then the display
name. Commits sharing a key are folded into one accumulator.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from ..models import CommitRecord, ContributorStats
from ..utils.dates import days_difference, format_iso

logger = logging.getLogger(__name__)

DEFAULT_BOT_PATTERNS = (
    "bot",
    "[bot]",
    "automated",
    "github-actions",
    "dependabot",
    "renovate",
)

NOREPLY_MARKER = "noreply"


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def normalize_name(name: Optional[str]) -> str:
    """Trim and collapse internal whitespace; empty names become "Unknown"."""
    collapsed = " ".join((name or "").split())
    return collapsed or "Unknown"


def contributor_key(record: CommitRecord) -> str:
    """Canonical key: ``platform:<id>`` > ``email:<email>`` > ``name:<name>``."""
    if record.platform_author_id is not None:
        return f"platform:{record.platform_author_id}"

    email = normalize_email(record.author_email)
    if email and NOREPLY_MARKER not in email:
        return f"email:{email}"

    return f"name:{normalize_name(record.author_name)}"


def is_bot(
    name: Optional[str],
    email: Optional[str],
    patterns: Sequence[str] = DEFAULT_BOT_PATTERNS,
) -> bool:
    """Case-insensitive substring match of name or email against bot patterns."""
    haystacks = ((name or "").lower(), (email or "").lower())
    return any(pattern in text for pattern in patterns for text in haystacks)


@dataclass
class ContributorAccumulator:
    """Mutable per-contributor totals, owned by a single aggregation pass."""

    canonical_key: str
    name: str
    emails: Set[str] = field(default_factory=set)
    platform_id: Optional[int] = None
    platform_login: Optional[str] = None
    avatar_url: Optional[str] = None
    commit_count: int = 0
    additions: int = 0
    deletions: int = 0
    commit_dates: List[datetime] = field(default_factory=list)
    merge_commit_count: int = 0

    def add(self, record: CommitRecord) -> None:
        email = normalize_email(record.author_email)
        if email:
            self.emails.add(email)
        self.commit_count += 1
        self.additions += record.additions
        self.deletions += record.deletions
        if record.author_date is not None:
            self.commit_dates.append(record.author_date)
        if record.is_merge:
            self.merge_commit_count += 1
        # Platform identity is more authoritative than a raw git name
        if record.platform_login and not self.platform_login:
            self.platform_login = record.platform_login
            self.name = record.platform_login
        if self.avatar_url is None and record.avatar_url:
            self.avatar_url = record.avatar_url

    def to_stats(self) -> ContributorStats:
        dates = sorted(self.commit_dates)
        first = dates[0] if dates else None
        last = dates[-1] if dates else None
        emails = tuple(sorted(self.emails))
        return ContributorStats(
            canonical_key=self.canonical_key,
            name=self.name,
            email=emails[0] if emails else "",
            emails=emails,
            platform_id=self.platform_id,
            platform_login=self.platform_login,
            avatar_url=self.avatar_url,
            commit_count=self.commit_count,
            additions=self.additions,
            deletions=self.deletions,
            net_lines=self.additions - self.deletions,
            first_commit_date=format_iso(first),
            last_commit_date=format_iso(last),
            active_days=days_difference(first, last),
            merge_commit_count=self.merge_commit_count,
            is_merge_committer=self.merge_commit_count > 0,
        )


def deduplicate_contributors(
    records: Iterable[CommitRecord],
) -> Dict[str, ContributorAccumulator]:
    """Group commits by canonical key into accumulators."""
    contributors: Dict[str, ContributorAccumulator] = {}

    for record in records:
        key = contributor_key(record)
        accumulator = contributors.get(key)
        if accumulator is None:
            accumulator = ContributorAccumulator(
                canonical_key=key,
                name=normalize_name(record.author_name),
                platform_id=record.platform_author_id,
                platform_login=record.platform_login,
                avatar_url=record.avatar_url,
            )
            contributors[key] = accumulator
        accumulator.add(record)

    return contributors


def aggregate_stats(
    contributors: Mapping[str, ContributorAccumulator],
) -> List[ContributorStats]:
    """Reduce accumulators to stats ordered by commit count, then key."""
    stats = [accumulator.to_stats() for accumulator in contributors.values()]
    stats.sort(key=lambda s: (-s.commit_count, s.canonical_key))
    return stats


def resolve_contributors(
    records: Iterable[CommitRecord],
    include_bots: bool = False,
    bot_patterns: Sequence[str] = DEFAULT_BOT_PATTERNS,
) -> List[ContributorStats]:
    """Bot filtering, deduplication and aggregation in one call."""
    if not include_bots:
        records = [
            r for r in records if not is_bot(r.author_name, r.author_email, bot_patterns)
        ]
    return aggregate_stats(deduplicate_contributors(records))
