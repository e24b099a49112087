"""Per-user daily activity timelines."""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ..config import Config
from ..git.commits import CommitStatsEngine
from ..models import (
    CommitRecord,
    DailyCount,
    DailyMetric,
    LifetimeStats,
    RepositoryTimeline,
    UserContribution,
    UserTimelineData,
    WeeklyStat,
)
from ..utils.dates import date_key, format_iso, parse_date_key, utc_now
from .aggregation import add_months, week_start
from .identity import contributor_key, normalize_email

logger = logging.getLogger(__name__)


def empty_timeline() -> RepositoryTimeline:
    return RepositoryTimeline(
        repo_first_commit=None,
        repo_last_commit=None,
        users=(),
        total_commits=0,
        total_additions=0,
        total_deletions=0,
        total_net_lines=0,
    )


def build_repository_timeline(
    commits: Iterable[CommitRecord],
    avatar_urls: Optional[Mapping[str, str]] = None,
) -> RepositoryTimeline:
    """Group commits by contributor key and UTC day.

    Commits without an author date cannot be placed on a day and are left
    out of the timeline totals. A user's display name comes from their
    earliest commit.
    """
    avatar_urls = avatar_urls or {}
    dated = sorted(
        (c for c in commits if c.author_date is not None),
        key=lambda c: (c.author_date, c.sha),
    )
    if not dated:
        return empty_timeline()

    days: Dict[str, Dict[str, List[int]]] = {}
    names: Dict[str, str] = {}
    emails: Dict[str, str] = {}
    avatars: Dict[str, str] = {}

    for commit in dated:
        user_id = contributor_key(commit)
        names.setdefault(user_id, commit.display_author)
        email = normalize_email(commit.author_email)
        if email and (user_id not in emails or email < emails[user_id]):
            emails[user_id] = email
        if commit.avatar_url:
            avatars.setdefault(user_id, commit.avatar_url)

        bucket = days.setdefault(user_id, {}).setdefault(
            date_key(commit.author_date), [0, 0, 0]
        )
        bucket[0] += 1
        bucket[1] += commit.additions
        bucket[2] += commit.deletions

    users = []
    for user_id, per_day in days.items():
        daily = tuple(
            DailyMetric(
                date=day,
                user_id=user_id,
                user_name=names[user_id],
                commits=values[0],
                additions=values[1],
                deletions=values[2],
                net_lines=values[1] - values[2],
            )
            for day, values in sorted(per_day.items())
        )
        users.append(
            UserTimelineData(
                user_id=user_id,
                user_name=names[user_id],
                email=emails.get(user_id),
                avatar_url=avatar_urls.get(user_id) or avatars.get(user_id),
                first_commit_date=daily[0].date,
                last_commit_date=daily[-1].date,
                daily_metrics=daily,
                weekly_metrics=(),
                total_commits=sum(m.commits for m in daily),
                total_additions=sum(m.additions for m in daily),
                total_deletions=sum(m.deletions for m in daily),
                total_net_lines=sum(m.net_lines for m in daily),
            )
        )
    users.sort(key=lambda u: (u.first_commit_date, u.user_id))

    total_additions = sum(c.additions for c in dated)
    total_deletions = sum(c.deletions for c in dated)
    return RepositoryTimeline(
        repo_first_commit=format_iso(dated[0].author_date),
        repo_last_commit=format_iso(dated[-1].author_date),
        users=tuple(users),
        total_commits=len(dated),
        total_additions=total_additions,
        total_deletions=total_deletions,
        total_net_lines=total_additions - total_deletions,
    )


def default_since(max_years: int) -> str:
    """Date ``max_years`` years before today as YYYY-MM-DD."""
    return add_months(utc_now().date(), -12 * max_years).isoformat()


def extract_local_timeline(
    repo_path: Union[str, Path],
    config: Optional[Config] = None,
    since: Optional[str] = None,
    until: Optional[str] = None,
    branch: Optional[str] = None,
    exclude_merges: bool = True,
) -> Tuple[RepositoryTimeline, List[CommitRecord]]:
    """Timeline of a local clone, bounded by the configured look-back and cap."""
    config = config or Config()
    engine = CommitStatsEngine(config.commit_stats, config.git)
    records = engine.read_commits(
        repo_path,
        exclude_merges=exclude_merges,
        since=since or default_since(config.timeline.max_years),
        until=until,
        branch=branch,
        max_count=config.timeline.max_commits,
    )
    logger.info(f"Read {len(records)} commits for timeline of {repo_path}")
    return build_repository_timeline(records), records


def build_user_contribution(
    user: UserTimelineData, avatar_url: Optional[str] = None
) -> UserContribution:
    """Lifetime totals, per-day series and weekly stats for one user."""
    daily = user.daily_metrics
    weeks: Dict[str, List[int]] = {}
    for metric in daily:
        start = week_start(parse_date_key(metric.date))
        bucket = weeks.setdefault(start.isoformat(), [0, 0])
        bucket[0] += metric.commits
        bucket[1] += metric.net_lines

    return UserContribution(
        user_id=user.user_id,
        user_name=user.user_name,
        email=user.email,
        avatar_url=avatar_url or user.avatar_url,
        lifetime_stats=LifetimeStats(
            commits=sum(m.commits for m in daily),
            additions=sum(m.additions for m in daily),
            deletions=sum(m.deletions for m in daily),
            net_lines=sum(m.net_lines for m in daily),
            first_commit=daily[0].date if daily else None,
            last_commit=daily[-1].date if daily else None,
        ),
        daily_commits=tuple(DailyCount(m.date, m.commits) for m in daily),
        daily_additions=tuple(DailyCount(m.date, m.additions) for m in daily),
        daily_deletions=tuple(DailyCount(m.date, m.deletions) for m in daily),
        daily_net_lines=tuple(DailyCount(m.date, m.net_lines) for m in daily),
        weekly_stats=tuple(
            WeeklyStat(week=week, commits=values[0], net_lines=values[1])
            for week, values in sorted(weeks.items())
        ),
    )


def build_user_contributions(timeline: RepositoryTimeline) -> List[UserContribution]:
    return [build_user_contribution(user) for user in timeline.users]
