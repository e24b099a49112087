"""Contributor aggregation, timelines, period bucketing and insights."""

from .aggregation import (
    MONTH,
    QUARTER,
    TIME_RANGES,
    WEEK,
    YEAR,
    aggregate_all_users_to_weekly,
    aggregate_timeline,
    aggregate_user_to_weekly,
    date_range_for_period,
    fill_timeline_gaps,
    filter_by_date_range,
    recent_time_range,
)
from .contributions import analyze_commits, validate_commits
from .identity import (
    ContributorAccumulator,
    aggregate_stats,
    contributor_key,
    deduplicate_contributors,
    is_bot,
    resolve_contributors,
)
from .insights import build_file_contributors, extract_basic_insights, extract_insights
from .timeline import (
    build_repository_timeline,
    build_user_contribution,
    build_user_contributions,
    extract_local_timeline,
)

__all__ = [
    "MONTH",
    "QUARTER",
    "TIME_RANGES",
    "WEEK",
    "YEAR",
    "ContributorAccumulator",
    "aggregate_all_users_to_weekly",
    "aggregate_stats",
    "aggregate_timeline",
    "aggregate_user_to_weekly",
    "analyze_commits",
    "build_file_contributors",
    "build_repository_timeline",
    "build_user_contribution",
    "build_user_contributions",
    "contributor_key",
    "date_range_for_period",
    "deduplicate_contributors",
    "extract_basic_insights",
    "extract_insights",
    "extract_local_timeline",
    "fill_timeline_gaps",
    "filter_by_date_range",
    "is_bot",
    "recent_time_range",
    "resolve_contributors",
    "validate_commits",
]
