"""Secondary signals derived from timelines and commits.

All weekday and hour calculations use UTC.
"""

import re
from collections import Counter
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from ..models import (
    ActiveDay,
    ActiveHour,
    CommitRecord,
    CommitTypeCount,
    Insights,
    LargestCommit,
    QuietPeriod,
    UserTimelineData,
)
from ..utils.dates import parse_date_key

WEEKDAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

DEFAULT_ACTIVE_HOUR = 9
BASIC_ACTIVE_HOUR = 10
TOP_COMMIT_TYPES = 5

_CONVENTIONAL_TYPE = re.compile(
    r"^(feat|fix|docs|style|refactor|test|chore|perf|ci|build|revert)(\(.+\))?:",
    re.IGNORECASE,
)


def commit_type(message: str) -> str:
    match = _CONVENTIONAL_TYPE.match(message)
    return match.group(1).lower() if match else "other"


def most_active_day(users: Iterable[UserTimelineData]) -> ActiveDay:
    """Weekday with the most commits; ties go to the earlier weekday."""
    counts = [0] * 7
    for user in users:
        for metric in user.daily_metrics:
            counts[parse_date_key(metric.date).weekday()] += metric.commits

    best = max(range(7), key=lambda i: (counts[i], -i))
    if counts[best] == 0:
        return ActiveDay(day="Monday", commits=0)
    return ActiveDay(day=WEEKDAY_NAMES[best], commits=counts[best])


def most_active_hour(commits: Iterable[CommitRecord]) -> ActiveHour:
    """UTC hour with the most commits; ties go to the earlier hour."""
    counts = Counter(c.author_date.hour for c in commits if c.author_date is not None)
    if not counts:
        return ActiveHour(hour=DEFAULT_ACTIVE_HOUR, commits=0)
    hour, total = min(counts.items(), key=lambda item: (-item[1], item[0]))
    return ActiveHour(hour=hour, commits=total)


def quietest_period(users: Iterable[UserTimelineData]) -> Optional[QuietPeriod]:
    """Longest gap between consecutive active days, if longer than one day."""
    days = sorted({metric.date for user in users for metric in user.daily_metrics})
    best: Optional[QuietPeriod] = None
    longest = 1
    for current, following in zip(days, days[1:]):
        gap = (parse_date_key(following) - parse_date_key(current)).days
        if gap > longest:
            longest = gap
            best = QuietPeriod(start=current, end=following)
    return best


def build_file_contributors(commits: Iterable[CommitRecord]) -> Dict[str, Set[str]]:
    """Map each touched file to the display names of everyone who touched it."""
    contributors: Dict[str, Set[str]] = {}
    for commit in commits:
        for change in commit.files:
            contributors.setdefault(change.filename, set()).add(commit.display_author)
    return contributors


def solo_contributors(
    users: Iterable[UserTimelineData], file_contributors: Mapping[str, Set[str]]
) -> List[str]:
    """Users with commits who never touched a file somebody else also touched."""
    shared = set()
    for names in file_contributors.values():
        if len(names) > 1:
            shared.update(names)
    return [
        user.user_name
        for user in users
        if user.total_commits > 0 and user.user_name not in shared
    ]


def largest_commit(commits: Sequence[CommitRecord]) -> Optional[LargestCommit]:
    if not commits:
        return None
    largest = commits[0]
    for commit in commits[1:]:
        if commit.additions + commit.deletions > largest.additions + largest.deletions:
            largest = commit
    return LargestCommit(
        sha=largest.sha,
        author=largest.display_author,
        additions=largest.additions,
        deletions=largest.deletions,
    )


def common_commit_types(commits: Iterable[CommitRecord]) -> List[CommitTypeCount]:
    counts = Counter(commit_type(c.message) for c in commits)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [CommitTypeCount(type=t, count=n) for t, n in ranked[:TOP_COMMIT_TYPES]]


def average_subject_length(commits: Sequence[CommitRecord]) -> int:
    if not commits:
        return 0
    total = sum(len(c.subject) for c in commits)
    return int(total / len(commits) + 0.5)


def weekday_weekend_split(users: Iterable[UserTimelineData]) -> Tuple[int, int]:
    weekday = weekend = 0
    for user in users:
        for metric in user.daily_metrics:
            if parse_date_key(metric.date).weekday() >= 5:
                weekend += metric.commits
            else:
                weekday += metric.commits
    return weekday, weekend


def morning_evening_split(commits: Iterable[CommitRecord]) -> Tuple[int, int]:
    morning = evening = 0
    for commit in commits:
        if commit.author_date is None:
            continue
        if 6 <= commit.author_date.hour < 18:
            morning += 1
        else:
            evening += 1
    return morning, evening


def extract_insights(
    users: Sequence[UserTimelineData],
    commits: Sequence[CommitRecord],
    file_contributors: Optional[Mapping[str, Set[str]]] = None,
) -> Insights:
    if file_contributors is None:
        file_contributors = build_file_contributors(commits)
    weekday, weekend = weekday_weekend_split(users)
    morning, evening = morning_evening_split(commits)
    return Insights(
        most_active_day=most_active_day(users),
        most_active_hour=most_active_hour(commits),
        quietest_period=quietest_period(users),
        solo_contributors=tuple(solo_contributors(users, file_contributors)),
        largest_commit=largest_commit(commits),
        common_commit_types=tuple(common_commit_types(commits)),
        avg_commit_message_length=average_subject_length(commits),
        weekday_commits=weekday,
        weekend_commits=weekend,
        morning_commits=morning,
        evening_commits=evening,
    )


def extract_basic_insights(users: Sequence[UserTimelineData]) -> Insights:
    """Insights available from timelines alone, without commit details."""
    weekday, weekend = weekday_weekend_split(users)
    return Insights(
        most_active_day=most_active_day(users),
        most_active_hour=ActiveHour(hour=BASIC_ACTIVE_HOUR, commits=0),
        quietest_period=quietest_period(users),
        solo_contributors=(),
        largest_commit=None,
        common_commit_types=(),
        avg_commit_message_length=0,
        weekday_commits=weekday,
        weekend_commits=weekend,
        morning_commits=0,
        evening_commits=0,
    )
