"""Bucketing of daily metrics into weeks, months, quarters and years."""

import calendar
import dataclasses
from collections import Counter
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple, Union

from ..models import AggregatedPeriod, DailyMetric, UserTimelineData, WeeklyMetric
from ..utils.dates import utc_now

WEEK = "week"
MONTH = "month"
QUARTER = "quarter"
YEAR = "year"
TIME_RANGES = (WEEK, MONTH, QUARTER, YEAR)

DateLike = Union[str, date]


def _as_date(value: DateLike) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def _check_range(time_range: str) -> None:
    if time_range not in TIME_RANGES:
        raise ValueError(f"Unknown time range {time_range!r}; expected one of {TIME_RANGES}")


def add_months(day: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def period_start(day: DateLike, time_range: str) -> date:
    _check_range(time_range)
    day = _as_date(day)
    if time_range == WEEK:
        return week_start(day)
    if time_range == MONTH:
        return day.replace(day=1)
    if time_range == QUARTER:
        return date(day.year, (day.month - 1) // 3 * 3 + 1, 1)
    return date(day.year, 1, 1)


def next_period(start: date, time_range: str) -> date:
    if time_range == WEEK:
        return start + timedelta(days=7)
    if time_range == MONTH:
        return add_months(start, 1)
    if time_range == QUARTER:
        return add_months(start, 3)
    return date(start.year + 1, start.month, start.day)


def week_label(start: date) -> str:
    return f"Week of {calendar.month_abbr[start.month]} {start.day}, {start.year}"


def period_label(start: date, time_range: str) -> str:
    if time_range == WEEK:
        return week_label(start)
    if time_range == MONTH:
        return f"{calendar.month_name[start.month]} {start.year}"
    if time_range == QUARTER:
        return f"Q{(start.month - 1) // 3 + 1} {start.year}"
    return str(start.year)


def aggregate_timeline(
    daily_metrics: Iterable[DailyMetric], time_range: str
) -> List[AggregatedPeriod]:
    """Sum daily metrics per period and pick each period's top contributor.

    The top contributor has the most commits in the period; ties go to the
    alphabetically first name.
    """
    _check_range(time_range)
    totals: Dict[date, List[int]] = {}
    contributors: Dict[date, Counter] = {}

    for metric in daily_metrics:
        key = period_start(metric.date, time_range)
        bucket = totals.setdefault(key, [0, 0, 0, 0])
        bucket[0] += metric.commits
        bucket[1] += metric.additions
        bucket[2] += metric.deletions
        bucket[3] += metric.net_lines
        contributors.setdefault(key, Counter())[metric.user_name] += metric.commits

    periods = []
    for key in sorted(totals):
        commits, additions, deletions, net_lines = totals[key]
        ranked = sorted(contributors[key].items(), key=lambda item: (-item[1], item[0]))
        top = ranked[0][0] if ranked and ranked[0][1] > 0 else None
        periods.append(
            AggregatedPeriod(
                date=key.isoformat(),
                label=period_label(key, time_range),
                commits=commits,
                additions=additions,
                deletions=deletions,
                net_lines=net_lines,
                top_contributor=top,
            )
        )
    return periods


def fill_timeline_gaps(
    timeline: List[AggregatedPeriod],
    start_date: DateLike,
    end_date: DateLike,
    time_range: str,
) -> List[AggregatedPeriod]:
    """Insert zero buckets for every empty period between start and end.

    Buckets outside the range are dropped. An empty timeline stays empty.
    """
    _check_range(time_range)
    if not timeline:
        return []

    existing = {period.date: period for period in timeline}
    end = _as_date(end_date)
    current = period_start(start_date, time_range)

    filled = []
    while current <= end:
        key = current.isoformat()
        filled.append(
            existing.get(key)
            or AggregatedPeriod(
                date=key,
                label=period_label(current, time_range),
                commits=0,
                additions=0,
                deletions=0,
                net_lines=0,
            )
        )
        current = next_period(current, time_range)
    return filled


def filter_by_date_range(
    timeline: List[AggregatedPeriod], start_date: DateLike, end_date: DateLike
) -> List[AggregatedPeriod]:
    start = _as_date(start_date).isoformat()
    end = _as_date(end_date).isoformat()
    return [period for period in timeline if start <= period.date <= end]


def aggregate_user_to_weekly(user: UserTimelineData) -> UserTimelineData:
    """Return a copy of ``user`` with Monday-anchored weekly metrics filled in."""
    weeks: Dict[date, List[int]] = {}
    for daily in user.daily_metrics:
        bucket = weeks.setdefault(week_start(_as_date(daily.date)), [0, 0, 0, 0])
        bucket[0] += daily.commits
        bucket[1] += daily.additions
        bucket[2] += daily.deletions
        bucket[3] += daily.net_lines

    weekly = tuple(
        WeeklyMetric(
            week_start=start.isoformat(),
            week_label=week_label(start),
            commits=values[0],
            additions=values[1],
            deletions=values[2],
            net_lines=values[3],
        )
        for start, values in sorted(weeks.items())
    )
    return dataclasses.replace(user, weekly_metrics=weekly)


def aggregate_all_users_to_weekly(users: Iterable[UserTimelineData]) -> List[UserTimelineData]:
    return [aggregate_user_to_weekly(user) for user in users]


def date_range_for_period(
    time_range: str, periods_back: int = 0, today: Optional[date] = None
) -> Tuple[str, str]:
    """Start and end (YYYY-MM-DD) of the window ``periods_back`` periods ago."""
    _check_range(time_range)
    today = today or utc_now().date()

    if time_range == WEEK:
        start = today - timedelta(days=7 * (periods_back + 1))
        end = today - timedelta(days=7 * periods_back)
    elif time_range == MONTH:
        start = add_months(today, -(periods_back + 1))
        end = add_months(today, -periods_back)
    elif time_range == QUARTER:
        start = add_months(today, -3 * (periods_back + 1))
        end = add_months(today, -3 * periods_back)
    else:
        start = add_months(today, -12 * (periods_back + 1))
        end = add_months(today, -12 * periods_back)

    return start.isoformat(), end.isoformat()


def recent_time_range(months: int = 3, today: Optional[date] = None) -> Tuple[str, str]:
    today = today or utc_now().date()
    return add_months(today, -months).isoformat(), today.isoformat()
