"""UTC date helpers shared by the aggregation code."""

from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional, Union

DateInput = Union[str, datetime, None]


def parse_utc(value: DateInput) -> Optional[datetime]:
    """Parse an ISO-8601 string or datetime into an aware UTC datetime.

    Returns None for missing or unparseable input. Naive values are taken
    to be UTC already.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_iso(value: Optional[datetime]) -> Optional[str]:
    """Format as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    if value is None:
        return None
    value = parse_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def days_difference(first: Optional[datetime], second: Optional[datetime]) -> int:
    """Whole days between two datetimes, floored; 0 if either is missing."""
    if first is None or second is None:
        return 0
    return abs(second - first) // timedelta(days=1)


def date_key(value: datetime) -> str:
    """UTC calendar day as ``YYYY-MM-DD``."""
    return parse_utc(value).date().isoformat()


def parse_date_key(value: str) -> date:
    return date.fromisoformat(value)


def min_date(values: Iterable[Optional[datetime]]) -> Optional[datetime]:
    present = [v for v in values if v is not None]
    return min(present) if present else None


def max_date(values: Iterable[Optional[datetime]]) -> Optional[datetime]:
    present = [v for v in values if v is not None]
    return max(present) if present else None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
