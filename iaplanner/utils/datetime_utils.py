"""Date and time utilities."""

from datetime import date, datetime, timedelta
from typing import List, Union

DateLike = Union[date, datetime, str]


def parse_date(value: DateLike) -> date:
    """Parse an ISO date string (or datetime) into a calendar date.

    Raises ValueError for malformed strings.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if 'T' in text:
        return datetime.fromisoformat(text.replace('Z', '+00:00')).date()
    return date.fromisoformat(text)


def parse_datetime(value: Union[datetime, str]) -> datetime:
    """Parse an ISO timestamp, accepting a trailing 'Z'."""
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))


def format_short_date(value: date) -> str:
    """Format a date as e.g. 'Jan 5'."""
    return f"{value.strftime('%b')} {value.day}"


def format_long_date(value: date) -> str:
    """Format a date as e.g. 'Jan 5, 2026'."""
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def date_range(start: date, end: date) -> List[date]:
    """Get every calendar date from start to end, inclusive."""
    days = []
    current = start

    while current <= end:
        days.append(current)
        current += timedelta(days=1)

    return days


def is_weekend(value: date) -> bool:
    return value.weekday() >= 5


def start_of_week(value: date, week_starts_on: int = 6) -> date:
    """Get the first day of the week containing value.

    week_starts_on uses date.weekday() numbering (0 = Monday, 6 = Sunday).
    """
    offset = (value.weekday() - week_starts_on) % 7
    return value - timedelta(days=offset)


def format_hour(hour: float) -> str:
    """Format a fractional hour of day as HH:MM."""
    total_minutes = int(round(hour * 60))
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"
