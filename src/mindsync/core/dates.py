"""Date helpers for tracking periods.

Dates are exchanged as ISO "YYYY-MM-DD" strings, matching the synced
JSON payloads. Timestamps are integer epoch milliseconds.
"""

from __future__ import annotations

import time
from datetime import date, timedelta

DAYS_PER_WEEK = 7

# date.weekday(): Monday == 0 ... Sunday == 6
_WEEKDAY_INDEX = {"Monday": 0, "Sunday": 6}


def now_ms() -> int:
    """Get the current time as epoch milliseconds."""
    return int(time.time() * 1000)


def today_str(today: date | None = None) -> str:
    """Get today's date as an ISO string."""
    return (today or date.today()).isoformat()


def parse_date(value: str) -> date:
    """Parse an ISO "YYYY-MM-DD" string."""
    return date.fromisoformat(value)


def week_start_date(day: str, week_start_day: str = "Sunday") -> str:
    """Get the anchor date of the week containing a day.

    Args:
        day: ISO date string.
        week_start_day: "Sunday" or "Monday".

    Returns:
        ISO date string of the first day of that week.
    """
    d = parse_date(day)
    offset = (d.weekday() - _WEEKDAY_INDEX[week_start_day]) % DAYS_PER_WEEK
    return (d - timedelta(days=offset)).isoformat()


def week_end_date(anchor: str) -> str:
    """Get the last day of the week starting at anchor."""
    return (parse_date(anchor) + timedelta(days=DAYS_PER_WEEK - 1)).isoformat()


def days_of_week(anchor: str) -> list[str]:
    """List the seven ISO dates of the week starting at anchor."""
    start = parse_date(anchor)
    return [(start + timedelta(days=i)).isoformat() for i in range(DAYS_PER_WEEK)]


def in_week(day: str, anchor: str) -> bool:
    """Check whether a day belongs to the week starting at anchor."""
    offset = (parse_date(day) - parse_date(anchor)).days
    return 0 <= offset < DAYS_PER_WEEK
