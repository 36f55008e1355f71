"""
Time utilities for the Team Tasks service.

This module provides a single source of truth for time operations,
so that every timestamp written by the services is timezone-aware UTC.
"""

import re
from datetime import datetime, timezone, timedelta
from typing import Optional

MONTH_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def utc_now() -> datetime:
    """
    Get current UTC time.
    Single source of truth for "now" throughout the application.

    Returns:
        timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def days_ago(days: int, now: Optional[datetime] = None) -> datetime:
    """Return the instant `days` days before `now` (defaults to utc_now())."""
    return (now or utc_now()) - timedelta(days=days)


def current_month() -> str:
    """Current UTC month in YYYY-MM form."""
    return utc_now().strftime("%Y-%m")


def month_bounds(month: str) -> tuple[datetime, datetime]:
    """
    Calculate the UTC range covered by a calendar month.

    Args:
        month: Month in YYYY-MM format

    Returns:
        Tuple of (first instant of month, first instant of next month)

    Raises:
        ValueError: if month is not in YYYY-MM format
    """
    match = MONTH_PATTERN.match(month or "")
    if not match:
        raise ValueError(f"Invalid month '{month}', expected YYYY-MM")

    year, month_number = int(match.group(1)), int(match.group(2))
    start = datetime(year, month_number, 1, tzinfo=timezone.utc)
    if month_number == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, month_number + 1, 1, tzinfo=timezone.utc)
    return start, end
