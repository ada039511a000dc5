"""
Utility functions for the Day Spent Well tracker.

This module centralises date parsing and the handful of duration formats
shown to the user: clock-style timers, ``HH:MM`` averages and ``Xh Ym``
budgets.  All formatters truncate rather than round, so a displayed value
never claims time that has not yet been spent.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Union

from daywell.errors import ValidationError

DATE_FORMAT = "%Y-%m-%d"

DateLike = Union[date, datetime, str]


def parse_date(value: DateLike) -> date:
    """
    Coerce ``value`` to a calendar ``date``.

    Accepts ``date`` and ``datetime`` objects or ``YYYY-MM-DD`` strings and
    raises ``ValidationError`` for anything else.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), DATE_FORMAT).date()
    except ValueError:
        raise ValidationError(f"Malformed date: {value!r} (expected YYYY-MM-DD)") from None


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def format_long_date(value: date) -> str:
    """Format as e.g. ``Monday, Jan 8``."""
    return f"{value.strftime('%A, %b')} {value.day}"


def format_duration(seconds: float) -> str:
    """Format seconds into ``HH:MM:SS`` for display."""
    seconds = max(0, int(seconds))
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_timer(seconds: float) -> str:
    """
    Format a running timer compactly: ``M:SS`` under an hour, ``H:MM:SS``
    from the first full hour on.
    """
    seconds = max(0, int(seconds))
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_hhmm(minutes: float) -> str:
    """Format a minute count as ``HH:MM``, truncating partial minutes."""
    minutes = max(0.0, float(minutes))
    hours = int(minutes // 60)
    mins = int(minutes % 60)
    return f"{hours:02d}:{mins:02d}"


def format_budget(minutes: int) -> str:
    """Format whole minutes as ``Xh Ym``."""
    return f"{minutes // 60}h {minutes % 60}m"
