"""Clock sources.

Every temporal computation in the tracker reads the time from a clock
object passed in explicitly, never from ``datetime.now()`` directly, so the
session state machine and the live timer can be driven deterministically.
Times are local and timezone-naive, matching how activity dates are stored.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from threading import Lock


class SystemClock:
    """Wall-clock time of the local machine."""

    def now(self) -> datetime:
        return datetime.now()

    def today(self) -> date:
        return self.now().date()


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self._now = start
        self._lock = Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def today(self) -> date:
        return self.now().date()

    def set(self, moment: datetime) -> None:
        with self._lock:
            self._now = moment

    def advance(self, **delta: float) -> datetime:
        """Move forward by ``timedelta(**delta)`` and return the new time."""
        with self._lock:
            self._now = self._now + timedelta(**delta)
            return self._now
