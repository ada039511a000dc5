"""Data model for plans, activity sessions and their derived views."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from daywell.config import DAY_MINUTES

WEEKDAY = "weekday"
WEEKEND = "weekend"
HOLIDAY = "holiday"
DAY_TYPES = (WEEKDAY, WEEKEND, HOLIDAY)

# Category key -> display label.  Dict order is the enumeration
# order used by reports.
CATEGORY_LABELS = {
    "work": "Work",
    "health": "Health",
    "sleep": "Sleep",
    "essentials": "Essentials",
    "leisure": "Leisure",
    "learning": "Learning",
}
CATEGORIES = tuple(CATEGORY_LABELS)

# Older records used "education" before it was renamed.
CATEGORY_ALIASES = {"education": "learning"}


def normalize_category(category: str) -> str:
    """Lower-case a category and map legacy names onto current ones."""
    key = (category or "").strip().lower()
    return CATEGORY_ALIASES.get(key, key)


def category_label(category: str) -> str:
    key = normalize_category(category)
    if key in CATEGORY_LABELS:
        return CATEGORY_LABELS[key]
    return key.capitalize()


@dataclass
class Plan:
    """A daily time target for one activity on one kind of day."""
    owner_id: int
    activity_name: str
    day_type: str
    category: str
    target_minutes: int
    active: bool = True
    id: Optional[int] = None


@dataclass
class ActivitySession:
    """
    One timed stretch of an activity.

    ``end_time`` is ``None`` while the session is open.  Once closed the
    record is never changed again.
    """
    id: int
    owner_id: int
    plan_id: int
    activity_name: str
    activity_date: date
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_seconds: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.end_time is None


@dataclass(frozen=True)
class RunningSessionView:
    """In-memory projection of the open session."""
    session_id: int
    plan_id: int
    activity_name: str
    start_time: datetime

    @classmethod
    def from_session(cls, session: ActivitySession) -> "RunningSessionView":
        return cls(
            session_id=session.id,
            plan_id=session.plan_id,
            activity_name=session.activity_name,
            start_time=session.start_time,
        )


@dataclass
class DailyTotal:
    activity_date: date
    total_seconds: int = 0

    @property
    def untracked_minutes(self) -> int:
        """Minutes of the day not yet accounted for by any session."""
        return max(0, DAY_MINUTES - self.total_seconds // 60)


@dataclass
class UserProfile:
    id: int
    name: str
    email: str
    age: Optional[int] = None
    profession: Optional[str] = None


@dataclass
class DashboardRow:
    """A plan as shown on the day view, with time spent so far."""
    plan_id: int
    activity_name: str
    category: str
    target_minutes: int
    actual_seconds: int = 0
    is_running: bool = False

    @property
    def actual_minutes(self) -> int:
        return self.actual_seconds // 60

    @property
    def status(self) -> str:
        if self.actual_minutes < self.target_minutes:
            return "pending"
        if self.actual_minutes == self.target_minutes:
            return "completed"
        return "overdone"
