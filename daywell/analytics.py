"""Planned-versus-actual reports for the Day Spent Well tracker.

A report compares, per category, the minutes a person planned to spend each
day with the minutes they actually averaged over a window of days.  The
window is either the last seven days (``rolling``) or the current week so
far (``calendar``, Monday first).  Session durations are grouped with pandas
the same way for both.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from daywell import config
from daywell.errors import ValidationError
from daywell.models import CATEGORIES, ActivitySession, Plan, category_label, normalize_category
from daywell.utils import format_hhmm

logger = logging.getLogger(__name__)

ROLLING = "rolling"
CALENDAR = "calendar"
WINDOW_KINDS = (ROLLING, CALENDAR)


@dataclass
class ReportWindow:
    kind: str
    start: date
    end: date
    day_count: int

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def report_window(kind: str, today: date) -> ReportWindow:
    """
    Dates covered by a report ending ``today``.

    ``rolling`` is the seven days up to and including today.  ``calendar``
    runs from this week's Monday; Sunday is the seventh day of the week that
    began six days earlier.
    """
    if kind == ROLLING:
        days = config.ROLLING_WINDOW_DAYS
        return ReportWindow(kind, today - timedelta(days=days - 1), today, days)
    if kind == CALENDAR:
        ordinal = today.isoweekday()
        return ReportWindow(kind, today - timedelta(days=ordinal - 1), today, max(1, ordinal))
    raise ValidationError(f"Unknown report range: {kind!r} (expected one of {', '.join(WINDOW_KINDS)})")


def consistency_tier(present_days: int, day_count: int) -> str:
    if present_days >= config.CONSISTENCY_HIGH * day_count:
        return "High"
    if present_days >= config.CONSISTENCY_MEDIUM * day_count:
        return "Medium"
    return "Low"


def balance_tier(score: float) -> str:
    if score < config.BALANCE_STABLE:
        return "Stable"
    if score < config.BALANCE_SLIGHTLY_SKEWED:
        return "Slightly Skewed"
    return "Skewed"


@dataclass
class CategoryReport:
    category: str
    planned_daily_minutes: int
    actual_avg_minutes: float
    present_days: int
    consistency: str

    @property
    def label(self) -> str:
        return category_label(self.category)

    @property
    def diff_minutes(self) -> float:
        """Positive when more time was spent than planned."""
        return self.actual_avg_minutes - self.planned_daily_minutes

    @property
    def status(self) -> str:
        if self.diff_minutes > config.STATUS_TOLERANCE_MINUTES:
            return "over"
        if self.diff_minutes < -config.STATUS_TOLERANCE_MINUTES:
            return "under"
        return "on track"


@dataclass
class Report:
    window: ReportWindow
    categories: List[CategoryReport]
    most_overspent: Optional[CategoryReport]
    most_underspent: Optional[CategoryReport]
    balance_score: float
    balance_index: str
    avg_tracked_minutes: float
    session_count: int = 0
    notes: List[str] = field(default_factory=list)

    @property
    def formatted_avg_time(self) -> str:
        return format_hhmm(self.avg_tracked_minutes)

    def category(self, name: str) -> CategoryReport:
        key = normalize_category(name)
        for item in self.categories:
            if item.category == key:
                return item
        raise KeyError(name)

    def as_dict(self) -> Dict[str, Any]:
        """JSON-ready summary."""
        def row(item: CategoryReport) -> Dict[str, Any]:
            return {
                "category": item.category,
                "label": item.label,
                "planned_daily_minutes": item.planned_daily_minutes,
                "actual_avg_minutes": round(item.actual_avg_minutes, 2),
                "diff_minutes": round(item.diff_minutes, 2),
                "present_days": item.present_days,
                "consistency": item.consistency,
                "status": item.status,
            }

        window = asdict(self.window)
        window["start"] = self.window.start.isoformat()
        window["end"] = self.window.end.isoformat()
        return {
            "window": window,
            "categories": [row(c) for c in self.categories],
            "most_overspent": self.most_overspent.category if self.most_overspent else None,
            "most_underspent": self.most_underspent.category if self.most_underspent else None,
            "balance_score": round(self.balance_score, 4),
            "balance_index": self.balance_index,
            "formatted_avg_time": self.formatted_avg_time,
            "session_count": self.session_count,
        }


def _plan_frame(plans: Iterable[Plan]) -> pd.DataFrame:
    rows = [
        {"plan_id": p.id, "category": normalize_category(p.category), "target_minutes": p.target_minutes}
        for p in plans
        if p.active
    ]
    return pd.DataFrame(rows, columns=["plan_id", "category", "target_minutes"])


def _session_frame(sessions: Iterable[ActivitySession], window: ReportWindow) -> pd.DataFrame:
    rows = [
        {"plan_id": s.plan_id, "activity_date": s.activity_date, "duration_seconds": s.duration_seconds}
        for s in sessions
        if not s.is_open and window.contains(s.activity_date)
    ]
    df = pd.DataFrame(rows, columns=["plan_id", "activity_date", "duration_seconds"])
    df["duration_seconds"] = pd.to_numeric(df["duration_seconds"], errors="coerce").fillna(0.0)
    return df


def build_report(
    sessions: Iterable[ActivitySession],
    plans: Iterable[Plan],
    window: ReportWindow,
    categories: Sequence[str] = CATEGORIES,
) -> Report:
    """
    Aggregate closed sessions in ``window`` against the active ``plans``.

    Planned minutes per category are the flat sum of its active targets,
    whatever day type they belong to.  A session counts toward the category
    of its plan; sessions whose plan is no longer active count only toward
    the overall daily average.
    """
    plan_df = _plan_frame(plans)
    session_df = _session_frame(sessions, window)

    planned = plan_df.groupby("category")["target_minutes"].sum()
    category_of = dict(zip(plan_df["plan_id"], plan_df["category"]))
    session_df["category"] = session_df["plan_id"].map(category_of)
    categorised = session_df.dropna(subset=["category"])
    actual_seconds = categorised.groupby("category")["duration_seconds"].sum()
    present = categorised.groupby("category")["activity_date"].nunique()

    day_count = window.day_count
    reports: List[CategoryReport] = []
    for cat in categories:
        present_days = int(present.get(cat, 0))
        reports.append(
            CategoryReport(
                category=cat,
                planned_daily_minutes=int(planned.get(cat, 0)),
                actual_avg_minutes=float(actual_seconds.get(cat, 0.0)) / 60.0 / day_count,
                present_days=present_days,
                consistency=consistency_tier(present_days, day_count),
            )
        )

    # max()/min() return the first of equal items, so ties go to the
    # earlier category.
    most_over = max(reports, key=lambda r: r.diff_minutes) if reports else None
    most_under = min(reports, key=lambda r: r.diff_minutes) if reports else None

    ratios = [abs(r.diff_minutes) / r.planned_daily_minutes for r in reports if r.planned_daily_minutes > 0]
    score = sum(ratios) / len(ratios) if ratios else 0.0

    total_seconds = float(session_df["duration_seconds"].sum())
    notes: List[str] = []
    unassigned = len(session_df) - len(categorised)
    if unassigned:
        notes.append(f"{unassigned} session(s) belong to plans that are no longer active")
    logger.debug(
        "Report %s %s..%s: %d sessions, balance %.3f",
        window.kind, window.start, window.end, len(session_df), score,
    )
    return Report(
        window=window,
        categories=reports,
        most_overspent=most_over,
        most_underspent=most_under,
        balance_score=score,
        balance_index=balance_tier(score),
        avg_tracked_minutes=total_seconds / 60.0 / day_count,
        session_count=len(session_df),
        notes=notes,
    )


def load_report(store, owner_id: int, kind: str, today: date) -> Report:
    """Fetch the window's closed sessions and active plans, then aggregate."""
    window = report_window(kind, today)
    sessions = store.list_closed_sessions(owner_id, window.start, window.end)
    plans = store.list_active_plans(owner_id)
    return build_report(sessions, plans, window)
