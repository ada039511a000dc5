"""The day view: everything a front end needs to show one date.

``Dashboard`` is the context object that ties the viewed date, the clock,
the signed-in identity, the store and the session manager together.
Front ends (the command line included) talk only to this class.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Callable, Dict, List, Optional

from daywell.analytics import ROLLING, Report, load_report
from daywell.clock import SystemClock
from daywell.errors import ValidationError
from daywell.models import DAY_TYPES, ActivitySession, DailyTotal, DashboardRow, Plan, RunningSessionView
from daywell.planning import BudgetSummary, budget_summary, classify_day, plans_for_day_type
from daywell.ranking import SessionHistory, rank_plans
from daywell.session_manager import SessionManager, SessionState
from daywell.timer import LiveTimer
from daywell.utils import DateLike

logger = logging.getLogger(__name__)


@dataclass
class DayStatus:
    """Snapshot of the day view at one instant."""
    view_date: date
    day_type: str
    is_historical: bool
    state: SessionState
    running: Optional[RunningSessionView]
    live_elapsed: int
    total: DailyTotal
    rows: List[DashboardRow] = field(default_factory=list)


class Dashboard:
    def __init__(
        self,
        store,
        identity,
        clock=None,
        on_tick: Optional[Callable[[int], None]] = None,
        tick_interval: Optional[float] = None,
        history_limit: Optional[int] = None,
    ) -> None:
        self.store = store
        self.identity = identity
        self.clock = clock or SystemClock()
        self.timer = LiveTimer(self.clock, interval=tick_interval, on_tick=on_tick)
        self.manager = SessionManager(
            store,
            identity,
            self.clock,
            history=SessionHistory(history_limit),
            timer=self.timer,
        )
        self.day_type_override: Optional[str] = None

    # --- Viewed date ---
    @property
    def view_date(self) -> date:
        return self.manager.view_date

    @property
    def is_historical(self) -> bool:
        return self.manager.is_historical

    @property
    def day_type(self) -> str:
        return self.day_type_override or classify_day(self.view_date)

    def load(self) -> Optional[RunningSessionView]:
        """First load: rebuild recency from the store and recover today's session."""
        self.manager.load_history()
        return self.manager.set_view_date(self.clock.today())

    def view(self, value: DateLike, day_type: Optional[str] = None) -> Optional[RunningSessionView]:
        """Switch to another date, optionally showing a different plan set."""
        if day_type is not None and day_type not in DAY_TYPES:
            raise ValidationError(f"Unknown day type: {day_type!r}")
        self.day_type_override = day_type
        return self.manager.set_view_date(value)

    def back_to_today(self) -> Optional[RunningSessionView]:
        return self.view(self.clock.today())

    # --- Sessions ---
    def start(self, plan_id: int) -> Optional[RunningSessionView]:
        return self.manager.start(plan_id)

    def stop(self) -> Optional[int]:
        return self.manager.stop()

    def toggle(self, plan_id: int) -> Optional[RunningSessionView]:
        """Stop ``plan_id`` if it is running, otherwise start it."""
        running = self.manager.running
        if running is not None and running.plan_id == plan_id:
            self.manager.stop()
            return None
        return self.manager.start(plan_id)

    def sessions(self) -> List[ActivitySession]:
        """Every session logged on the viewed date."""
        return self.store.list_sessions_for_date(self.identity.require(), self.view_date)

    # --- Derived views ---
    def plans(self) -> List[Plan]:
        """Active plans for the viewed day type."""
        owner_id = self.identity.require()
        return plans_for_day_type(self.store.list_active_plans(owner_id), self.day_type)

    def daily_total(self) -> DailyTotal:
        owner_id = self.identity.require()
        total = self.store.get_daily_total(owner_id, self.view_date) or DailyTotal(self.view_date, 0)
        live = self.manager.live_elapsed
        if live:
            total = replace(total, total_seconds=total.total_seconds + live)
        return total

    def rows(self) -> List[DashboardRow]:
        """Plans for the day with time spent, in display order."""
        plans = self.plans()
        spent: Dict[int, int] = defaultdict(int)
        for session in self.sessions():
            if not session.is_open:
                spent[session.plan_id] += session.duration_seconds or 0
        running = self.manager.visible_running()
        live = self.manager.live_elapsed
        rows = [
            DashboardRow(
                plan_id=plan.id,
                activity_name=plan.activity_name,
                category=plan.category,
                target_minutes=plan.target_minutes,
                actual_seconds=spent[plan.id] + (live if running and running.plan_id == plan.id else 0),
                is_running=bool(running and running.plan_id == plan.id),
            )
            for plan in plans
        ]
        return rank_plans(rows, running, self.manager.history, key=lambda r: r.plan_id)

    def status(self) -> DayStatus:
        return DayStatus(
            view_date=self.view_date,
            day_type=self.day_type,
            is_historical=self.is_historical,
            state=self.manager.state,
            running=self.manager.visible_running(),
            live_elapsed=self.manager.live_elapsed,
            total=self.daily_total(),
            rows=self.rows(),
        )

    def report(self, kind: str = ROLLING) -> Report:
        return load_report(self.store, self.identity.require(), kind, self.clock.today())

    # --- Plans ---
    def all_plans(self, include_inactive: bool = False) -> List[Plan]:
        return self.store.list_plans(self.identity.require(), include_inactive=include_inactive)

    def add_plan(
        self,
        activity_name: str,
        category: str,
        target_minutes: int,
        day_type: Optional[str] = None,
    ) -> Plan:
        """Create a plan; it defaults to the day type being viewed."""
        plan = Plan(
            owner_id=self.identity.require(),
            activity_name=activity_name,
            day_type=day_type or self.day_type,
            category=category,
            target_minutes=target_minutes,
        )
        return self.store.upsert_plan(plan)

    def edit_plan(self, plan_id: int, **changes) -> Plan:
        plan = self._owned_plan(plan_id)
        allowed = {"activity_name", "day_type", "category", "target_minutes"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Cannot change {', '.join(sorted(unknown))} on a plan.")
        updates = {k: v for k, v in changes.items() if v is not None}
        return self.store.upsert_plan(replace(plan, active=True, **updates))

    def disable_plan(self, plan_id: int) -> None:
        self._owned_plan(plan_id)
        self.store.deactivate_plan(plan_id)

    def budget(self, day_type: Optional[str] = None) -> BudgetSummary:
        return budget_summary(self.all_plans(), day_type or self.day_type)

    def _owned_plan(self, plan_id: int) -> Plan:
        owner_id = self.identity.require()
        plan = self.store.get_plan(plan_id)
        if plan is None or plan.owner_id != owner_id:
            raise ValidationError(f"No plan with id {plan_id}.")
        return plan

    def close(self) -> None:
        """Halt the live ticker.  Any running session stays open in the store."""
        self.timer.reset()
