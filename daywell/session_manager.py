"""Session lifecycle for the Day Spent Well tracker.

The ``SessionManager`` owns the rule that an owner has at most one open
activity session.  Starting an activity closes whatever was running before
it, and the open session is always re-read from the store on recovery, so
a reload or a second device never leaves the in-memory state out of step
with what is persisted.

Each operation holds the lock only while it changes in-memory state; the
store round trip happens outside it, and a result that lands after the
viewed date has moved away from today is not adopted.
"""
from __future__ import annotations

import logging
from datetime import date
from enum import Enum
from threading import Lock
from typing import Optional, Tuple

from daywell.errors import HistoricalDateError, SessionBusyError, ValidationError
from daywell.models import RunningSessionView
from daywell.ranking import SessionHistory
from daywell.timer import LiveTimer, session_duration
from daywell.utils import DateLike, format_date, parse_date

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    RECOVERING = "recovering"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


IN_FLIGHT = (SessionState.RECOVERING, SessionState.STARTING, SessionState.STOPPING)

_Snapshot = Tuple[SessionState, Optional[RunningSessionView]]


class SessionManager:
    """
    Manages the running activity session (start, stop, recover).
    Persists through the store on every transition; nothing is buffered.
    """

    def __init__(
        self,
        store,
        identity,
        clock,
        history: Optional[SessionHistory] = None,
        timer: Optional[LiveTimer] = None,
        view_date: Optional[date] = None,
    ) -> None:
        self.store = store
        self.identity = identity
        self.clock = clock
        self.history = history if history is not None else SessionHistory()
        self.timer = timer if timer is not None else LiveTimer(clock)
        self.view_date: date = view_date or clock.today()
        self.state = SessionState.IDLE
        self.running: Optional[RunningSessionView] = None
        self.lock = Lock()

    # --- Viewed date ---
    @property
    def is_today(self) -> bool:
        return self.view_date == self.clock.today()

    @property
    def is_historical(self) -> bool:
        return not self.is_today

    @property
    def busy(self) -> bool:
        return self.state in IN_FLIGHT

    @property
    def live_elapsed(self) -> int:
        """Seconds the running session has been open; 0 on past days or when idle."""
        if self.running is None or self.is_historical:
            return 0
        return self.timer.elapsed

    def visible_running(self) -> Optional[RunningSessionView]:
        """The running session, or ``None`` when viewing a past day."""
        return None if self.is_historical else self.running

    def set_view_date(self, value: DateLike) -> Optional[RunningSessionView]:
        """
        Switch the viewed date.

        The live counter is reset before anything else.  Moving to today
        recovers the open session from the store; moving to a past day
        clears the in-memory session, since past days are read-only.
        """
        day = parse_date(value)
        with self.lock:
            self.view_date = day
            self.timer.reset()
            in_flight = self.busy
            if self.is_historical:
                self.running = None
                if not in_flight:
                    self.state = SessionState.IDLE
        logger.debug("Viewing %s (historical=%s)", day, self.is_historical)
        if self.is_today and not in_flight:
            return self.recover()
        return None

    # --- Transitions ---
    def _begin(self, state: SessionState) -> _Snapshot:
        """Enter a transitional state; must be called with the lock held."""
        if self.busy:
            raise SessionBusyError(self.state.value)
        snapshot = (self.state, self.running)
        self.state = state
        return snapshot

    def _adopt(self, view: Optional[RunningSessionView]) -> None:
        """Make ``view`` the running session; must be called with the lock held."""
        if view is None or self.is_historical:
            self.running = None
            self.state = SessionState.IDLE
            self.timer.reset()
            return
        self.running = view
        self.state = SessionState.RUNNING
        if self.timer.start_time != view.start_time:
            self.timer.start(view.start_time)

    def _restore(self, snapshot: _Snapshot) -> None:
        state, running = snapshot
        if self.is_historical:
            self._adopt(None)
            return
        self.state = state
        self.running = running
        if running is None:
            self.timer.reset()
        elif self.timer.start_time != running.start_time:
            self.timer.start(running.start_time)

    def _close(self, view: RunningSessionView) -> Optional[int]:
        """Close ``view`` in the store; ``None`` if it was already closed elsewhere."""
        end = self.clock.now()
        duration = session_duration(view.start_time, end)
        if not self.store.close_session(view.session_id, end, duration):
            return None
        logger.info("Stopped %r (session %s) after %ss", view.activity_name, view.session_id, duration)
        return duration

    def recover(self) -> Optional[RunningSessionView]:
        """
        Adopt the owner's open session from the store, if there is one.

        Safe to call repeatedly: no record is created, and an unchanged open
        session leaves the state exactly as it was.
        """
        owner_id = self.identity.require()
        with self.lock:
            if self.is_historical:
                self._adopt(None)
                return None
            snapshot = self._begin(SessionState.RECOVERING)
        try:
            session = self.store.find_open_session(owner_id)
        except Exception:
            with self.lock:
                self._restore(snapshot)
            raise
        view = RunningSessionView.from_session(session) if session else None
        with self.lock:
            self._adopt(view)
            result = self.running
        if result is not None:
            logger.info("Recovered running session %s (%r)", result.session_id, result.activity_name)
        return result

    def start(self, plan_id: int, activity_name: Optional[str] = None) -> Optional[RunningSessionView]:
        """
        Start timing ``plan_id``, stopping any session already running.

        Returns the new running session, or ``None`` if the viewed date
        changed away from today before the write finished.
        """
        owner_id = self.identity.require()
        if self.is_historical:
            raise HistoricalDateError("start a session", format_date(self.view_date))
        if activity_name is None:
            activity_name = self._plan_name(owner_id, plan_id)
        with self.lock:
            snapshot = self._begin(SessionState.STARTING)
        previous = snapshot[1]
        closed_previous = False
        try:
            if previous is not None:
                if self._close(previous) is None:
                    # Closed by another device, which may have opened its own.
                    previous = None
                closed_previous = True
            if previous is None:
                # Another device may hold an open session this one never saw.
                other = self.store.find_open_session(owner_id)
                if other is not None:
                    self._close(RunningSessionView.from_session(other))
                    closed_previous = True
            now = self.clock.now()
            session = self.store.create_session(owner_id, plan_id, activity_name, now.date(), now)
        except Exception:
            with self.lock:
                if closed_previous:
                    self._adopt(None)
                else:
                    self._restore(snapshot)
            raise
        view = RunningSessionView.from_session(session)
        with self.lock:
            self.history.record(plan_id)
            self._adopt(view)
            adopted = self.running
        if adopted is None:
            logger.info("Session %s started after the view left today; not tracking it here", session.id)
        else:
            logger.info("Started %r (session %s)", activity_name, session.id)
        return adopted

    def stop(self, session: Optional[RunningSessionView] = None) -> Optional[int]:
        """
        Close the running session and return its recorded duration in
        seconds, or ``None`` if nothing was running.

        If another device already closed the session, nothing is recorded
        here: ``None`` is returned and the store's open session, if any, is
        adopted instead.
        """
        self.identity.require()
        if self.is_historical:
            raise HistoricalDateError("stop a session", format_date(self.view_date))
        with self.lock:
            if self.running is None and not self.busy:
                return None
            if session is not None and self.running is not None and session.session_id != self.running.session_id:
                raise ValidationError(f"Session {session.session_id} is not the running session.")
            snapshot = self._begin(SessionState.STOPPING)
        try:
            duration = self._close(snapshot[1])
        except Exception:
            with self.lock:
                self._restore(snapshot)
            raise
        with self.lock:
            self._adopt(None)
        if duration is None:
            logger.info("Session %s was stopped elsewhere; re-reading the store", snapshot[1].session_id)
            self.recover()
        return duration

    def load_history(self) -> SessionHistory:
        """Rebuild the recency list from the owner's stored sessions."""
        owner_id = self.identity.require()
        self.history.seed(self.store.list_recent_plan_starts(owner_id, self.history.limit))
        return self.history

    def _plan_name(self, owner_id: int, plan_id: int) -> str:
        plan = self.store.get_plan(plan_id)
        if plan is None or plan.owner_id != owner_id or not plan.active:
            raise ValidationError(f"No active plan with id {plan_id}.")
        return plan.activity_name
