"""
Shared fixtures: a throwaway SQLite store, a manual clock and a signed-in user.

The clock starts on Monday 2024-01-08 at 09:00 so that day-type and
report-window expectations are fixed.
"""

import sqlite3
from datetime import datetime

import pytest

from daywell.clock import ManualClock
from daywell.dashboard import Dashboard
from daywell.data import SqliteStore
from daywell.errors import PersistenceError
from daywell.identity import LocalIdentity
from daywell.models import Plan
from daywell.session_manager import SessionManager

MONDAY_9AM = datetime(2024, 1, 8, 9, 0, 0)


class FlakyStore(SqliteStore):
    """A store whose named operations can be made to fail on demand."""

    def __init__(self, db_file):
        super().__init__(db_file)
        self.fail_on = set()
        self.after = {}

    def _maybe_fail(self, operation):
        if operation in self.fail_on:
            raise PersistenceError(operation, sqlite3.OperationalError("disk I/O error"))

    def find_open_session(self, owner_id):
        self._maybe_fail("find_open_session")
        return super().find_open_session(owner_id)

    def create_session(self, *args, **kwargs):
        self._maybe_fail("create_session")
        session = super().create_session(*args, **kwargs)
        hook = self.after.get("create_session")
        if hook:
            hook()
        return session

    def close_session(self, *args, **kwargs):
        self._maybe_fail("close_session")
        return super().close_session(*args, **kwargs)


@pytest.fixture
def clock():
    return ManualClock(MONDAY_9AM)


@pytest.fixture
def store(tmp_path):
    return FlakyStore(tmp_path / "daywell.db")


@pytest.fixture
def identity(store):
    ident = LocalIdentity(store, default_email="")
    ident.register("Ana Silva", "ana@example.com", age=34, profession="Designer")
    return ident


@pytest.fixture
def owner_id(identity):
    return identity.require()


@pytest.fixture
def make_plan(store, owner_id):
    def _make(name, minutes=60, category="work", day_type="weekday"):
        return store.upsert_plan(
            Plan(
                owner_id=owner_id,
                activity_name=name,
                day_type=day_type,
                category=category,
                target_minutes=minutes,
            )
        )
    return _make


@pytest.fixture
def manager(store, identity, clock):
    return SessionManager(store, identity, clock)


@pytest.fixture
def dashboard(store, identity, clock):
    dash = Dashboard(store, identity, clock=clock)
    yield dash
    dash.close()
