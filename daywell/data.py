"""
Data layer for the Day Spent Well tracker.

This module provides a SQLite backend for users, plans and activity
sessions.  It is the single source of truth: everything the engine keeps in
memory (the running session, the recency list) can be rebuilt from here.
Any ``sqlite3`` failure leaves this module as a ``PersistenceError`` naming
the operation that failed.
"""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterator, List, Optional, Union

from daywell import config
from daywell.errors import PersistenceError, ValidationError
from daywell.models import ActivitySession, DailyTotal, Plan, UserProfile, normalize_category
from daywell.planning import validate_plan

logger = logging.getLogger(__name__)

# --- Database Schema ---
# Table: users
#   id, name, email (unique), age, profession
# Table: identity
#   single row holding the signed-in user id (NULL when signed out)
# Table: plans
#   id, owner_id, activity_name, day_type, category, target_minutes,
#   is_active   -- plans are never deleted, only deactivated
# Table: activity_sessions
#   id, owner_id, plan_id, activity_name (copied at start), activity_date
#   (YYYY-MM-DD), start_time, end_time (NULL while open), duration_seconds
SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    age INTEGER,
    profession TEXT
);
CREATE TABLE IF NOT EXISTS identity (
    slot INTEGER PRIMARY KEY CHECK (slot = 1),
    user_id INTEGER REFERENCES users(id)
);
CREATE TABLE IF NOT EXISTS plans (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id INTEGER NOT NULL REFERENCES users(id),
    activity_name TEXT NOT NULL,
    day_type TEXT NOT NULL,
    category TEXT NOT NULL,
    target_minutes INTEGER NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1
);
CREATE TABLE IF NOT EXISTS activity_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id INTEGER NOT NULL REFERENCES users(id),
    plan_id INTEGER NOT NULL REFERENCES plans(id),
    activity_name TEXT NOT NULL,
    activity_date TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT,
    duration_seconds INTEGER
);
CREATE UNIQUE INDEX IF NOT EXISTS one_open_session_per_owner
    ON activity_sessions (owner_id) WHERE end_time IS NULL;
CREATE INDEX IF NOT EXISTS sessions_by_owner_date
    ON activity_sessions (owner_id, activity_date);
"""


def _ts(value: datetime) -> str:
    return value.isoformat(sep=" ")


def _row_to_plan(row: sqlite3.Row) -> Plan:
    return Plan(
        id=row["id"],
        owner_id=row["owner_id"],
        activity_name=row["activity_name"],
        day_type=row["day_type"],
        category=normalize_category(row["category"]),
        target_minutes=row["target_minutes"],
        active=bool(row["is_active"]),
    )


def _row_to_session(row: sqlite3.Row) -> ActivitySession:
    end = row["end_time"]
    return ActivitySession(
        id=row["id"],
        owner_id=row["owner_id"],
        plan_id=row["plan_id"],
        activity_name=row["activity_name"],
        activity_date=date.fromisoformat(row["activity_date"]),
        start_time=datetime.fromisoformat(row["start_time"]),
        end_time=datetime.fromisoformat(end) if end else None,
        duration_seconds=row["duration_seconds"],
    )


def _row_to_user(row: sqlite3.Row) -> UserProfile:
    return UserProfile(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        age=row["age"],
        profession=row["profession"],
    )


class SqliteStore:
    """
    Persistence for plans, sessions and user profiles.

    Each operation opens its own connection and commits before returning,
    so two stores pointed at the same file (two devices sharing a database)
    always see each other's writes.
    """

    def __init__(self, db_file: Union[str, Path, None] = None) -> None:
        self.db_file = Path(db_file) if db_file else config.db_path()
        self.db_file.parent.mkdir(parents=True, exist_ok=True)
        self.init_db()

    @contextmanager
    def _op(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Run one store operation in a transaction, translating failures."""
        try:
            conn = sqlite3.connect(self.db_file)
        except sqlite3.Error as exc:
            logger.error("Cannot open %s for %s: %s", self.db_file, operation, exc)
            raise PersistenceError(operation, exc) from exc
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            with conn:
                yield conn
        except sqlite3.Error as exc:
            logger.error("Store operation %s failed: %s", operation, exc)
            raise PersistenceError(operation, exc) from exc
        finally:
            conn.close()

    def init_db(self) -> None:
        """Initialise the database schema if it does not already exist."""
        with self._op("init_db") as conn:
            conn.executescript(SCHEMA)

    # --- Identity and profiles ---
    def get_current_identity(self) -> Optional[int]:
        with self._op("get_current_identity") as conn:
            row = conn.execute("SELECT user_id FROM identity WHERE slot = 1").fetchone()
        return row["user_id"] if row else None

    def identity_recorded(self) -> bool:
        """``True`` once anyone has signed in or out on this database."""
        with self._op("identity_recorded") as conn:
            row = conn.execute("SELECT 1 FROM identity WHERE slot = 1").fetchone()
        return row is not None

    def set_current_identity(self, user_id: Optional[int]) -> None:
        with self._op("set_current_identity") as conn:
            conn.execute(
                "INSERT INTO identity (slot, user_id) VALUES (1, ?) "
                "ON CONFLICT(slot) DO UPDATE SET user_id = excluded.user_id",
                (user_id,),
            )

    def create_user(
        self,
        name: str,
        email: str,
        age: Optional[int] = None,
        profession: Optional[str] = None,
    ) -> UserProfile:
        email = email.strip().lower()
        if self.find_user_by_email(email) is not None:
            raise ValidationError(f"An account for {email} already exists.")
        with self._op("create_user") as conn:
            cur = conn.execute(
                "INSERT INTO users (name, email, age, profession) VALUES (?, ?, ?, ?)",
                (name.strip(), email, age, profession or None),
            )
            user_id = cur.lastrowid
        logger.info("Registered user %s (%s)", user_id, email)
        return UserProfile(id=user_id, name=name.strip(), email=email, age=age, profession=profession or None)

    def get_user(self, user_id: int) -> Optional[UserProfile]:
        with self._op("get_user") as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return _row_to_user(row) if row else None

    def find_user_by_email(self, email: str) -> Optional[UserProfile]:
        with self._op("find_user_by_email") as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?", (email.strip().lower(),)
            ).fetchone()
        return _row_to_user(row) if row else None

    def update_user(self, profile: UserProfile) -> UserProfile:
        """Update name, age and profession.  The email is the account key and stays fixed."""
        with self._op("update_user") as conn:
            conn.execute(
                "UPDATE users SET name = ?, age = ?, profession = ? WHERE id = ?",
                (profile.name, profile.age, profile.profession, profile.id),
            )
        return profile

    # --- Plans ---
    def list_plans(self, owner_id: int, include_inactive: bool = False) -> List[Plan]:
        sql = "SELECT * FROM plans WHERE owner_id = ?"
        if not include_inactive:
            sql += " AND is_active = 1"
        sql += " ORDER BY id"
        with self._op("list_plans") as conn:
            rows = conn.execute(sql, (owner_id,)).fetchall()
        return [_row_to_plan(r) for r in rows]

    def list_active_plans(self, owner_id: int) -> List[Plan]:
        return self.list_plans(owner_id)

    def get_plan(self, plan_id: int) -> Optional[Plan]:
        with self._op("get_plan") as conn:
            row = conn.execute("SELECT * FROM plans WHERE id = ?", (plan_id,)).fetchone()
        return _row_to_plan(row) if row else None

    def upsert_plan(self, plan: Plan) -> Plan:
        """
        Validate and save ``plan``, inserting it when it has no id.

        Raises ``ValidationError`` (including ``BudgetExceededError``)
        without writing anything when the plan is rejected.
        """
        plan = validate_plan(plan, self.list_active_plans(plan.owner_id))
        params: tuple[Any, ...] = (
            plan.activity_name,
            plan.day_type,
            plan.category,
            plan.target_minutes,
            int(plan.active),
        )
        with self._op("upsert_plan") as conn:
            if plan.id is None:
                cur = conn.execute(
                    "INSERT INTO plans (activity_name, day_type, category, target_minutes, is_active, owner_id) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    params + (plan.owner_id,),
                )
                plan.id = cur.lastrowid
            else:
                cur = conn.execute(
                    "UPDATE plans SET activity_name = ?, day_type = ?, category = ?, "
                    "target_minutes = ?, is_active = ? WHERE id = ? AND owner_id = ?",
                    params + (plan.id, plan.owner_id),
                )
                if cur.rowcount == 0:
                    raise ValidationError(f"Plan {plan.id} does not exist.")
        logger.info("Saved plan %s (%s, %s, %d min)", plan.id, plan.activity_name, plan.day_type, plan.target_minutes)
        return plan

    def deactivate_plan(self, plan_id: int) -> None:
        with self._op("deactivate_plan") as conn:
            conn.execute("UPDATE plans SET is_active = 0 WHERE id = ?", (plan_id,))
        logger.info("Deactivated plan %s", plan_id)

    # --- Sessions ---
    def find_open_session(self, owner_id: int) -> Optional[ActivitySession]:
        with self._op("find_open_session") as conn:
            row = conn.execute(
                "SELECT * FROM activity_sessions WHERE owner_id = ? AND end_time IS NULL "
                "ORDER BY start_time DESC LIMIT 1",
                (owner_id,),
            ).fetchone()
        return _row_to_session(row) if row else None

    def create_session(
        self,
        owner_id: int,
        plan_id: int,
        activity_name: str,
        activity_date: date,
        start_time: datetime,
    ) -> ActivitySession:
        """
        Insert an open session and return it.

        The unique index on open sessions makes a second concurrent start for
        the same owner fail here instead of leaving two sessions open.
        """
        with self._op("create_session") as conn:
            cur = conn.execute(
                "INSERT INTO activity_sessions (owner_id, plan_id, activity_name, activity_date, start_time) "
                "VALUES (?, ?, ?, ?, ?)",
                (owner_id, plan_id, activity_name, activity_date.isoformat(), _ts(start_time)),
            )
            session_id = cur.lastrowid
        return ActivitySession(
            id=session_id,
            owner_id=owner_id,
            plan_id=plan_id,
            activity_name=activity_name,
            activity_date=activity_date,
            start_time=start_time,
        )

    def close_session(self, session_id: int, end_time: datetime, duration_seconds: int) -> bool:
        """
        Close an open session.  Returns ``False`` if it was already closed,
        in which case the stored record is left untouched.
        """
        with self._op("close_session") as conn:
            cur = conn.execute(
                "UPDATE activity_sessions SET end_time = ?, duration_seconds = ? "
                "WHERE id = ? AND end_time IS NULL",
                (_ts(end_time), int(duration_seconds), session_id),
            )
            closed = cur.rowcount > 0
        if not closed:
            logger.warning("Session %s was already closed; keeping stored record", session_id)
        return closed

    def list_closed_sessions(self, owner_id: int, start: date, end: date) -> List[ActivitySession]:
        """Closed sessions with ``start <= activity_date <= end``."""
        with self._op("list_closed_sessions") as conn:
            rows = conn.execute(
                "SELECT * FROM activity_sessions WHERE owner_id = ? AND end_time IS NOT NULL "
                "AND activity_date >= ? AND activity_date <= ? ORDER BY activity_date, start_time",
                (owner_id, start.isoformat(), end.isoformat()),
            ).fetchall()
        return [_row_to_session(r) for r in rows]

    def list_sessions_for_date(self, owner_id: int, day: date) -> List[ActivitySession]:
        """Every session on ``day``, open or closed, oldest first."""
        with self._op("list_sessions_for_date") as conn:
            rows = conn.execute(
                "SELECT * FROM activity_sessions WHERE owner_id = ? AND activity_date = ? "
                "ORDER BY start_time",
                (owner_id, day.isoformat()),
            ).fetchall()
        return [_row_to_session(r) for r in rows]

    def get_daily_total(self, owner_id: int, day: date) -> Optional[DailyTotal]:
        """Total closed seconds on ``day``, or ``None`` if nothing was logged."""
        with self._op("get_daily_total") as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n, COALESCE(SUM(duration_seconds), 0) AS total "
                "FROM activity_sessions WHERE owner_id = ? AND activity_date = ? AND end_time IS NOT NULL",
                (owner_id, day.isoformat()),
            ).fetchone()
        if not row["n"]:
            return None
        return DailyTotal(activity_date=day, total_seconds=int(row["total"]))

    def list_recent_plan_starts(self, owner_id: int, limit: int) -> List[int]:
        """Plan ids ordered by their latest session start, most recent first."""
        with self._op("list_recent_plan_starts") as conn:
            rows = conn.execute(
                "SELECT plan_id, MAX(start_time) AS last_start FROM activity_sessions "
                "WHERE owner_id = ? GROUP BY plan_id ORDER BY last_start DESC LIMIT ?",
                (owner_id, limit),
            ).fetchall()
        return [r["plan_id"] for r in rows]
