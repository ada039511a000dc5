"""
Command-line interface for the Day Spent Well tracker.

Every command builds a ``Dashboard`` over the configured SQLite store,
performs one action and prints the result.  Running sessions live in the
store, so ``start`` in one invocation and ``stop`` in a later one behave
exactly like a long-running application would.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from typing import List, Optional

from daywell import config
from daywell.analytics import CALENDAR, ROLLING, Report
from daywell.dashboard import Dashboard, DayStatus
from daywell.data import SqliteStore
from daywell.errors import DaywellError, NotAuthenticatedError
from daywell.identity import LocalIdentity
from daywell.models import CATEGORIES, DAY_TYPES, Plan, category_label
from daywell.utils import format_date, format_duration, format_long_date, format_timer

logger = logging.getLogger(__name__)


# =============================================================================
# CLI INTERFACE
# =============================================================================

def create_parser() -> argparse.ArgumentParser:
    """Create and return the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="daywell",
        description="Log time spent on planned activities and compare it with your targets.",
        epilog="Example: daywell start 3 && daywell status --watch",
    )
    parser.add_argument("--db", help="SQLite database path (default: $DAYWELL_DB or ~/.daywell/daywell.db)")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Logging level (default: %(default)s)")
    sub = parser.add_subparsers(dest="command", required=True)

    reg = sub.add_parser("register", help="Create an account and sign in")
    reg.add_argument("--name", required=True)
    reg.add_argument("--email", required=True)
    reg.add_argument("--age", type=int)
    reg.add_argument("--profession")

    login = sub.add_parser("login", help="Sign in as a registered account")
    login.add_argument("email")
    sub.add_parser("logout", help="Sign out")
    sub.add_parser("whoami", help="Show the signed-in account")

    prof = sub.add_parser("profile", help="Update your details")
    prof.add_argument("--name")
    prof.add_argument("--age", type=int)
    prof.add_argument("--profession")

    plans = sub.add_parser("plans", help="Manage daily targets")
    plan_sub = plans.add_subparsers(dest="plans_command", required=True)
    pl = plan_sub.add_parser("list", help="List plans")
    pl.add_argument("--day-type", choices=DAY_TYPES)
    pl.add_argument("--all", action="store_true", help="Include disabled plans")
    pa = plan_sub.add_parser("add", help="Add a plan")
    pa.add_argument("name")
    pa.add_argument("--category", required=True, help=f"One of: {', '.join(CATEGORIES)}")
    pa.add_argument("--minutes", required=True, help="Daily target in minutes")
    pa.add_argument("--day-type", choices=DAY_TYPES, help="Defaults to today's day type")
    pe = plan_sub.add_parser("edit", help="Edit a plan")
    pe.add_argument("plan_id", type=int)
    pe.add_argument("--name")
    pe.add_argument("--category")
    pe.add_argument("--minutes")
    pe.add_argument("--day-type", choices=DAY_TYPES)
    pd_ = plan_sub.add_parser("disable", help="Disable a plan (its history is kept)")
    pd_.add_argument("plan_id", type=int)
    pb = plan_sub.add_parser("budget", help="Show how much of the day is planned")
    pb.add_argument("--day-type", choices=DAY_TYPES)

    start = sub.add_parser("start", help="Start timing a plan (stops the running one)")
    start.add_argument("plan_id", type=int)
    sub.add_parser("stop", help="Stop the running session")

    status = sub.add_parser("status", help="Show a day's progress")
    status.add_argument("--date", help="YYYY-MM-DD (default: today)")
    status.add_argument("--day-type", choices=DAY_TYPES, help="Show another plan set")
    status.add_argument("--watch", action="store_true", help="Keep the running timer updating")

    hist = sub.add_parser("history", help="List the sessions logged on a day")
    hist.add_argument("--date", help="YYYY-MM-DD (default: today)")

    rep = sub.add_parser("report", help="Planned versus actual by category")
    rep.add_argument("--range", dest="range_kind", choices=(ROLLING, CALENDAR), default=ROLLING)
    rep.add_argument("--json", action="store_true", help="Print the report as JSON")

    return parser


# =============================================================================
# OUTPUT
# =============================================================================

def print_status(status: DayStatus) -> None:
    header = f"{format_long_date(status.view_date)} ({status.day_type})"
    if status.is_historical:
        header += "  [viewing past day]"
    print(header)
    print(f"Day spent: {format_timer(status.total.total_seconds)}  ·  {status.total.untracked_minutes}m unaccounted")
    if status.running:
        print(f"Running: {status.running.activity_name}  {format_timer(status.live_elapsed)}")
    print("-" * 60)
    if not status.rows:
        print("  No plans for this day type. Add one with `daywell plans add`.")
    elif status.is_historical and all(r.actual_seconds == 0 for r in status.rows):
        print("  No time logged for this day")
    for row in status.rows:
        marker = ">" if row.is_running else " "
        print(
            f" {marker} [{row.plan_id:>3}] {row.activity_name:<24} {category_label(row.category):<11}"
            f" {row.actual_minutes} of {row.target_minutes}m spent  {row.status}"
        )


def print_plans(plans: List[Plan]) -> None:
    if not plans:
        print("No plans yet.")
        return
    for plan in plans:
        state = "" if plan.active else "  (disabled)"
        print(
            f"[{plan.id:>3}] {plan.activity_name:<24} {category_label(plan.category):<11}"
            f" {plan.day_type:<8} {plan.target_minutes:>4}m{state}"
        )


def print_report(report: Report) -> None:
    window = report.window
    print(f"Report ({window.kind}): {format_date(window.start)} to {format_date(window.end)}, {window.day_count} day(s)")
    print("-" * 72)
    print(f"{'Category':<12}{'Planned':>9}{'Actual':>9}{'Diff':>9}  {'Consistency':<12}Status")
    for item in report.categories:
        print(
            f"{item.label:<12}{item.planned_daily_minutes:>8}m{item.actual_avg_minutes:>8.0f}m"
            f"{item.diff_minutes:>+8.0f}m  {item.consistency:<12}{item.status}"
        )
    print("-" * 72)
    if report.most_overspent:
        print(f"Most overspent:  {report.most_overspent.label}")
    if report.most_underspent:
        print(f"Most underspent: {report.most_underspent.label}")
    print(f"Balance: {report.balance_index}")
    print(f"Average tracked per day: {report.formatted_avg_time}")
    for note in report.notes:
        print(f"Note: {note}")


def watch(dashboard: Dashboard) -> None:
    """Redraw the running timer until interrupted."""
    running = dashboard.manager.visible_running()
    if running is None:
        print("No active session.")
        return
    print(f"Tracking {running.activity_name} (Ctrl+C to leave it running in the background)")

    def on_tick(elapsed: int) -> None:
        sys.stdout.write(f"\r  {format_duration(elapsed)}")
        sys.stdout.flush()

    dashboard.timer.on_tick = on_tick
    dashboard.timer.start(running.start_time)
    try:
        while dashboard.timer.ticking:
            time.sleep(0.25)
    except KeyboardInterrupt:
        pass
    finally:
        dashboard.close()
        print()


# =============================================================================
# COMMANDS
# =============================================================================

def run(args: argparse.Namespace, store: SqliteStore) -> int:
    identity = LocalIdentity(store)

    if args.command == "register":
        user = identity.register(args.name, args.email, args.age, args.profession)
        print(f"Welcome, {user.name}. You are signed in as {user.email}.")
        return 0
    if args.command == "login":
        user = identity.sign_in(args.email)
        print(f"Signed in as {user.name} <{user.email}>.")
        return 0
    if args.command == "logout":
        identity.sign_out()
        print("Signed out.")
        return 0
    if args.command == "whoami":
        user = identity.profile()
        extra = ", ".join(x for x in (f"age {user.age}" if user.age else "", user.profession or "") if x)
        print(f"{user.name} <{user.email}>" + (f" ({extra})" if extra else ""))
        return 0
    if args.command == "profile":
        user = identity.update_profile(args.name, args.age, args.profession)
        print(f"Updated details for {user.name}.")
        return 0

    dashboard = Dashboard(store, identity)
    try:
        dashboard.load()
        return _run_dashboard(args, dashboard)
    finally:
        dashboard.close()


def _run_dashboard(args: argparse.Namespace, dashboard: Dashboard) -> int:
    if args.command == "plans":
        if args.plans_command == "list":
            plans = dashboard.all_plans(include_inactive=args.all)
            if args.day_type:
                plans = [p for p in plans if p.day_type == args.day_type]
            print_plans(plans)
        elif args.plans_command == "add":
            plan = dashboard.add_plan(args.name, args.category, args.minutes, args.day_type)
            print(f"Added plan {plan.id}: {plan.activity_name} ({plan.target_minutes}m on {plan.day_type}s).")
        elif args.plans_command == "edit":
            plan = dashboard.edit_plan(
                args.plan_id,
                activity_name=args.name,
                category=args.category,
                target_minutes=args.minutes,
                day_type=args.day_type,
            )
            print(f"Updated plan {plan.id}: {plan.activity_name} ({plan.target_minutes}m on {plan.day_type}s).")
        elif args.plans_command == "disable":
            dashboard.disable_plan(args.plan_id)
            print(f"Disabled plan {args.plan_id}.")
        elif args.plans_command == "budget":
            summary = dashboard.budget(args.day_type)
            print(f"{summary.day_type}: {summary.label} ({summary.remaining_minutes}m free)")
        return 0

    if args.command == "start":
        running = dashboard.start(args.plan_id)
        if running is not None:
            print(f"Started {running.activity_name} at {running.start_time:%H:%M:%S}.")
        return 0
    if args.command == "stop":
        duration = dashboard.stop()
        if duration is None:
            print("No active session.")
        else:
            print(f"Stopped after {format_duration(duration)}.")
        return 0
    if args.command == "status":
        if args.date or args.day_type:
            dashboard.view(args.date or dashboard.clock.today(), day_type=args.day_type)
        print_status(dashboard.status())
        if args.watch:
            watch(dashboard)
        return 0
    if args.command == "history":
        if args.date:
            dashboard.view(args.date)
        sessions = dashboard.sessions()
        if not sessions:
            print(f"No sessions on {format_date(dashboard.view_date)}.")
        for s in sessions:
            end = f"{s.end_time:%H:%M:%S}" if s.end_time else "running"
            duration = format_duration(s.duration_seconds) if s.duration_seconds is not None else "--:--:--"
            print(f"{s.start_time:%H:%M:%S}  {end:>8}  {duration}  {s.activity_name}")
        return 0
    if args.command == "report":
        report = dashboard.report(args.range_kind)
        if args.json:
            print(json.dumps(report.as_dict(), indent=2))
        else:
            print_report(report)
        return 0
    raise DaywellError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    parser = create_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        store = SqliteStore(args.db)
        return run(args, store)
    except NotAuthenticatedError as e:
        print(f"{e.message}. Sign in with `daywell login EMAIL` or create an account with `daywell register`.", file=sys.stderr)
        return 2
    except DaywellError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
