"""Tests for report windows and planned-versus-actual aggregation."""

from datetime import date, datetime, timedelta

import pytest

from daywell.analytics import (
    build_report,
    balance_tier,
    consistency_tier,
    load_report,
    report_window,
)
from daywell.errors import ValidationError
from daywell.models import ActivitySession, Plan

_ids = iter(range(1, 10_000))


def plan(plan_id, category, minutes, day_type="weekday", active=True):
    return Plan(
        id=plan_id,
        owner_id=1,
        activity_name=f"{category}-{plan_id}",
        day_type=day_type,
        category=category,
        target_minutes=minutes,
        active=active,
    )


def session(plan_id, day, seconds, closed=True):
    start = datetime.combine(day, datetime.min.time()).replace(hour=8)
    return ActivitySession(
        id=next(_ids),
        owner_id=1,
        plan_id=plan_id,
        activity_name="x",
        activity_date=day,
        start_time=start,
        end_time=start + timedelta(seconds=seconds) if closed else None,
        duration_seconds=seconds if closed else None,
    )


def days(window):
    return [window.start + timedelta(days=i) for i in range(window.day_count)]


class TestReportWindow:

    def test_rolling_is_seven_days_ending_today(self):
        window = report_window("rolling", date(2024, 1, 8))
        assert window.start == date(2024, 1, 2)
        assert window.end == date(2024, 1, 8)
        assert window.day_count == 7

    def test_calendar_on_monday_is_one_day(self):
        window = report_window("calendar", date(2024, 1, 8))
        assert (window.start, window.day_count) == (date(2024, 1, 8), 1)

    def test_calendar_on_wednesday(self):
        window = report_window("calendar", date(2024, 1, 10))
        assert (window.start, window.day_count) == (date(2024, 1, 8), 3)

    def test_calendar_on_sunday_covers_whole_week(self):
        window = report_window("calendar", date(2024, 1, 14))
        assert (window.start, window.day_count) == (date(2024, 1, 8), 7)

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            report_window("monthly", date(2024, 1, 8))


class TestTiers:

    @pytest.mark.parametrize("present,count,tier", [
        (7, 7, "High"), (6, 7, "High"), (5, 7, "Medium"), (3, 7, "Medium"), (2, 7, "Low"), (0, 1, "Low"),
        (1, 1, "High"),
    ])
    def test_consistency(self, present, count, tier):
        assert consistency_tier(present, count) == tier

    @pytest.mark.parametrize("score,tier", [
        (0.0, "Stable"), (0.1499, "Stable"), (0.15, "Slightly Skewed"), (0.3999, "Slightly Skewed"),
        (0.40, "Skewed"), (2.5, "Skewed"),
    ])
    def test_balance(self, score, tier):
        assert balance_tier(score) == tier


class TestBuildReport:

    def test_on_plan_every_day(self):
        window = report_window("rolling", date(2024, 1, 8))
        report = build_report([session(1, d, 3600) for d in days(window)], [plan(1, "work", 60)], window)
        work = report.category("work")
        assert work.actual_avg_minutes == 60
        assert work.diff_minutes == 0
        assert work.consistency == "High"
        assert work.status == "on track"
        assert report.balance_score == 0
        assert report.balance_index == "Stable"

    def test_categories_without_plans_do_not_affect_balance(self):
        window = report_window("rolling", date(2024, 1, 8))
        sessions = [session(1, d, 3600) for d in days(window)]
        report = build_report(sessions, [plan(1, "work", 60), plan(2, "leisure", 0)], window)
        assert report.balance_score == 0
        assert report.category("leisure").planned_daily_minutes == 0
        assert report.category("sleep").actual_avg_minutes == 0

    def test_zero_planned_category_with_logged_time_is_left_out_of_balance(self):
        window = report_window("rolling", date(2024, 1, 8))
        # work: 80 of 100 planned minutes a day; leisure: 30 a day with nothing planned
        sessions = [session(1, d, 80 * 60) for d in days(window)]
        sessions += [session(2, d, 30 * 60) for d in days(window)]
        report = build_report(sessions, [plan(1, "work", 100), plan(2, "leisure", 0)], window)
        leisure = report.category("leisure")
        assert leisure.planned_daily_minutes == 0
        assert leisure.actual_avg_minutes == 30
        assert leisure.diff_minutes > 0
        assert report.balance_score == pytest.approx(0.2)
        assert report.balance_index == "Slightly Skewed"
        assert report.most_overspent.category == "leisure"

    def test_skewed_when_far_from_plan(self):
        window = report_window("rolling", date(2024, 1, 8))
        sessions = [session(1, d, 7200) for d in days(window)]
        report = build_report(sessions, [plan(1, "work", 60), plan(2, "health", 60)], window)
        # work: |120-60|/60 = 1.0, health: |0-60|/60 = 1.0
        assert report.balance_score == pytest.approx(1.0)
        assert report.balance_index == "Skewed"
        assert report.most_overspent.category == "work"
        assert report.most_underspent.category == "health"
        assert report.category("work").status == "over"
        assert report.category("health").status == "under"

    def test_slightly_skewed(self):
        window = report_window("rolling", date(2024, 1, 8))
        # 80 minutes a day against 100 planned: 0.2
        sessions = [session(1, d, 80 * 60) for d in days(window)]
        report = build_report(sessions, [plan(1, "work", 100)], window)
        assert report.balance_score == pytest.approx(0.2)
        assert report.balance_index == "Slightly Skewed"

    def test_ties_resolve_to_first_category(self):
        window = report_window("rolling", date(2024, 1, 8))
        report = build_report([], [], window)
        assert report.most_overspent.category == "work"
        assert report.most_underspent.category == "work"
        assert report.balance_score == 0
        assert report.formatted_avg_time == "00:00"

    def test_planned_minutes_sum_across_day_types(self):
        window = report_window("rolling", date(2024, 1, 8))
        plans = [plan(1, "sleep", 420), plan(2, "sleep", 540, day_type="weekend")]
        assert build_report([], plans, window).category("sleep").planned_daily_minutes == 960

    def test_consistency_counts_distinct_days(self):
        window = report_window("rolling", date(2024, 1, 8))
        first, second = days(window)[:2]
        sessions = [session(1, first, 600), session(1, first, 600), session(1, second, 600)]
        report = build_report(sessions, [plan(1, "health", 30)], window)
        health = report.category("health")
        assert health.present_days == 2
        assert health.consistency == "Low"
        assert health.actual_avg_minutes == pytest.approx(30 / 7)

    def test_medium_consistency(self):
        window = report_window("rolling", date(2024, 1, 8))
        sessions = [session(1, d, 600) for d in days(window)[:4]]
        report = build_report(sessions, [plan(1, "learning", 30)], window)
        assert report.category("learning").consistency == "Medium"

    def test_average_tracked_time(self):
        window = report_window("rolling", date(2024, 1, 8))
        sessions = [session(1, d, 5400) for d in days(window)]
        report = build_report(sessions, [plan(1, "work", 90)], window)
        assert report.avg_tracked_minutes == 90
        assert report.formatted_avg_time == "01:30"
        assert report.session_count == 7

    def test_ignores_open_and_out_of_window_sessions(self):
        window = report_window("rolling", date(2024, 1, 8))
        sessions = [
            session(1, date(2024, 1, 1), 3600),
            session(1, date(2024, 1, 9), 3600),
            session(1, date(2024, 1, 8), 0, closed=False),
            session(1, date(2024, 1, 8), 700),
        ]
        report = build_report(sessions, [plan(1, "work", 60)], window)
        assert report.session_count == 1
        assert report.category("work").actual_avg_minutes == pytest.approx(700 / 60 / 7)

    def test_inactive_plan_sessions_count_only_toward_average(self):
        window = report_window("rolling", date(2024, 1, 8))
        sessions = [session(1, date(2024, 1, 8), 7 * 600)]
        report = build_report(sessions, [plan(1, "work", 60, active=False)], window)
        assert report.category("work").planned_daily_minutes == 0
        assert report.category("work").actual_avg_minutes == 0
        assert report.avg_tracked_minutes == 10
        assert report.notes

    def test_legacy_category_counts_as_learning(self):
        window = report_window("calendar", date(2024, 1, 8))
        report = build_report([session(1, date(2024, 1, 8), 1800)], [plan(1, "Education", 30)], window)
        learning = report.category("education")
        assert learning.category == "learning"
        assert learning.actual_avg_minutes == 30
        assert learning.label == "Learning"

    def test_as_dict_is_json_ready(self):
        window = report_window("calendar", date(2024, 1, 10))
        report = build_report([session(1, date(2024, 1, 9), 3600)], [plan(1, "work", 60)], window)
        data = report.as_dict()
        assert data["window"] == {"kind": "calendar", "start": "2024-01-08", "end": "2024-01-10", "day_count": 3}
        assert [c["category"] for c in data["categories"]] == ["work", "health", "sleep", "essentials",
                                                              "leisure", "learning"]
        assert data["categories"][0]["actual_avg_minutes"] == 20.0
        assert data["most_underspent"] == "work"
        assert data["formatted_avg_time"] == "00:20"


class TestLoadReport:

    def test_reads_closed_sessions_for_owner(self, store, make_plan, owner_id):
        work = make_plan("Deep Work", minutes=60)
        start = datetime(2024, 1, 8, 9, 0)
        opened = store.create_session(owner_id, work.id, "Deep Work", start.date(), start)
        store.close_session(opened.id, start + timedelta(hours=7), 7 * 3600)
        report = load_report(store, owner_id, "rolling", date(2024, 1, 8))
        assert report.category("work").actual_avg_minutes == 60
        assert report.category("work").planned_daily_minutes == 60
        assert report.session_count == 1
