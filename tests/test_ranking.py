"""Tests for most-recently-used plan ordering."""

from datetime import datetime

from daywell.models import Plan, RunningSessionView
from daywell.ranking import SessionHistory, rank_plans

A = Plan(id=1, owner_id=1, activity_name="A", day_type="weekday", category="work", target_minutes=60)
B = Plan(id=2, owner_id=1, activity_name="B", day_type="weekday", category="health", target_minutes=30)
C = Plan(id=3, owner_id=1, activity_name="C", day_type="weekday", category="leisure", target_minutes=45)
D = Plan(id=4, owner_id=1, activity_name="D", day_type="weekday", category="sleep", target_minutes=480)


def running(plan):
    return RunningSessionView(session_id=99, plan_id=plan.id, activity_name=plan.activity_name,
                              start_time=datetime(2024, 1, 8, 9, 0))


def names(plans):
    return [p.activity_name for p in plans]


class TestRankPlans:

    def test_history_order_then_unrecorded(self):
        assert names(rank_plans([A, B, C], None, [B.id, A.id])) == ["B", "A", "C"]

    def test_running_plan_first(self):
        assert names(rank_plans([A, B, C], running(A), [B.id, A.id])) == ["A", "B", "C"]

    def test_running_plan_not_in_history(self):
        assert names(rank_plans([A, B, C], running(C), [B.id])) == ["C", "B", "A"]

    def test_unrecorded_keep_input_order(self):
        assert names(rank_plans([D, C, A, B], None, [A.id])) == ["A", "D", "C", "B"]

    def test_no_history_is_identity(self):
        assert names(rank_plans([C, A, B])) == ["C", "A", "B"]

    def test_history_ids_without_plans_are_ignored(self):
        assert names(rank_plans([A, B], None, [42, B.id])) == ["B", "A"]

    def test_does_not_mutate_input(self):
        plans = [A, B, C]
        rank_plans(plans, None, [C.id])
        assert names(plans) == ["A", "B", "C"]


class TestSessionHistory:

    def test_record_moves_plan_to_front(self):
        history = SessionHistory()
        for pid in (1, 2, 3, 1):
            history.record(pid)
        assert history.as_list() == [1, 3, 2]

    def test_capped(self):
        history = SessionHistory(limit=3)
        for pid in range(10):
            history.record(pid)
        assert history.as_list() == [9, 8, 7]
        assert len(history) == 3

    def test_seed_deduplicates_and_caps(self):
        history = SessionHistory(limit=2, plan_ids=[5, 5, 4, 3])
        assert history.as_list() == [5, 4]
        assert 4 in history
        assert history.index(4) == 1
        assert history.index(3) is None

    def test_feeds_ranker(self):
        history = SessionHistory()
        history.record(A.id)
        history.record(B.id)
        assert names(rank_plans([A, B, C], None, history)) == ["B", "A", "C"]
