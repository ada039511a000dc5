"""End-to-end tests for the command-line interface."""

import json

import pytest

from daywell.cli import create_parser, main


@pytest.fixture
def cli(tmp_path, capsys, monkeypatch):
    monkeypatch.delenv("DAYWELL_USER", raising=False)
    db = str(tmp_path / "cli.db")

    def _run(*argv):
        code = main(["--db", db, *argv])
        out, err = capsys.readouterr()
        return code, out, err
    return _run


@pytest.fixture
def signed_in(cli):
    code, out, _ = cli("register", "--name", "Ana Silva", "--email", "ana@example.com", "--age", "34")
    assert code == 0
    return cli


class TestParser:

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args([])

    def test_report_defaults_to_rolling(self):
        args = create_parser().parse_args(["report"])
        assert args.range_kind == "rolling"
        assert not args.json


class TestIdentityCommands:

    def test_register_and_whoami(self, signed_in):
        code, out, _ = signed_in("whoami")
        assert code == 0
        assert "Ana Silva <ana@example.com> (age 34)" in out

    def test_profile_update(self, signed_in):
        signed_in("profile", "--profession", "Designer")
        _, out, _ = signed_in("whoami")
        assert "Designer" in out

    def test_logout_then_commands_need_sign_in(self, signed_in):
        assert signed_in("logout")[0] == 0
        code, out, err = signed_in("status")
        assert code == 2
        assert "Not signed in" in err
        assert signed_in("login", "ana@example.com")[0] == 0
        assert signed_in("status")[0] == 0

    def test_logout_is_not_undone_by_default_user(self, signed_in, monkeypatch):
        monkeypatch.setattr("daywell.config.DEFAULT_USER", "ana@example.com")
        signed_in("logout")
        code, _, err = signed_in("whoami")
        assert code == 2
        assert "Not signed in" in err

    def test_duplicate_registration_is_an_error(self, signed_in):
        code, _, err = signed_in("register", "--name", "Ana", "--email", "ana@example.com")
        assert code == 1
        assert "already exists" in err


class TestTracking:

    def test_plan_start_status_stop(self, signed_in):
        code, out, _ = signed_in("plans", "add", "Deep Work", "--category", "work", "--minutes", "90")
        assert code == 0
        assert out.startswith("Added plan 1: Deep Work (90m on ")

        code, out, _ = signed_in("start", "1")
        assert code == 0
        assert "Started Deep Work" in out

        _, out, _ = signed_in("status")
        assert "Running: Deep Work" in out
        assert "[  1] Deep Work" in out

        code, out, _ = signed_in("stop")
        assert code == 0
        assert out.startswith("Stopped after 00:00:")

        _, out, _ = signed_in("stop")
        assert "No active session." in out

        _, out, _ = signed_in("history")
        assert "Deep Work" in out

    def test_watch_without_running_session(self, signed_in):
        _, out, _ = signed_in("status", "--watch")
        assert "No active session." in out

    def test_budget_overflow_is_reported(self, signed_in):
        signed_in("plans", "add", "Sleep", "--category", "sleep", "--minutes", "1000", "--day-type", "weekday")
        code, _, err = signed_in("plans", "add", "Work", "--category", "work", "--minutes", "500",
                                 "--day-type", "weekday")
        assert code == 1
        assert "Cannot exceed 24 hours. You are over by 60 minutes for weekdays." in err

    def test_plans_list_and_disable(self, signed_in):
        signed_in("plans", "add", "Gym", "--category", "Health", "--minutes", "45", "--day-type", "weekend")
        signed_in("plans", "disable", "1")
        _, out, _ = signed_in("plans", "list")
        assert "No plans yet." in out
        _, out, _ = signed_in("plans", "list", "--all")
        assert "Gym" in out
        assert "(disabled)" in out

    def test_start_unknown_plan(self, signed_in):
        code, _, err = signed_in("start", "42")
        assert code == 1
        assert "No active plan with id 42." in err

    def test_past_day_is_read_only_in_history(self, signed_in):
        _, out, _ = signed_in("history", "--date", "2020-02-03")
        assert "No sessions on 2020-02-03." in out

    def test_malformed_date(self, signed_in):
        code, _, err = signed_in("status", "--date", "03/02/2020")
        assert code == 1
        assert "Malformed date" in err


class TestReportCommand:

    def test_json_report(self, signed_in):
        signed_in("plans", "add", "Deep Work", "--category", "work", "--minutes", "90")
        code, out, _ = signed_in("report", "--json")
        assert code == 0
        data = json.loads(out)
        assert data["window"]["kind"] == "rolling"
        assert data["window"]["day_count"] == 7
        assert [c["category"] for c in data["categories"]][0] == "work"
        assert data["categories"][0]["planned_daily_minutes"] == 90
        assert data["balance_index"] == "Skewed"

    def test_text_report(self, signed_in):
        code, out, _ = signed_in("report", "--range", "calendar")
        assert code == 0
        assert out.startswith("Report (calendar):")
        assert "Balance: Stable" in out
        assert "Average tracked per day: 00:00" in out
