"""CLI tests through click's runner against a temporary data directory."""

from __future__ import annotations

import json
from datetime import date, timedelta

import pytest
from click.testing import CliRunner

from spendcast.cli import cli


@pytest.fixture
def run(tmp_path, monkeypatch):
    """Invoke the CLI rooted at ``tmp_path``; returns the click result."""

    monkeypatch.setenv("SPENDCAST_DEV_MODE", "false")
    monkeypatch.delenv("SPENDCAST_DATABASE_URL", raising=False)
    runner = CliRunner()

    def _run(*args: str):
        return runner.invoke(cli, ["--data-dir", str(tmp_path), *args])

    return _run


def _json(result):
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def _day(offset: int) -> str:
    return (date.today() + timedelta(days=offset)).isoformat()


def _create_budget(run, *extra: str):
    return run(
        "budgets",
        "create",
        "--name",
        "Groceries",
        "--amount",
        "200",
        "--category",
        "Food",
        "--start",
        _day(-5),
        "--end",
        _day(20),
        *extra,
    )


def test_init_db(run, tmp_path):
    result = run("init-db")

    assert result.exit_code == 0
    assert "Database ready" in result.stdout
    assert (tmp_path / "spendcast.db").exists()
    assert (tmp_path / "logs" / "spendcast.log").exists()


def test_budget_create_and_list(run):
    created = _json(_create_budget(run))

    assert created["categories"] == ["food"]
    assert created["status"] == "active"

    listed = _json(run("budgets", "list"))
    assert [budget["name"] for budget in listed] == ["Groceries"]


def test_overlapping_budget_is_reported(run):
    _json(_create_budget(run))

    result = _create_budget(run)

    assert result.exit_code == 1
    assert "OVERLAPPING_BUDGET" in result.output


def test_transaction_is_attributed_to_budget(run):
    budget = _json(_create_budget(run))

    txn = _json(
        run("transactions", "add", "--amount", "25", "--category", "food", "--date", _day(0))
    )
    assert txn["budget_id"] == budget["id"]

    summary = _json(run("budgets", "summary"))
    assert summary["total_spent"] == 25.0
    assert summary["total_remaining"] == 175.0


def test_pending_transaction_is_not_attributed(run):
    _json(_create_budget(run))

    txn = _json(
        run(
            "transactions", "add", "--amount", "25", "--category", "food",
            "--date", _day(0), "--pending",
        )
    )

    assert txn["budget_id"] is None


def test_budget_project_and_performance(run):
    budget = _json(_create_budget(run))
    run("transactions", "add", "--amount", "20", "--category", "food", "--date", _day(0))

    projection = _json(run("budgets", "project"))
    assert projection["projections"][0]["budget_id"] == budget["id"]
    assert projection["overall_health"]["breakdown"]["total"] == 1

    performance = _json(run("budgets", "performance", str(budget["id"])))
    assert performance["performance"] == []
    assert performance["trend"]["direction"] == "stable"


def test_renew_active_budget_fails(run):
    budget = _json(_create_budget(run))

    result = run("budgets", "renew", str(budget["id"]))

    assert result.exit_code == 1
    assert "BUDGET_NOT_COMPLETED" in result.output


def test_missing_budget(run):
    result = run("budgets", "performance", "99")

    assert result.exit_code == 1
    assert "BUDGET_NOT_FOUND" in result.output


def test_forecast_requires_history(run):
    result = run("forecast")

    assert result.exit_code == 1
    assert "INSUFFICIENT_DATA" in result.output


def test_forecast(run):
    for weeks_back in range(1, 11):
        run(
            "transactions", "add", "--type", "income", "--amount", "100",
            "--category", "salary", "--date", _day(-7 * weeks_back),
        )

    payload = _json(run("forecast", "--months", "2", "--method", "weighted"))

    assert payload["method"] == "weighted"
    assert len(payload["forecast"]) == 2
    assert len(payload["confidence_intervals"]) == 2


def test_savings_goal(run):
    payload = _json(run("savings-goal", "--goal", "1200", "--contribution", "100"))

    assert payload["contribution_source"] == "provided"
    assert payload["scenarios"]["current"]["time_to_goal"]["months"] == 12


def test_savings_goal_validation(run):
    result = run("savings-goal", "--goal", "1000", "--rate", "75")

    assert result.exit_code == 1
    assert "VALIDATION_ERROR" in result.output


def test_cash_flow(run):
    payload = _json(run("cash-flow", "--months", "4"))

    assert len(payload["projection"]) == 4
    assert payload["risks"] == []


def test_cash_flow_rejects_long_horizon(run):
    result = run("cash-flow", "--months", "13")

    assert result.exit_code == 1
    assert "VALIDATION_ERROR" in result.output
