"""Command-line front end for SpendCast."""

from __future__ import annotations

import functools
import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import click

from .config import BaseConfig
from .errors import SpendCastError
from .infra.database import bootstrap_database
from .infra.repositories import SQLModelBudgetRepository, SQLModelTransactionRepository
from .logging_config import setup_logging
from .models.budget import Budget, BudgetPeriod, BudgetType
from .models.transaction import Transaction, TransactionStatus, TransactionType
from .services import forecast_service
from .services.budget_service import BudgetService, budget_to_dict
from .services.forecasting import ForecastMethod

DATE = click.DateTime(formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"])


@dataclass
class CliContext:
    config: BaseConfig
    user_id: int
    budgets: SQLModelBudgetRepository
    transactions: SQLModelTransactionRepository

    @property
    def service(self) -> BudgetService:
        return BudgetService(self.budgets, self.transactions)


def _emit(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


def reports_errors(func):
    """Turn domain errors into a clean non-zero exit."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SpendCastError as exc:
            raise click.ClickException(f"{exc.code}: {exc.message}") from exc

    return wrapper


@click.group()
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding the database and logs (defaults to SPENDCAST_DATA_DIR).",
)
@click.option("--user-id", type=int, default=1, show_default=True)
@click.pass_context
def cli(ctx: click.Context, data_dir: Path | None, user_id: int) -> None:
    """Budget lifecycle and forecasting engine."""

    config = BaseConfig(data_dir)
    setup_logging(config)
    _engine, session_factory = bootstrap_database(config)
    ctx.obj = CliContext(
        config=config,
        user_id=user_id,
        budgets=SQLModelBudgetRepository(session_factory),
        transactions=SQLModelTransactionRepository(session_factory),
    )


@cli.command("init-db")
@click.pass_obj
def init_db(obj: CliContext) -> None:
    """Create the database schema."""

    click.echo(f"Database ready: {obj.config.DATABASE_URL}")


@cli.command("forecast")
@click.option("--months", type=int, default=6, show_default=True)
@click.option(
    "--method",
    type=click.Choice([m.value for m in ForecastMethod]),
    default=ForecastMethod.SIMPLE.value,
    show_default=True,
)
@click.pass_obj
@reports_errors
def forecast_cmd(obj: CliContext, months: int, method: str) -> None:
    """Forecast monthly income and expenses."""

    _emit(
        forecast_service.forecast_income_expense(
            transactions=obj.transactions,
            user_id=obj.user_id,
            months=months,
            method=method,
            history_months=obj.config.FORECAST_HISTORY_MONTHS,
            min_transactions=obj.config.MIN_FORECAST_TRANSACTIONS,
        )
    )


@cli.command("savings-goal")
@click.option("--goal", "goal_amount", type=float, required=True)
@click.option("--current", "current_amount", type=float, default=0.0, show_default=True)
@click.option(
    "--contribution",
    type=float,
    default=None,
    help="Monthly contribution; defaults to the recent average savings rate.",
)
@click.option("--rate", "interest_rate", type=float, default=0.0, show_default=True)
@click.pass_obj
@reports_errors
def savings_goal_cmd(
    obj: CliContext,
    goal_amount: float,
    current_amount: float,
    contribution: float | None,
    interest_rate: float,
) -> None:
    """Estimate how long a savings goal will take."""

    _emit(
        forecast_service.savings_goal_forecast(
            transactions=obj.transactions,
            user_id=obj.user_id,
            goal_amount=goal_amount,
            current_amount=current_amount,
            monthly_contribution=contribution,
            interest_rate=interest_rate,
            max_months=obj.config.PROJECTION_MAX_MONTHS,
        )
    )


@cli.command("cash-flow")
@click.option("--months", type=int, default=3, show_default=True)
@click.pass_obj
@reports_errors
def cash_flow_cmd(obj: CliContext, months: int) -> None:
    """Project net cash flow."""

    _emit(
        forecast_service.cash_flow(
            transactions=obj.transactions, user_id=obj.user_id, months=months
        )
    )


@cli.group("transactions")
def transactions_group() -> None:
    """Ledger entries."""


@transactions_group.command("add")
@click.option(
    "--type",
    "txn_type",
    type=click.Choice([t.value for t in TransactionType]),
    default=TransactionType.EXPENSE.value,
    show_default=True,
)
@click.option("--amount", type=float, required=True)
@click.option("--category", required=True)
@click.option("--date", "occurred_at", type=DATE, default=None)
@click.option("--description", default="")
@click.option("--pending", is_flag=True, default=False)
@click.pass_obj
@reports_errors
def add_transaction(
    obj: CliContext,
    txn_type: str,
    amount: float,
    category: str,
    occurred_at: datetime | None,
    description: str,
    pending: bool,
) -> None:
    """Record a transaction and attribute it to a matching budget."""

    txn = Transaction(
        user_id=obj.user_id,
        occurred_at=occurred_at or datetime.now(),
        txn_type=txn_type,
        amount=amount,
        category=category,
        description=description,
        status=(TransactionStatus.PENDING if pending else TransactionStatus.COMPLETED).value,
    )
    created = obj.service.record_transaction(txn, user_id=obj.user_id)
    _emit(
        {
            "id": created.id,
            "occurred_at": created.occurred_at.isoformat(),
            "type": created.txn_type,
            "amount": created.amount,
            "category": created.category,
            "budget_id": created.budget_id,
        }
    )


@cli.group("budgets")
def budgets_group() -> None:
    """Budget management and projections."""


@budgets_group.command("create")
@click.option("--name", required=True)
@click.option("--amount", type=float, required=True)
@click.option("--category", "categories", multiple=True, required=True)
@click.option("--start", "start_date", type=DATE, required=True)
@click.option("--end", "end_date", type=DATE, required=True)
@click.option(
    "--period",
    type=click.Choice([p.value for p in BudgetPeriod]),
    default=BudgetPeriod.MONTHLY.value,
    show_default=True,
)
@click.option(
    "--type",
    "budget_type",
    type=click.Choice([t.value for t in BudgetType]),
    default=BudgetType.EXPENSE.value,
    show_default=True,
)
@click.option("--rollover/--no-rollover", default=False, show_default=True)
@click.option("--max-rollover", type=float, default=None)
@click.option("--auto-renew/--no-auto-renew", default=True, show_default=True)
@click.pass_obj
@reports_errors
def create_budget(
    obj: CliContext,
    name: str,
    amount: float,
    categories: tuple[str, ...],
    start_date: datetime,
    end_date: datetime,
    period: str,
    budget_type: str,
    rollover: bool,
    max_rollover: float | None,
    auto_renew: bool,
) -> None:
    """Create a budget."""

    budget = Budget(
        user_id=obj.user_id,
        name=name,
        amount=amount,
        categories=list(categories),
        start_date=start_date,
        end_date=end_date,
        period=period,
        budget_type=budget_type,
        rollover_enabled=rollover,
        rollover_max_amount=max_rollover,
        auto_renew_enabled=auto_renew,
    )
    _emit(budget_to_dict(obj.service.create_budget(budget, user_id=obj.user_id)))


@budgets_group.command("list")
@click.pass_obj
def list_budgets(obj: CliContext) -> None:
    """List budgets with their current status."""

    _emit([budget_to_dict(b) for b in obj.service.list_budgets(user_id=obj.user_id)])


@budgets_group.command("project")
@click.option("--budget-id", type=int, default=None)
@click.pass_obj
@reports_errors
def project_budgets(obj: CliContext, budget_id: int | None) -> None:
    """Project end-of-period spending and overall budget health."""

    _emit(obj.service.budget_projection(user_id=obj.user_id, budget_id=budget_id))


@budgets_group.command("renew")
@click.argument("budget_id", type=int)
@click.pass_obj
@reports_errors
def renew_budget(obj: CliContext, budget_id: int) -> None:
    """Roll a completed budget into its next period."""

    _emit(budget_to_dict(obj.service.renew_budget(budget_id, user_id=obj.user_id)))


@budgets_group.command("summary")
@click.pass_obj
def budget_summary(obj: CliContext) -> None:
    """Totals and budgets needing attention."""

    _emit(obj.service.budget_summary(user_id=obj.user_id))


@budgets_group.command("performance")
@click.argument("budget_id", type=int)
@click.pass_obj
@reports_errors
def budget_performance(obj: CliContext, budget_id: int) -> None:
    """History, trend and current-period metrics for one budget."""

    _emit(obj.service.budget_performance(budget_id, user_id=obj.user_id))


def main() -> None:
    cli(prog_name="spendcast")


if __name__ == "__main__":  # pragma: no cover
    main()
