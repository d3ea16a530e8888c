"""Request-level forecasting operations over the transaction store."""

from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Any, Optional, Sequence

from ..domain.repositories.transaction import TransactionRepository
from ..errors import ValidationError
from ..logging_config import get_logger
from ..models.transaction import TransactionStatus
from .aggregation import MonthlyBucket, add_months, aggregate_monthly, average_net, fill_month_gaps
from .cash_flow import MAX_CASH_FLOW_MONTHS, cash_flow_forecast, cash_flow_risks, cash_flow_summary
from .confidence import confidence_intervals
from .forecasting import (
    DEFAULT_MIN_TRANSACTIONS,
    ForecastMethod,
    forecast,
    resolve_method,
    validate_horizon,
)
from .savings import (
    DEFAULT_PROJECTION_MONTHS,
    compound_projection,
    savings_recommendations,
    savings_scenarios,
)

logger = get_logger("services.forecast")

DEFAULT_HISTORY_MONTHS = 12
SAVINGS_RATE_MONTHS = 3
CASH_FLOW_HISTORY_MONTHS = 6
MAX_INTEREST_RATE = 50.0


def months_before(today: date, months: int) -> datetime:
    """Midnight on the same day ``months`` months earlier, clamped to month end."""

    year, month = add_months(today.year, today.month, -months)
    day = min(today.day, calendar.monthrange(year, month)[1])
    return datetime(year, month, day)


def assess_data_quality(buckets: Sequence[MonthlyBucket]) -> str:
    """Rate history completeness on the gap-filled timeline."""

    timeline = fill_month_gaps(buckets)
    total = len(timeline)
    if total == 0:
        return "low"
    completeness = sum(1 for b in timeline if b.has_activity) / total
    if completeness >= 0.9 and total >= 6:
        return "high"
    if completeness >= 0.7 and total >= 3:
        return "medium"
    return "low"


def _history(
    transactions: TransactionRepository, *, user_id: int, since: datetime
) -> list[MonthlyBucket]:
    rows = transactions.find(
        user_id=user_id, start_date=since, status=TransactionStatus.COMPLETED.value
    )
    return aggregate_monthly(rows)


def forecast_income_expense(
    *,
    transactions: TransactionRepository,
    user_id: int,
    months: int = 6,
    method: ForecastMethod | str = ForecastMethod.SIMPLE,
    today: Optional[date] = None,
    history_months: int = DEFAULT_HISTORY_MONTHS,
    min_transactions: int = DEFAULT_MIN_TRANSACTIONS,
) -> dict[str, Any]:
    """Forecast income and expenses for the next ``months`` months."""

    horizon = validate_horizon(months)
    resolved = resolve_method(method)
    today = today or date.today()

    buckets = _history(transactions, user_id=user_id, since=months_before(today, history_months))
    points = forecast(
        buckets, horizon, resolved, today=today, min_transactions=min_transactions
    )
    bands = confidence_intervals(buckets, points)

    logger.info(
        "Forecast generated",
        extra={"user_id": user_id, "method": resolved.value, "months": horizon},
    )
    return {
        "forecast": [point.to_dict() for point in points],
        "confidence_intervals": [band.to_dict() for band in bands],
        "method": resolved.value,
        "historical_data": [bucket.to_dict() for bucket in buckets],
        "assumptions": {
            "based_on_months": min(history_months, len(buckets)),
            "projection_months": horizon,
            "data_quality": assess_data_quality(buckets),
        },
    }


def historical_savings_rate(
    *, transactions: TransactionRepository, user_id: int, today: date
) -> float:
    """Average monthly net over the trailing three months, floored at zero."""

    buckets = _history(
        transactions, user_id=user_id, since=months_before(today, SAVINGS_RATE_MONTHS)
    )
    return max(0.0, average_net(buckets))


def savings_goal_forecast(
    *,
    transactions: TransactionRepository,
    user_id: int,
    goal_amount: float,
    current_amount: float = 0.0,
    monthly_contribution: Optional[float] = None,
    interest_rate: float = 0.0,
    today: Optional[date] = None,
    max_months: int = DEFAULT_PROJECTION_MONTHS,
) -> dict[str, Any]:
    """Time-to-goal scenarios, a compound growth table and recommendations.

    When ``monthly_contribution`` is omitted the user's recent savings rate is
    used; a zero rate yields an unreachable timeline rather than an error.
    """

    if goal_amount is None or goal_amount < 1:
        raise ValidationError("Goal amount must be a positive number")
    if current_amount < 0:
        raise ValidationError("Current amount must be non-negative")
    if monthly_contribution is not None and monthly_contribution < 0:
        raise ValidationError("Monthly contribution must be non-negative")
    if not 0 <= interest_rate <= MAX_INTEREST_RATE:
        raise ValidationError("Interest rate must be between 0 and 50 percent")

    source = "provided"
    contribution = monthly_contribution
    if contribution is None:
        source = "historical"
        contribution = historical_savings_rate(
            transactions=transactions, user_id=user_id, today=today or date.today()
        )

    scenarios = savings_scenarios(goal_amount, current_amount, contribution, interest_rate)
    return {
        "goal": {
            "target_amount": goal_amount,
            "current_amount": current_amount,
            "remaining": round(goal_amount - current_amount, 2),
        },
        "monthly_contribution": round(contribution, 2),
        "contribution_source": source,
        "scenarios": scenarios,
        "projections": compound_projection(
            goal_amount, current_amount, contribution, interest_rate, max_months=max_months
        ),
        "recommendations": savings_recommendations(scenarios, interest_rate),
    }


def cash_flow(
    *,
    transactions: TransactionRepository,
    user_id: int,
    months: int = 3,
    today: Optional[date] = None,
) -> dict[str, Any]:
    """Project net cash flow from the last six months of activity."""

    if not 1 <= int(months) <= MAX_CASH_FLOW_MONTHS:
        raise ValidationError(f"Months must be between 1 and {MAX_CASH_FLOW_MONTHS}")
    today = today or date.today()
    buckets = _history(
        transactions, user_id=user_id, since=months_before(today, CASH_FLOW_HISTORY_MONTHS)
    )
    rows = cash_flow_forecast(buckets, int(months), today)
    return {
        "projection": [row.to_dict() for row in rows],
        "summary": cash_flow_summary(rows),
        "risks": cash_flow_risks(rows),
    }
