"""Budget period engine: derived metrics, status, alerts, renewal.

Everything here is pure. Counters are changed by the repository's atomic
operations; these helpers only read a budget and compute what its cached
columns should be, or build the renewed period for a compare-and-swap write.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from ..errors import InvalidDateRangeError, ValidationError
from ..models.budget import (
    Budget,
    BudgetPeriod,
    BudgetPeriodSnapshot,
    BudgetStatus,
    BudgetType,
)

SECONDS_PER_DAY = 86400
MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 300
MIN_ADJUSTMENT_PERCENTAGE = -50.0
MAX_ADJUSTMENT_PERCENTAGE = 100.0


def _ceil_days(delta: timedelta) -> int:
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def utilization(budget: Budget) -> float:
    """Spent as a percentage of the budgeted amount."""

    if budget.amount <= 0:
        return 0.0
    return (budget.spent / budget.amount) * 100


def remaining_amount(budget: Budget) -> float:
    return max(0.0, budget.amount - budget.spent + (budget.rollover_amount or 0.0))


@dataclass(frozen=True, slots=True)
class BudgetMetrics:
    utilization_percentage: float
    remaining_amount: float
    days_remaining: int
    daily_spending_rate: float
    projected_end_amount: float
    health_status: str

    def to_dict(self) -> dict[str, object]:
        return {
            "utilization_percentage": round(self.utilization_percentage, 2),
            "remaining_amount": round(self.remaining_amount, 2),
            "days_remaining": self.days_remaining,
            "daily_spending_rate": round(self.daily_spending_rate, 2),
            "projected_end_amount": round(self.projected_end_amount, 2),
            "health_status": self.health_status,
        }


def health_status(budget: Budget) -> str:
    used = utilization(budget)
    if used >= budget.critical_percentage:
        return "critical"
    if used >= budget.warning_percentage:
        return "warning"
    if used < 50:
        return "good"
    return "ok"


def compute_metrics(budget: Budget, now: datetime) -> BudgetMetrics:
    days_elapsed = max(1, _ceil_days(now - budget.start_date))
    total_days = _ceil_days(budget.end_date - budget.start_date)
    daily_rate = budget.spent / days_elapsed
    return BudgetMetrics(
        utilization_percentage=utilization(budget),
        remaining_amount=remaining_amount(budget),
        days_remaining=max(0, _ceil_days(budget.end_date - now)),
        daily_spending_rate=daily_rate,
        projected_end_amount=daily_rate * total_days,
        health_status=health_status(budget),
    )


def derive_status(budget: Budget, now: datetime) -> str:
    """Re-derive the status a budget should have at ``now``.

    Paused is sticky and only changed by the user. Otherwise overspending wins
    over the calendar, an expired period completes, and edits that undo either
    condition bring the budget back to active.
    """

    current = budget.status
    if current == BudgetStatus.PAUSED.value:
        return current
    if utilization(budget) >= 100:
        return BudgetStatus.EXCEEDED.value
    if now > budget.end_date:
        return BudgetStatus.COMPLETED.value
    if current in (BudgetStatus.EXCEEDED.value, BudgetStatus.COMPLETED.value):
        return BudgetStatus.ACTIVE.value
    return current


@dataclass(frozen=True, slots=True)
class BudgetAlert:
    level: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"level": self.level, "message": self.message}


def _format_percentage(value: float) -> str:
    return f"{value:g}"


def needs_alert(budget: Budget) -> Optional[BudgetAlert]:
    """Critical beats warning; a disabled threshold never fires."""

    used = utilization(budget)
    if budget.critical_enabled and used >= budget.critical_percentage:
        return BudgetAlert(
            level="critical",
            message=f"Budget exceeded {_format_percentage(budget.critical_percentage)}%",
        )
    if budget.warning_enabled and used >= budget.warning_percentage:
        return BudgetAlert(
            level="warning",
            message=f"Budget reached {_format_percentage(budget.warning_percentage)}%",
        )
    return None


def week_number(value: date) -> int:
    """Week of the year counted from the Sunday on or before January 1st."""

    jan_first = date(value.year, 1, 1)
    past_days = (value - jan_first).days
    sunday_based_weekday = (jan_first.weekday() + 1) % 7
    return math.ceil((past_days + sunday_based_weekday + 1) / 7)


def period_label(period: str, start: datetime) -> str:
    if period == BudgetPeriod.WEEKLY.value:
        return f"{start.year}-W{week_number(start.date()):02d}"
    if period == BudgetPeriod.QUARTERLY.value:
        return f"{start.year}-Q{(start.month - 1) // 3 + 1}"
    if period == BudgetPeriod.YEARLY.value:
        return f"{start.year}"
    return f"{start.year}-{start.month:02d}"


def clone_budget(budget: Budget) -> Budget:
    """Detached copy of every column; history is not copied."""

    values = {column.name: getattr(budget, column.name) for column in Budget.__table__.columns}
    values["categories"] = list(budget.categories or [])
    return Budget(**values)


def rollover_for(budget: Budget) -> float:
    """Unused amount carried into the next period under the budget's policy."""

    if not (budget.rollover_enabled and budget.rollover_carry_over_unused):
        return 0.0
    if budget.status == BudgetStatus.EXCEEDED.value:
        return 0.0
    carried = max(0.0, budget.amount - budget.spent)
    if budget.rollover_max_amount is not None:
        carried = min(carried, budget.rollover_max_amount)
    return carried


def renew_for_next_period(
    budget: Budget, now: datetime
) -> Optional[tuple[Budget, BudgetPeriodSnapshot]]:
    """Close the current period and open the next one.

    Returns ``None`` and leaves ``budget`` untouched unless auto-renew is on and
    the budget is completed at ``now``. Otherwise returns the renewed budget (a
    new object) and the snapshot archiving the closed period.
    """

    if not budget.auto_renew_enabled:
        return None
    if derive_status(budget, now) != BudgetStatus.COMPLETED.value:
        return None

    variance = budget.amount - budget.spent
    snapshot = BudgetPeriodSnapshot(
        budget_id=budget.id,
        period=period_label(budget.period, budget.start_date),
        budget_amount=budget.amount,
        actual_spent=budget.spent,
        variance=variance,
        variance_percentage=(variance / budget.amount) * 100 if budget.amount else 0.0,
        transaction_count=budget.transaction_count,
        start_date=budget.start_date,
        end_date=budget.end_date,
        notes="Auto-renewed budget period",
    )

    renewed = clone_budget(budget)
    rollover = rollover_for(budget)
    length = budget.period_length_days
    renewed.start_date = budget.end_date + timedelta(days=1)
    renewed.end_date = renewed.start_date + timedelta(days=length - 1)
    if budget.auto_renew_adjust_amount:
        renewed.amount = budget.amount * (1 + budget.auto_renew_adjustment_percentage / 100)
    renewed.spent = 0.0
    renewed.transaction_count = 0
    renewed.last_transaction_date = None
    renewed.rollover_amount = rollover
    renewed.remaining = renewed.amount + rollover
    renewed.status = BudgetStatus.ACTIVE.value
    return renewed, snapshot


def normalize_categories(categories) -> list[str]:
    normalized: list[str] = []
    for raw in categories or []:
        value = str(raw).strip().lower()
        if value and value not in normalized:
            normalized.append(value)
    return normalized


def validate_budget_definition(budget: Budget) -> Budget:
    """Validate user-editable fields, normalizing ``categories`` in place."""

    name = (budget.name or "").strip()
    if not 1 <= len(name) <= MAX_NAME_LENGTH:
        raise ValidationError(f"Budget name must be 1-{MAX_NAME_LENGTH} characters")
    budget.name = name
    if len(budget.description or "") > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters"
        )
    if budget.amount is None or budget.amount <= 0:
        raise ValidationError("Budget amount must be positive")
    if budget.period not in {p.value for p in BudgetPeriod}:
        raise ValidationError(f"Unknown budget period: {budget.period}")
    if budget.budget_type not in {t.value for t in BudgetType}:
        raise ValidationError(f"Unknown budget type: {budget.budget_type}")

    categories = normalize_categories(budget.categories)
    if not categories:
        raise ValidationError("At least one category is required")
    budget.categories = categories

    if budget.end_date <= budget.start_date:
        raise InvalidDateRangeError("End date must be after start date")

    for label, value in (
        ("Warning", budget.warning_percentage),
        ("Critical", budget.critical_percentage),
    ):
        if not 0 <= value <= 100:
            raise ValidationError(f"{label} percentage must be between 0 and 100")
    if not MIN_ADJUSTMENT_PERCENTAGE <= budget.auto_renew_adjustment_percentage <= MAX_ADJUSTMENT_PERCENTAGE:
        raise ValidationError("Adjustment percentage must be between -50 and 100")
    if budget.rollover_max_amount is not None and budget.rollover_max_amount < 0:
        raise ValidationError("Maximum rollover amount cannot be negative")
    return budget
