"""End-of-period budget projections and the aggregate health score."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Sequence

from ..models.budget import Budget, BudgetPeriodSnapshot
from ..models.transaction import Transaction

OVER_BUDGET = "over_budget"
AT_RISK = "at_risk"
ON_TRACK = "on_track"
UNDER_BUDGET = "under_budget"

TREND_WINDOW = 3
TREND_TOLERANCE_POINTS = 5.0


def _ceil_days(start: datetime, end: datetime) -> int:
    return math.ceil((end - start).total_seconds() / 86400)


def classify(projected_utilization: float) -> str:
    if projected_utilization > 100:
        return OVER_BUDGET
    if projected_utilization > 90:
        return AT_RISK
    if projected_utilization < 70:
        return UNDER_BUDGET
    return ON_TRACK


@dataclass(frozen=True, slots=True)
class BudgetProjection:
    budget_id: int | None
    budget_name: str
    amount: float
    spent: float
    utilization: float
    daily_burn_rate: float
    projected_end_spending: float
    projected_utilization: float
    status: str
    total_days: int
    days_passed: int
    days_remaining: int

    @property
    def variance(self) -> float:
        return self.amount - self.projected_end_spending

    @property
    def percent_complete(self) -> float:
        if self.total_days <= 0:
            return 100.0
        return (self.days_passed / self.total_days) * 100

    def to_dict(self) -> dict[str, object]:
        return {
            "budget_id": self.budget_id,
            "budget_name": self.budget_name,
            "current": {
                "spent": round(self.spent, 2),
                "utilization": round(self.utilization, 2),
                "daily_burn_rate": round(self.daily_burn_rate, 2),
            },
            "projected": {
                "end_spending": round(self.projected_end_spending, 2),
                "utilization": round(self.projected_utilization, 2),
                "status": self.status,
                "variance": round(self.variance, 2),
            },
            "timeline": {
                "total_days": self.total_days,
                "days_passed": self.days_passed,
                "days_remaining": self.days_remaining,
                "percent_complete": round(self.percent_complete, 2),
            },
        }


def project_budget_performance(budget: Budget, now: datetime) -> BudgetProjection:
    """Extrapolate the current burn rate to the end of the budget period."""

    total_days = _ceil_days(budget.start_date, budget.end_date)
    days_passed = max(1, _ceil_days(budget.start_date, now))
    days_remaining = max(0, total_days - days_passed)
    burn_rate = budget.spent / days_passed
    projected = budget.spent + burn_rate * days_remaining
    projected_utilization = (projected / budget.amount) * 100 if budget.amount else 0.0
    return BudgetProjection(
        budget_id=budget.id,
        budget_name=budget.name,
        amount=budget.amount,
        spent=budget.spent,
        utilization=(budget.spent / budget.amount) * 100 if budget.amount else 0.0,
        daily_burn_rate=burn_rate,
        projected_end_spending=projected,
        projected_utilization=projected_utilization,
        status=classify(projected_utilization),
        total_days=total_days,
        days_passed=days_passed,
        days_remaining=days_remaining,
    )


def health_level(score: float) -> str:
    if score >= 80:
        return "excellent"
    if score >= 60:
        return "good"
    if score >= 40:
        return "fair"
    return "poor"


def overall_budget_health(projections: Sequence[BudgetProjection]) -> dict[str, object]:
    """Score = 100 - 30 per over-budget - 15 per at-risk + 5 per under-budget, clamped."""

    counts = {OVER_BUDGET: 0, AT_RISK: 0, ON_TRACK: 0, UNDER_BUDGET: 0}
    for projection in projections:
        counts[projection.status] += 1

    raw = 100 - 30 * counts[OVER_BUDGET] - 15 * counts[AT_RISK] + 5 * counts[UNDER_BUDGET]
    score = max(0, min(100, raw))
    return {
        "score": score,
        "level": health_level(score),
        "breakdown": {
            "total": len(projections),
            "over_budget": counts[OVER_BUDGET],
            "at_risk": counts[AT_RISK],
            "on_track": counts[ON_TRACK],
            "under_budget": counts[UNDER_BUDGET],
        },
    }


def budget_recommendations(projections: Iterable[BudgetProjection]) -> list[dict[str, object]]:
    recommendations: list[dict[str, object]] = []
    for projection in projections:
        base = {"budget_id": projection.budget_id, "budget_name": projection.budget_name}
        if projection.status == OVER_BUDGET:
            recommendations.append(
                {
                    **base,
                    "type": "reduce_spending",
                    "urgency": "high",
                    "message": (
                        f"{projection.budget_name} is projected to exceed budget by "
                        f"{abs(projection.variance):.2f}"
                    ),
                    "action": "Consider reducing spending in this category or adjusting the budget amount",
                }
            )
        elif projection.status == AT_RISK:
            recommendations.append(
                {
                    **base,
                    "type": "monitor_spending",
                    "urgency": "medium",
                    "message": f"{projection.budget_name} is at risk of exceeding budget",
                    "action": "Monitor spending closely for the remainder of the period",
                }
            )
        elif projection.status == UNDER_BUDGET:
            recommendations.append(
                {
                    **base,
                    "type": "optimize_budget",
                    "urgency": "low",
                    "message": f"{projection.budget_name} has unused budget capacity",
                    "action": "Consider reallocating funds or adjusting future budget amounts",
                }
            )
    return recommendations


def history_utilization(snapshot: BudgetPeriodSnapshot) -> float:
    if not snapshot.budget_amount:
        return 0.0
    return (snapshot.actual_spent / snapshot.budget_amount) * 100


def utilization_trend(history: Sequence[BudgetPeriodSnapshot]) -> dict[str, object]:
    """Average period-over-period utilization change across the last three periods.

    ``up``/``down`` when the average moves by more than five points.
    """

    recent = [history_utilization(snapshot) for snapshot in list(history)[-TREND_WINDOW:]]
    if len(recent) < 2:
        return {"direction": "stable", "change": 0}
    steps = [later - earlier for earlier, later in zip(recent, recent[1:])]
    average_change = sum(steps) / len(steps)
    if average_change > TREND_TOLERANCE_POINTS:
        direction = "up"
    elif average_change < -TREND_TOLERANCE_POINTS:
        direction = "down"
    else:
        direction = "stable"
    return {"direction": direction, "change": round(average_change)}


WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def spending_pattern(transactions: Iterable[Transaction]) -> dict[str, list[dict[str, object]]]:
    """Totals by day of week (Sunday first) and by day of month."""

    by_weekday = [0.0] * 7
    by_month_day = [0.0] * 31
    for txn in transactions:
        by_weekday[(txn.occurred_at.weekday() + 1) % 7] += txn.amount
        by_month_day[txn.occurred_at.day - 1] += txn.amount
    return {
        "by_day_of_week": [
            {"day": name, "amount": round(amount, 2)}
            for name, amount in zip(WEEKDAY_NAMES, by_weekday)
        ],
        "by_day_of_month": [
            {"day": index + 1, "amount": round(amount, 2)}
            for index, amount in enumerate(by_month_day)
        ],
    }
