"""Savings goal calculators.

Time-to-goal inverts the future value of an ordinary annuity,
``FV = P * ((1 + r)^n - 1) / r``, for ``n``:

    n = ln(1 + FV * r / P) / ln(1 + r)

and rounds up to whole months. A goal that can never be reached is reported as
data (``months == math.inf``), not as an error.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

ACCELERATED_MULTIPLIER = 1.25
REDUCED_MULTIPLIER = 0.75
DEFAULT_PROJECTION_MONTHS = 120


@dataclass(frozen=True, slots=True)
class GoalTimeline:
    months: float  # whole months, or math.inf when unreachable
    years: float

    @property
    def reachable(self) -> bool:
        return math.isfinite(self.months)

    @classmethod
    def from_months(cls, months: float) -> "GoalTimeline":
        if not math.isfinite(months):
            return cls(months=math.inf, years=math.inf)
        return cls(months=int(months), years=round(months / 12, 1))

    def to_dict(self) -> dict[str, Any]:
        # JSON has no infinity; unreachable goals serialize as nulls.
        return {
            "months": int(self.months) if self.reachable else None,
            "years": self.years if self.reachable else None,
            "reachable": self.reachable,
        }


UNREACHABLE = GoalTimeline(months=math.inf, years=math.inf)


def monthly_rate(annual_rate_percent: float) -> float:
    return (annual_rate_percent / 100) / 12


def months_to_accumulate(remaining: float, contribution: float, rate: float) -> GoalTimeline:
    """Months of ``contribution`` deposits at monthly ``rate`` to accumulate ``remaining``."""

    if remaining <= 0:
        return GoalTimeline.from_months(0)
    if contribution <= 0:
        return UNREACHABLE

    simple = math.ceil(remaining / contribution)
    if rate == 0:
        return GoalTimeline.from_months(simple)

    ratio = (remaining * rate) / contribution
    if ratio <= -1:
        return UNREACHABLE

    try:
        months = math.log(1 + ratio) / math.log(1 + rate)
    except (ValueError, ZeroDivisionError):
        months = simple
    if not math.isfinite(months) or months <= 0:
        months = simple
    return GoalTimeline.from_months(math.ceil(months))


def time_to_goal(
    target: float, current: float, contribution: float, annual_rate_percent: float = 0.0
) -> GoalTimeline:
    """Solve for the number of months until ``current`` grows to ``target``.

    >>> time_to_goal(1000, 0, 100, 0).months
    10
    """

    if current >= target:
        return GoalTimeline.from_months(0)
    return months_to_accumulate(target - current, contribution, monthly_rate(annual_rate_percent))


def _total(contribution: float, timeline: GoalTimeline) -> float | None:
    if not timeline.reachable:
        return None
    return round(contribution * timeline.months, 2)


def _difference(later: GoalTimeline, earlier: GoalTimeline) -> int | None:
    if not (later.reachable and earlier.reachable):
        return None
    return int(later.months - earlier.months)


def savings_scenarios(
    target: float, current: float, contribution: float, annual_rate_percent: float = 0.0
) -> dict[str, Any]:
    """Current, accelerated (+25%) and reduced (-25%) contribution scenarios."""

    if target - current <= 0:
        return {
            "message": "Goal already achieved!",
            "time_to_goal": GoalTimeline.from_months(0).to_dict(),
        }

    baseline = time_to_goal(target, current, contribution, annual_rate_percent)
    faster_contribution = contribution * ACCELERATED_MULTIPLIER
    faster = time_to_goal(target, current, faster_contribution, annual_rate_percent)
    slower_contribution = contribution * REDUCED_MULTIPLIER
    slower = time_to_goal(target, current, slower_contribution, annual_rate_percent)

    baseline_total = _total(contribution, baseline)
    return {
        "current": {
            "monthly_contribution": round(contribution, 2),
            "time_to_goal": baseline.to_dict(),
            "total_contributions": baseline_total,
            "interest_earned": (
                round(target - current - baseline_total, 2) if baseline_total is not None else None
            ),
        },
        "accelerated": {
            "monthly_contribution": round(faster_contribution, 2),
            "time_to_goal": faster.to_dict(),
            "months_saved": _difference(baseline, faster),
            "total_contributions": _total(faster_contribution, faster),
        },
        "reduced": {
            "monthly_contribution": round(slower_contribution, 2),
            "time_to_goal": slower.to_dict(),
            "extra_months": _difference(slower, baseline),
            "total_contributions": _total(slower_contribution, slower),
        },
    }


def compound_projection(
    target: float,
    current: float,
    contribution: float,
    annual_rate_percent: float = 0.0,
    *,
    max_months: int = DEFAULT_PROJECTION_MONTHS,
) -> list[dict[str, float]]:
    """Month-by-month balance growth until the goal is reached or ``max_months`` pass.

    Rows cover every month of the first year, then every third month.
    """

    rate = monthly_rate(annual_rate_percent)
    balance = current
    rows: list[dict[str, float]] = []
    for month in range(1, max_months + 1):
        balance = balance * (1 + rate) + contribution
        contributed = contribution * month
        if month <= 12 or month % 3 == 0:
            rows.append(
                {
                    "month": month,
                    "balance": round(balance, 2),
                    "total_contributions": round(current + contributed, 2),
                    "interest_earned": round(balance - current - contributed, 2),
                }
            )
        if balance >= target:
            break
    return rows


def savings_recommendations(
    scenarios: dict[str, Any], annual_rate_percent: float
) -> list[dict[str, str]]:
    recommendations: list[dict[str, str]] = []
    current = scenarios.get("current")
    if current is None:
        return recommendations

    timeline = current["time_to_goal"]
    if not timeline["reachable"]:
        recommendations.append(
            {
                "type": "goal_unreachable",
                "message": "Your current contribution will never reach this goal",
                "impact": "Set a positive monthly contribution to get a timeline",
            }
        )
        return recommendations

    if timeline["years"] > 10:
        months_saved = scenarios["accelerated"]["months_saved"]
        recommendations.append(
            {
                "type": "increase_contribution",
                "message": "Consider increasing your monthly contribution to reach your goal sooner",
                "impact": f"Increasing by 25% would save you {months_saved} months",
            }
        )

    if annual_rate_percent < 2:
        recommendations.append(
            {
                "type": "better_interest_rate",
                "message": "Look for savings accounts with higher interest rates",
                "impact": "Even 1-2% higher rate can significantly reduce time to goal",
            }
        )

    if timeline["months"] <= 12:
        recommendations.append(
            {
                "type": "goal_achievable",
                "message": "You're on track to reach your goal within a year!",
                "impact": "Stay consistent with your current savings rate",
            }
        )

    return recommendations
