"""Short-range cash-flow projection from flat historical averages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Sequence

from .aggregation import MonthlyBucket
from .forecasting import target_months

MAX_CASH_FLOW_MONTHS = 12
DECLINE_RATIO = 0.8


@dataclass(frozen=True, slots=True)
class CashFlowMonth:
    month: str
    income: float
    expenses: float
    net_flow: float
    cumulative_flow: float

    def to_dict(self) -> dict[str, object]:
        return {
            "month": self.month,
            "income": self.income,
            "expenses": self.expenses,
            "net_flow": self.net_flow,
            "cumulative_flow": self.cumulative_flow,
        }


def cash_flow_forecast(
    buckets: Sequence[MonthlyBucket], months: int, today: date
) -> list[CashFlowMonth]:
    """Project ``months`` future months at the historical average income and expenses.

    Empty history projects zero flow rather than failing.
    """

    history = list(buckets)
    if history:
        income = sum(b.income for b in history) / len(history)
        expenses = sum(b.expenses for b in history) / len(history)
    else:
        income = expenses = 0.0

    rows: list[CashFlowMonth] = []
    cumulative = 0.0
    for year, month in target_months(today, months):
        net = income - expenses
        cumulative += net
        rows.append(
            CashFlowMonth(
                month=f"{year:04d}-{month:02d}",
                income=round(income, 2),
                expenses=round(expenses, 2),
                net_flow=round(net, 2),
                cumulative_flow=round(cumulative, 2),
            )
        )
    return rows


def cash_flow_summary(rows: Sequence[CashFlowMonth]) -> dict[str, float]:
    count = len(rows) or 1
    return {
        "average_monthly_income": round(sum(r.income for r in rows) / count, 2),
        "average_monthly_expenses": round(sum(r.expenses for r in rows) / count, 2),
        "average_net_flow": round(sum(r.net_flow for r in rows) / count, 2),
    }


def cash_flow_risks(rows: Sequence[CashFlowMonth]) -> list[dict[str, object]]:
    risks: list[dict[str, object]] = []
    if not rows:
        return risks

    negative = [row.month for row in rows if row.net_flow < 0]
    if negative:
        risks.append(
            {
                "type": "negative_cash_flow",
                "severity": "high" if len(negative) > 1 else "medium",
                "message": f"Projected negative cash flow in {len(negative)} month(s)",
                "months": negative,
            }
        )

    half = len(rows) // 2
    if half:
        first = [row.net_flow for row in rows[:half]]
        second = [row.net_flow for row in rows[half:]]
        first_avg = sum(first) / len(first)
        second_avg = sum(second) / len(second)
        if second_avg < first_avg * DECLINE_RATIO:
            risks.append(
                {
                    "type": "declining_trend",
                    "severity": "medium",
                    "message": "Cash flow shows declining trend over projection period",
                    "impact": round(first_avg - second_avg, 2),
                }
            )

    final = rows[-1].cumulative_flow
    if final < 0:
        risks.append(
            {
                "type": "cumulative_deficit",
                "severity": "high",
                "message": "Cumulative cash flow deficit projected",
                "deficit": abs(final),
            }
        )
    return risks
