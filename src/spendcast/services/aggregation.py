"""Monthly aggregation of ledger transactions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from ..models.transaction import Transaction


@dataclass(frozen=True, slots=True)
class MonthlyBucket:
    """One calendar month's income/expense totals."""

    month: str  # YYYY-MM
    income: float = 0.0
    expenses: float = 0.0
    transaction_count: int = 0

    @property
    def net(self) -> float:
        return self.income - self.expenses

    @property
    def year(self) -> int:
        return int(self.month[:4])

    @property
    def calendar_month(self) -> int:
        """1-12."""
        return int(self.month[5:7])

    @property
    def has_activity(self) -> bool:
        return self.transaction_count > 0 or self.income > 0 or self.expenses > 0

    def to_dict(self) -> dict[str, object]:
        return {
            "month": self.month,
            "income": round(self.income, 2),
            "expenses": round(self.expenses, 2),
            "net": round(self.net, 2),
            "transaction_count": self.transaction_count,
        }


def month_key(value: date | datetime) -> str:
    """Return the YYYY-MM bucket key for a date."""

    return f"{value.year:04d}-{value.month:02d}"


def add_months(year: int, month: int, offset: int) -> tuple[int, int]:
    """Shift a (year, month) pair by ``offset`` months."""

    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def aggregate_monthly(transactions: Iterable[Transaction]) -> list[MonthlyBucket]:
    """Fold transactions into ascending per-month buckets.

    Only months with at least one transaction appear; gaps are not synthesized
    (see :func:`fill_month_gaps`). Input order does not matter.
    """

    totals: dict[str, list[float]] = {}
    for txn in transactions:
        key = month_key(txn.occurred_at)
        entry = totals.setdefault(key, [0.0, 0.0, 0])
        if txn.is_income:
            entry[0] += float(txn.amount)
        else:
            entry[1] += float(txn.amount)
        entry[2] += 1

    return [
        MonthlyBucket(month=key, income=income, expenses=expenses, transaction_count=int(count))
        for key, (income, expenses, count) in sorted(totals.items())
    ]


def fill_month_gaps(buckets: Iterable[MonthlyBucket]) -> list[MonthlyBucket]:
    """Return a dense timeline between the first and last bucket.

    Missing months are filled with zero buckets.
    """

    by_month = {bucket.month: bucket for bucket in buckets}
    if not by_month:
        return []

    ordered = sorted(by_month)
    first, last = ordered[0], ordered[-1]
    year, month = int(first[:4]), int(first[5:7])
    dense: list[MonthlyBucket] = []
    while True:
        key = f"{year:04d}-{month:02d}"
        dense.append(by_month.get(key, MonthlyBucket(month=key)))
        if key == last:
            break
        year, month = add_months(year, month, 1)
    return dense


def average_net(buckets: Iterable[MonthlyBucket]) -> float:
    """Mean monthly net across buckets (0.0 when empty)."""

    values = [bucket.net for bucket in buckets]
    if not values:
        return 0.0
    return sum(values) / len(values)
