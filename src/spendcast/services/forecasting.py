"""Income/expense forecasting over monthly buckets.

Three interchangeable strategies share one interface and are selected through
:class:`ForecastMethod`:

* ``simple``   flat mean of the trailing six buckets
* ``weighted`` linearly recency-weighted mean of the trailing six buckets
  (weights 1..n, oldest to newest)
* ``seasonal`` overall mean scaled by a per-calendar-month factor computed
  from the whole history

These are deliberately plain moving averages, not statistical models.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Optional, Sequence

from ..errors import InsufficientDataError, ValidationError
from ..logging_config import get_logger
from .aggregation import MonthlyBucket, add_months

logger = get_logger("services.forecasting")

TRAILING_WINDOW = 6
MIN_HORIZON_MONTHS = 1
MAX_HORIZON_MONTHS = 24
DEFAULT_MIN_TRANSACTIONS = 10


class ForecastMethod(str, Enum):
    SIMPLE = "simple"
    WEIGHTED = "weighted"
    SEASONAL = "seasonal"


@dataclass(frozen=True, slots=True)
class SeasonalFactor:
    income: float
    expenses: float


@dataclass(frozen=True, slots=True)
class Band:
    forecast: float
    lower: float
    upper: float


@dataclass(frozen=True, slots=True)
class ConfidenceBand:
    """95% band for one forecast month."""

    month: str
    income: Band
    expenses: Band

    def to_dict(self) -> dict[str, object]:
        return {
            "month": self.month,
            "income": {
                "forecast": self.income.forecast,
                "lower": self.income.lower,
                "upper": self.income.upper,
            },
            "expenses": {
                "forecast": self.expenses.forecast,
                "lower": self.expenses.lower,
                "upper": self.expenses.upper,
            },
        }


@dataclass(frozen=True, slots=True)
class ForecastPoint:
    month: str
    income: float
    expenses: float
    net: float
    seasonal_factor: Optional[SeasonalFactor] = None
    confidence: Optional[ConfidenceBand] = None

    def with_confidence(self, band: ConfidenceBand) -> "ForecastPoint":
        return replace(self, confidence=band)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "month": self.month,
            "income": self.income,
            "expenses": self.expenses,
            "net": self.net,
        }
        if self.seasonal_factor is not None:
            payload["seasonal_factor"] = {
                "income": self.seasonal_factor.income,
                "expenses": self.seasonal_factor.expenses,
            }
        if self.confidence is not None:
            payload["confidence"] = self.confidence.to_dict()
        return payload


def _point(
    year: int, month: int, income: float, expenses: float, factor: SeasonalFactor | None = None
) -> ForecastPoint:
    """Build an output point; this is the only place values are rounded."""

    return ForecastPoint(
        month=f"{year:04d}-{month:02d}",
        income=round(income, 2),
        expenses=round(expenses, 2),
        net=round(income - expenses, 2),
        seasonal_factor=factor,
    )


class ForecastStrategy(ABC):
    """Turns historical buckets into one projected value per target month."""

    method: ForecastMethod

    @abstractmethod
    def project(
        self, history: Sequence[MonthlyBucket], targets: Sequence[tuple[int, int]]
    ) -> list[ForecastPoint]:
        raise NotImplementedError


class SimpleMovingAverage(ForecastStrategy):
    method = ForecastMethod.SIMPLE

    def averages(self, history: Sequence[MonthlyBucket]) -> tuple[float, float]:
        recent = list(history)[-TRAILING_WINDOW:]
        if not recent:
            return 0.0, 0.0
        income = sum(b.income for b in recent) / len(recent)
        expenses = sum(b.expenses for b in recent) / len(recent)
        return income, expenses

    def project(
        self, history: Sequence[MonthlyBucket], targets: Sequence[tuple[int, int]]
    ) -> list[ForecastPoint]:
        income, expenses = self.averages(history)
        return [_point(year, month, income, expenses) for year, month in targets]


class WeightedMovingAverage(SimpleMovingAverage):
    """Trailing-window mean with linear weights 1..n, newest month heaviest."""

    method = ForecastMethod.WEIGHTED

    def averages(self, history: Sequence[MonthlyBucket]) -> tuple[float, float]:
        recent = list(history)[-TRAILING_WINDOW:]
        if not recent:
            return 0.0, 0.0
        weights = range(1, len(recent) + 1)
        total_weight = sum(weights)
        income = sum(w * b.income for w, b in zip(weights, recent)) / total_weight
        expenses = sum(w * b.expenses for w, b in zip(weights, recent)) / total_weight
        return income, expenses


class SeasonalAverage(ForecastStrategy):
    method = ForecastMethod.SEASONAL

    @staticmethod
    def seasonal_factors(
        history: Sequence[MonthlyBucket],
    ) -> tuple[float, float, dict[int, SeasonalFactor]]:
        """Return (overall income avg, overall expense avg, factor per calendar month).

        Calendar months with no history are absent from the mapping; callers
        treat them as a neutral 1.0.
        """

        buckets = list(history)
        if not buckets:
            return 0.0, 0.0, {}

        overall_income = sum(b.income for b in buckets) / len(buckets)
        overall_expenses = sum(b.expenses for b in buckets) / len(buckets)

        grouped: dict[int, list[MonthlyBucket]] = {}
        for bucket in buckets:
            grouped.setdefault(bucket.calendar_month, []).append(bucket)

        factors: dict[int, SeasonalFactor] = {}
        for calendar_month, members in grouped.items():
            month_income = sum(b.income for b in members) / len(members)
            month_expenses = sum(b.expenses for b in members) / len(members)
            factors[calendar_month] = SeasonalFactor(
                income=month_income / overall_income if overall_income > 0 else 1.0,
                expenses=month_expenses / overall_expenses if overall_expenses > 0 else 1.0,
            )
        return overall_income, overall_expenses, factors

    def project(
        self, history: Sequence[MonthlyBucket], targets: Sequence[tuple[int, int]]
    ) -> list[ForecastPoint]:
        overall_income, overall_expenses, factors = self.seasonal_factors(history)
        neutral = SeasonalFactor(income=1.0, expenses=1.0)
        points = []
        for year, month in targets:
            factor = factors.get(month, neutral)
            reported = SeasonalFactor(
                income=round(factor.income, 4), expenses=round(factor.expenses, 4)
            )
            points.append(
                _point(
                    year,
                    month,
                    overall_income * factor.income,
                    overall_expenses * factor.expenses,
                    reported,
                )
            )
        return points


STRATEGIES: dict[ForecastMethod, ForecastStrategy] = {
    ForecastMethod.SIMPLE: SimpleMovingAverage(),
    ForecastMethod.WEIGHTED: WeightedMovingAverage(),
    ForecastMethod.SEASONAL: SeasonalAverage(),
}


def resolve_method(value: ForecastMethod | str) -> ForecastMethod:
    """Coerce user input into a :class:`ForecastMethod`."""

    if isinstance(value, ForecastMethod):
        return value
    try:
        return ForecastMethod(str(value).strip().lower())
    except ValueError as exc:
        choices = ", ".join(m.value for m in ForecastMethod)
        raise ValidationError(f"Method must be one of: {choices}") from exc


def get_strategy(method: ForecastMethod | str) -> ForecastStrategy:
    return STRATEGIES[resolve_method(method)]


def target_months(today: date, horizon_months: int) -> list[tuple[int, int]]:
    """Calendar months after ``today``'s month, one per horizon step."""

    return [add_months(today.year, today.month, offset) for offset in range(1, horizon_months + 1)]


def validate_horizon(horizon_months: int) -> int:
    if not MIN_HORIZON_MONTHS <= int(horizon_months) <= MAX_HORIZON_MONTHS:
        raise ValidationError(
            f"Months must be between {MIN_HORIZON_MONTHS} and {MAX_HORIZON_MONTHS}"
        )
    return int(horizon_months)


def forecast(
    buckets: Sequence[MonthlyBucket],
    horizon_months: int,
    strategy: ForecastMethod | str | ForecastStrategy = ForecastMethod.SIMPLE,
    *,
    today: date | None = None,
    min_transactions: int = DEFAULT_MIN_TRANSACTIONS,
) -> list[ForecastPoint]:
    """Project ``horizon_months`` future months from historical buckets.

    Months are labelled from ``today`` (wall clock by default), not from the
    last bucket, so stale history still projects from the present.

    Raises:
        ValidationError: horizon outside 1-24 or unknown method.
        InsufficientDataError: fewer than ``min_transactions`` transactions
            across the buckets; checked before any strategy runs.
    """

    horizon = validate_horizon(horizon_months)
    runner = strategy if isinstance(strategy, ForecastStrategy) else get_strategy(strategy)

    history = sorted(buckets, key=lambda b: b.month)
    observed = sum(b.transaction_count for b in history)
    if observed < min_transactions:
        logger.info(
            "Forecast rejected: insufficient history",
            extra={"transactions": observed, "required": min_transactions},
        )
        raise InsufficientDataError("Insufficient transaction history for forecasting")

    targets = target_months(today or date.today(), horizon)
    return runner.project(history, targets)
