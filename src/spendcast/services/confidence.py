"""Confidence bands around forecast points."""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from .aggregation import MonthlyBucket
from .forecasting import Band, ConfidenceBand, ForecastPoint

Z_95 = 1.96


def population_std(values: Iterable[float]) -> float:
    """Population (not sample) standard deviation; 0.0 for empty input."""

    data = list(values)
    if not data:
        return 0.0
    mean = sum(data) / len(data)
    return math.sqrt(sum((value - mean) ** 2 for value in data) / len(data))


def _band(value: float, sigma: float) -> Band:
    spread = Z_95 * sigma
    return Band(forecast=value, lower=max(0.0, value - spread), upper=value + spread)


def confidence_intervals(
    buckets: Sequence[MonthlyBucket], points: Sequence[ForecastPoint]
) -> list[ConfidenceBand]:
    """95% band per forecast point, sigma taken over the whole history."""

    income_sigma = population_std(b.income for b in buckets)
    expense_sigma = population_std(b.expenses for b in buckets)
    return [
        ConfidenceBand(
            month=point.month,
            income=_band(point.income, income_sigma),
            expenses=_band(point.expenses, expense_sigma),
        )
        for point in points
    ]


def attach_confidence(
    points: Sequence[ForecastPoint], bands: Sequence[ConfidenceBand]
) -> list[ForecastPoint]:
    by_month = {band.month: band for band in bands}
    return [
        point.with_confidence(by_month[point.month]) if point.month in by_month else point
        for point in points
    ]
