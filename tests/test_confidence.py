"""Confidence band tests."""

from __future__ import annotations

import math

import pytest

from spendcast.services.aggregation import MonthlyBucket
from spendcast.services.confidence import (
    Z_95,
    attach_confidence,
    confidence_intervals,
    population_std,
)
from spendcast.services.forecasting import ForecastPoint


def test_population_standard_deviation():
    """Divides by N, not N - 1."""
    assert population_std([2, 4, 4, 4, 5, 5, 7, 9]) == 2.0
    assert population_std([5.0]) == 0.0
    assert population_std([]) == 0.0


def test_bands_use_whole_history_and_clamp_lower_bound():
    history = [
        MonthlyBucket(month="2024-01", income=1000.0, expenses=10.0),
        MonthlyBucket(month="2024-02", income=1000.0, expenses=110.0),
    ]
    points = [ForecastPoint(month="2024-07", income=1000.0, expenses=60.0, net=940.0)]

    band = confidence_intervals(history, points)[0]

    assert band.month == "2024-07"
    # Constant income history: zero-width band.
    assert band.income.lower == band.income.upper == 1000.0
    # Expense sigma is 50, so 1.96 * 50 = 98 > 60 and the lower bound clamps at zero.
    assert band.expenses.forecast == 60.0
    assert band.expenses.lower == 0.0
    assert band.expenses.upper == pytest.approx(60.0 + Z_95 * 50.0)


def test_band_is_symmetric_when_not_clamped():
    history = [
        MonthlyBucket(month="2024-01", expenses=90.0),
        MonthlyBucket(month="2024-02", expenses=110.0),
    ]
    points = [ForecastPoint(month="2024-07", income=0.0, expenses=500.0, net=-500.0)]

    band = confidence_intervals(history, points)[0].expenses

    assert math.isclose(500.0 - band.lower, band.upper - 500.0)


def test_attach_confidence_pairs_by_month():
    history = [MonthlyBucket(month="2024-01", expenses=10.0)]
    points = [
        ForecastPoint(month="2024-07", income=0.0, expenses=10.0, net=-10.0),
        ForecastPoint(month="2024-08", income=0.0, expenses=10.0, net=-10.0),
    ]
    bands = confidence_intervals(history, points[:1])

    attached = attach_confidence(points, bands)

    assert attached[0].confidence is bands[0]
    assert attached[1].confidence is None
    assert points[0].confidence is None
    assert attached[0].to_dict()["confidence"]["month"] == "2024-07"
