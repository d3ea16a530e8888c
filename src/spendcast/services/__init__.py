"""Service module exports."""

from . import (
    aggregation,
    budget_lifecycle,
    budget_service,
    cash_flow,
    confidence,
    forecast_service,
    forecasting,
    projection,
    savings,
)

__all__ = [
    "aggregation",
    "budget_lifecycle",
    "budget_service",
    "cash_flow",
    "confidence",
    "forecast_service",
    "forecasting",
    "projection",
    "savings",
]
