"""SQLModel table exports."""

from .budget import (
    PERIOD_LENGTH_DAYS,
    Budget,
    BudgetPeriod,
    BudgetPeriodSnapshot,
    BudgetStatus,
    BudgetType,
)
from .transaction import Transaction, TransactionStatus, TransactionType

__all__ = [
    "Budget",
    "BudgetPeriod",
    "BudgetPeriodSnapshot",
    "BudgetStatus",
    "BudgetType",
    "PERIOD_LENGTH_DAYS",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
]
