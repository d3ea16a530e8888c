"""SQLModel definitions for ledger transactions."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class TransactionStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"


class Transaction(SQLModel, table=True):
    """A single ledger entry; ``amount`` is a magnitude, the sign lives in ``txn_type``."""

    __tablename__: ClassVar[str] = "transaction"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(nullable=False, index=True)
    occurred_at: datetime = Field(nullable=False, index=True)
    txn_type: str = Field(default=TransactionType.EXPENSE.value, max_length=16, index=True)
    amount: float = Field(nullable=False, description="Always positive; see txn_type")
    category: str = Field(default="", max_length=50, index=True)
    description: str = Field(default="", max_length=200)
    status: str = Field(default=TransactionStatus.COMPLETED.value, max_length=16)

    # A transaction is attributed to at most one budget at a time.
    budget_id: Optional[int] = Field(default=None, foreign_key="budget.id", index=True)

    @property
    def is_income(self) -> bool:
        return self.txn_type == TransactionType.INCOME.value
