"""Budget tables."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional

from sqlalchemy import JSON, Column
from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel


class BudgetPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class BudgetType(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"
    SAVINGS = "savings"


class BudgetStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    EXCEEDED = "exceeded"


# Fixed-length periods; "monthly" is 30 days, not calendar aware.
PERIOD_LENGTH_DAYS: dict[str, int] = {
    BudgetPeriod.WEEKLY.value: 7,
    BudgetPeriod.MONTHLY.value: 30,
    BudgetPeriod.QUARTERLY.value: 90,
    BudgetPeriod.YEARLY.value: 365,
}


class Budget(SQLModel, table=True):
    """A spending limit (or income/savings target) over a date range.

    The ``spent``/``transaction_count`` counters are only ever changed through
    the repository's atomic increment/decrement operations; ``status`` and
    ``remaining`` are a cache re-derived on every load.
    """

    __tablename__: ClassVar[str] = "budget"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(nullable=False, index=True)

    name: str = Field(max_length=100, nullable=False)
    description: str = Field(default="", max_length=300)
    amount: float = Field(nullable=False)
    period: str = Field(default=BudgetPeriod.MONTHLY.value, max_length=16)
    budget_type: str = Field(default=BudgetType.EXPENSE.value, max_length=16)
    categories: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    start_date: datetime = Field(nullable=False, index=True)
    end_date: datetime = Field(nullable=False, index=True)

    # Current period counters
    spent: float = Field(default=0.0, nullable=False)
    remaining: float = Field(default=0.0, nullable=False)
    transaction_count: int = Field(default=0, nullable=False)
    last_transaction_date: Optional[datetime] = Field(default=None)
    rollover_amount: float = Field(default=0.0, nullable=False)

    status: str = Field(default=BudgetStatus.ACTIVE.value, max_length=16, index=True)

    # Alert thresholds
    warning_percentage: float = Field(default=75.0)
    warning_enabled: bool = Field(default=True)
    critical_percentage: float = Field(default=90.0)
    critical_enabled: bool = Field(default=True)

    # Rollover policy
    rollover_enabled: bool = Field(default=False)
    rollover_carry_over_unused: bool = Field(default=True)
    rollover_max_amount: Optional[float] = Field(default=None)

    # Auto-renewal policy
    auto_renew_enabled: bool = Field(default=True)
    auto_renew_adjust_amount: bool = Field(default=False)
    auto_renew_adjustment_percentage: float = Field(default=0.0)

    created_at: datetime = Field(default_factory=datetime.now, nullable=False)
    updated_at: datetime = Field(default_factory=datetime.now, nullable=False)
    last_calculated: datetime = Field(default_factory=datetime.now, nullable=False)

    history: list["BudgetPeriodSnapshot"] = Relationship(
        back_populates="budget",
        sa_relationship=relationship(
            "BudgetPeriodSnapshot",
            back_populates="budget",
            cascade="all, delete-orphan",
            order_by="BudgetPeriodSnapshot.start_date",
        ),
    )

    @property
    def period_length_days(self) -> int:
        return PERIOD_LENGTH_DAYS.get(self.period, 30)

    def matches_category(self, category: str | None) -> bool:
        if not category:
            return False
        return category.strip().lower() in (self.categories or [])


class BudgetPeriodSnapshot(SQLModel, table=True):
    """A closed budget period archived on renewal."""

    __tablename__: ClassVar[str] = "budget_period_snapshot"

    id: Optional[int] = Field(default=None, primary_key=True)
    budget_id: int = Field(foreign_key="budget.id", nullable=False, index=True)
    period: str = Field(max_length=16, nullable=False)
    budget_amount: float = Field(nullable=False)
    actual_spent: float = Field(nullable=False)
    variance: float = Field(nullable=False)
    variance_percentage: float = Field(nullable=False)
    transaction_count: int = Field(default=0, nullable=False)
    start_date: datetime = Field(nullable=False)
    end_date: datetime = Field(nullable=False)
    notes: str = Field(default="", max_length=255)

    budget: "Budget" = Relationship(
        back_populates="history",
        sa_relationship=relationship("Budget", back_populates="history"),
    )
