"""Budget repository protocol."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol

from ...models.budget import Budget, BudgetPeriodSnapshot


class BudgetRepository(Protocol):
    """Persistence boundary for budgets.

    Counter mutation is only available as atomic increments/decrements; there
    is deliberately no "save the whole record" path for ``spent``.
    """

    def get_by_id(self, budget_id: int, *, user_id: int) -> Optional[Budget]:
        """Retrieve a budget (with history) scoped to a user."""
        ...

    def list_for_user(
        self, *, user_id: int, statuses: Iterable[str] | None = None
    ) -> list[Budget]:
        """List a user's budgets, optionally filtered by status."""
        ...

    def find_overlapping(
        self,
        *,
        user_id: int,
        categories: Iterable[str],
        start_date: datetime,
        end_date: datetime,
        statuses: Iterable[str],
        exclude_id: int | None = None,
    ) -> Optional[Budget]:
        """Return a budget sharing a category whose range overlaps the given one."""
        ...

    def find_matching(
        self,
        *,
        user_id: int,
        category: str,
        occurred_at: datetime,
        budget_types: Iterable[str],
        statuses: Iterable[str],
    ) -> Optional[Budget]:
        """Return the budget a transaction should be attributed to, if any."""
        ...

    def create(self, budget: Budget, *, user_id: int) -> Budget:
        ...

    def update(self, budget: Budget, *, user_id: int) -> Budget:
        """Persist definition fields (name, amount, categories, dates, policies)."""
        ...

    def delete(self, budget_id: int, *, user_id: int) -> None:
        ...

    def increment_period(
        self, budget_id: int, amount: float, *, count: int = 1, at: datetime | None = None
    ) -> None:
        """Atomically add ``amount`` to spent and ``count`` to transaction_count."""
        ...

    def decrement_period(self, budget_id: int, amount: float, *, count: int = 1) -> None:
        """Atomically subtract ``amount``/``count``; both floored at zero."""
        ...

    def reset_period(
        self,
        budget_id: int,
        *,
        spent: float,
        transaction_count: int,
        last_transaction_date: datetime | None,
    ) -> None:
        """Overwrite counters after an explicit recalculation from the ledger."""
        ...

    def cache_status(self, budget_id: int, *, status: str, remaining: float) -> None:
        """Persist the derived status/remaining cache columns only."""
        ...

    def append_history(self, budget_id: int, snapshot: BudgetPeriodSnapshot) -> BudgetPeriodSnapshot:
        ...

    def renew(
        self,
        budget: Budget,
        snapshot: BudgetPeriodSnapshot,
        *,
        expected_spent: float,
        expected_count: int,
    ) -> Budget:
        """Archive ``snapshot`` and write the renewed period if counters are unchanged."""
        ...
