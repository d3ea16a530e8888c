"""Transaction repository protocol."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol

from ...models.transaction import Transaction


class TransactionRepository(Protocol):
    """Repository for the transaction ledger."""

    def get_by_id(self, transaction_id: int, *, user_id: int) -> Optional[Transaction]:
        ...

    def find(
        self,
        *,
        user_id: int,
        categories: Iterable[str] | None = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        txn_type: Optional[str] = None,
        status: Optional[str] = "completed",
        budget_id: Optional[int] = None,
    ) -> list[Transaction]:
        """Query the ledger by category set, date range, type and attributed budget."""
        ...

    def create(self, transaction: Transaction, *, user_id: int) -> Transaction:
        ...

    def update(self, transaction: Transaction, *, user_id: int) -> Transaction:
        ...

    def delete(self, transaction_id: int, *, user_id: int) -> None:
        ...

    def assign_budget(self, transaction_ids: Iterable[int], budget_id: int | None) -> None:
        """Point the given transactions at ``budget_id`` (or detach with None)."""
        ...

    def detach_budget(self, budget_id: int) -> None:
        """Clear ``budget_id`` on every transaction attributed to the budget."""
        ...
