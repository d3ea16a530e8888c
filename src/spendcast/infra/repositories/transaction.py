"""SQLModel implementation of the Transaction repository."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, Optional

from sqlalchemy import update
from sqlmodel import Session, col, select

from ...models.transaction import Transaction


class SQLModelTransactionRepository:
    """SQLModel-based transaction repository implementation."""

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_id(self, transaction_id: int, *, user_id: int) -> Optional[Transaction]:
        """Retrieve a transaction by ID."""
        with self.session_factory() as session:
            obj = session.exec(
                select(Transaction)
                .where(Transaction.id == transaction_id)
                .where(Transaction.user_id == user_id)
            ).first()
            if obj:
                session.expunge(obj)
            return obj

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
        """Query by category set, inclusive date range, type, status and budget (oldest first)."""
        with self.session_factory() as session:
            statement = select(Transaction).where(Transaction.user_id == user_id)

            if categories is not None:
                statement = statement.where(col(Transaction.category).in_(list(categories)))
            if start_date:
                statement = statement.where(Transaction.occurred_at >= start_date)
            if end_date:
                statement = statement.where(Transaction.occurred_at <= end_date)
            if txn_type:
                statement = statement.where(Transaction.txn_type == txn_type)
            if status:
                statement = statement.where(Transaction.status == status)
            if budget_id is not None:
                statement = statement.where(Transaction.budget_id == budget_id)

            statement = statement.order_by(col(Transaction.occurred_at).asc())
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def create(self, transaction: Transaction, *, user_id: int) -> Transaction:
        """Create a new transaction."""
        with self.session_factory() as session:
            transaction.user_id = user_id
            transaction.category = (transaction.category or "").strip().lower()
            session.add(transaction)
            session.commit()
            session.refresh(transaction)
            session.expunge(transaction)
            return transaction

    def update(self, transaction: Transaction, *, user_id: int) -> Transaction:
        """Update an existing transaction."""
        with self.session_factory() as session:
            transaction.user_id = user_id
            transaction.category = (transaction.category or "").strip().lower()
            merged = session.merge(transaction)
            session.commit()
            session.refresh(merged)
            session.expunge(merged)
            return merged

    def delete(self, transaction_id: int, *, user_id: int) -> None:
        """Delete a transaction by ID."""
        with self.session_factory() as session:
            obj = session.exec(
                select(Transaction).where(
                    Transaction.id == transaction_id, Transaction.user_id == user_id
                )
            ).first()
            if obj:
                session.delete(obj)
                session.commit()

    def assign_budget(self, transaction_ids: Iterable[int], budget_id: int | None) -> None:
        """Attribute the given transactions to ``budget_id`` (None detaches)."""
        ids = list(transaction_ids)
        if not ids:
            return
        statement = (
            update(Transaction)
            .where(col(Transaction.id).in_(ids))
            .values(budget_id=budget_id)
        )
        with self.session_factory() as session:
            session.connection().execute(statement)
            session.commit()

    def detach_budget(self, budget_id: int) -> None:
        """Clear the budget link on every transaction attributed to ``budget_id``."""
        statement = (
            update(Transaction)
            .where(col(Transaction.budget_id) == budget_id)
            .values(budget_id=None)
        )
        with self.session_factory() as session:
            session.connection().execute(statement)
            session.commit()
