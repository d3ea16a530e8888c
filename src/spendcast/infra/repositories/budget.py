"""SQLModel implementation of the Budget repository."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, Optional

from sqlalchemy import case, update
from sqlalchemy.orm import selectinload
from sqlmodel import Session, col, select

from ...errors import BudgetNotFoundError, ConcurrentUpdateError
from ...logging_config import get_logger
from ...models.budget import Budget, BudgetPeriodSnapshot

logger = get_logger("repositories.budget")

# Columns a plain ``update`` may write; counters are excluded.
DEFINITION_FIELDS = (
    "name",
    "description",
    "amount",
    "period",
    "budget_type",
    "categories",
    "start_date",
    "end_date",
    "status",
    "warning_percentage",
    "warning_enabled",
    "critical_percentage",
    "critical_enabled",
    "rollover_enabled",
    "rollover_carry_over_unused",
    "rollover_max_amount",
    "auto_renew_enabled",
    "auto_renew_adjust_amount",
    "auto_renew_adjustment_percentage",
)


class SQLModelBudgetRepository:
    """SQLModel-based budget repository implementation."""

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    @staticmethod
    def _select_with_history():
        return select(Budget).options(selectinload(Budget.history))  # type: ignore[arg-type]

    def _load(self, session: Session, budget_id: int) -> Optional[Budget]:
        obj = session.exec(
            self._select_with_history()
            .where(Budget.id == budget_id)
            .execution_options(populate_existing=True)
        ).first()
        if obj:
            session.expunge(obj)
        return obj

    def get_by_id(self, budget_id: int, *, user_id: int) -> Optional[Budget]:
        """Retrieve a budget by ID."""
        with self.session_factory() as session:
            obj = session.exec(
                self._select_with_history()
                .where(Budget.id == budget_id)
                .where(Budget.user_id == user_id)
            ).first()
            if obj:
                session.expunge(obj)
            return obj

    def list_for_user(
        self, *, user_id: int, statuses: Iterable[str] | None = None
    ) -> list[Budget]:
        """List budgets newest first."""
        with self.session_factory() as session:
            statement = self._select_with_history().where(Budget.user_id == user_id)
            if statuses is not None:
                statement = statement.where(col(Budget.status).in_(list(statuses)))
            statement = statement.order_by(col(Budget.created_at).desc())
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

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
        """Return the first budget sharing a category within an overlapping range."""
        wanted = set(categories)
        with self.session_factory() as session:
            statement = (
                select(Budget)
                .where(Budget.user_id == user_id)
                .where(col(Budget.status).in_(list(statuses)))
                .where(Budget.start_date <= end_date)
                .where(Budget.end_date >= start_date)
            )
            if exclude_id is not None:
                statement = statement.where(Budget.id != exclude_id)
            for candidate in session.exec(statement).all():
                # JSON list membership is filtered here to stay backend-agnostic.
                if wanted.intersection(candidate.categories or []):
                    session.expunge(candidate)
                    return candidate
            return None

    def find_matching(
        self,
        *,
        user_id: int,
        category: str,
        occurred_at: datetime,
        budget_types: Iterable[str],
        statuses: Iterable[str],
    ) -> Optional[Budget]:
        """Return the oldest eligible budget whose filter covers the transaction."""
        normalized = (category or "").strip().lower()
        if not normalized:
            return None
        with self.session_factory() as session:
            statement = (
                select(Budget)
                .where(Budget.user_id == user_id)
                .where(col(Budget.status).in_(list(statuses)))
                .where(col(Budget.budget_type).in_(list(budget_types)))
                .where(Budget.start_date <= occurred_at)
                .where(Budget.end_date >= occurred_at)
                .order_by(col(Budget.created_at).asc())
            )
            for candidate in session.exec(statement).all():
                if candidate.matches_category(normalized):
                    session.expunge(candidate)
                    return candidate
            return None

    def create(self, budget: Budget, *, user_id: int) -> Budget:
        """Create a new budget."""
        with self.session_factory() as session:
            budget.user_id = user_id
            session.add(budget)
            session.commit()
            loaded = self._load(session, budget.id)  # type: ignore[arg-type]
            assert loaded is not None
            return loaded

    def update(self, budget: Budget, *, user_id: int) -> Budget:
        """Write definition fields only; counters stay untouched."""
        with self.session_factory() as session:
            row = session.exec(
                select(Budget).where(Budget.id == budget.id).where(Budget.user_id == user_id)
            ).first()
            if row is None:
                raise BudgetNotFoundError(f"Budget {budget.id} not found")
            for field_name in DEFINITION_FIELDS:
                setattr(row, field_name, getattr(budget, field_name))
            row.updated_at = datetime.now()
            session.add(row)
            session.commit()
            loaded = self._load(session, row.id)  # type: ignore[arg-type]
            assert loaded is not None
            return loaded

    def delete(self, budget_id: int, *, user_id: int) -> None:
        """Delete a budget and its archived history."""
        with self.session_factory() as session:
            budget = session.exec(
                select(Budget).where(Budget.id == budget_id, Budget.user_id == user_id)
            ).first()
            if budget:
                session.delete(budget)
                session.commit()

    # Atomic counter operations
    def increment_period(
        self, budget_id: int, amount: float, *, count: int = 1, at: datetime | None = None
    ) -> None:
        """Atomically add to spent/transaction_count in a single UPDATE."""
        now = datetime.now()
        statement = (
            update(Budget)
            .where(col(Budget.id) == budget_id)
            .values(
                spent=col(Budget.spent) + amount,
                transaction_count=col(Budget.transaction_count) + count,
                last_transaction_date=at or now,
                updated_at=now,
            )
        )
        with self.session_factory() as session:
            result = session.connection().execute(statement)
            if result.rowcount == 0:
                raise BudgetNotFoundError(f"Budget {budget_id} not found")
            session.commit()
        logger.debug(
            "Budget counters incremented",
            extra={"budget_id": budget_id, "amount": amount, "count": count},
        )

    def decrement_period(self, budget_id: int, amount: float, *, count: int = 1) -> None:
        """Atomically subtract from spent/transaction_count, flooring both at zero."""
        new_spent = col(Budget.spent) - amount
        new_count = col(Budget.transaction_count) - count
        statement = (
            update(Budget)
            .where(col(Budget.id) == budget_id)
            .values(
                spent=case((new_spent < 0, 0.0), else_=new_spent),
                transaction_count=case((new_count < 0, 0), else_=new_count),
                updated_at=datetime.now(),
            )
        )
        with self.session_factory() as session:
            result = session.connection().execute(statement)
            if result.rowcount == 0:
                raise BudgetNotFoundError(f"Budget {budget_id} not found")
            session.commit()
        logger.debug(
            "Budget counters decremented",
            extra={"budget_id": budget_id, "amount": amount, "count": count},
        )

    def reset_period(
        self,
        budget_id: int,
        *,
        spent: float,
        transaction_count: int,
        last_transaction_date: datetime | None,
    ) -> None:
        """Overwrite counters with a freshly recalculated total."""
        statement = (
            update(Budget)
            .where(col(Budget.id) == budget_id)
            .values(
                spent=spent,
                transaction_count=transaction_count,
                last_transaction_date=last_transaction_date,
                updated_at=datetime.now(),
            )
        )
        with self.session_factory() as session:
            session.connection().execute(statement)
            session.commit()

    def cache_status(self, budget_id: int, *, status: str, remaining: float) -> None:
        """Persist derived columns without touching counters."""
        statement = (
            update(Budget)
            .where(col(Budget.id) == budget_id)
            .values(status=status, remaining=remaining, last_calculated=datetime.now())
        )
        with self.session_factory() as session:
            session.connection().execute(statement)
            session.commit()

    def append_history(self, budget_id: int, snapshot: BudgetPeriodSnapshot) -> BudgetPeriodSnapshot:
        """Append a closed-period snapshot."""
        with self.session_factory() as session:
            snapshot.budget_id = budget_id
            session.add(snapshot)
            session.commit()
            session.refresh(snapshot)
            session.expunge(snapshot)
            return snapshot

    def renew(
        self,
        budget: Budget,
        snapshot: BudgetPeriodSnapshot,
        *,
        expected_spent: float,
        expected_count: int,
    ) -> Budget:
        """Compare-and-swap the renewed period, archiving the closed one."""
        statement = (
            update(Budget)
            .where(col(Budget.id) == budget.id)
            .where(col(Budget.spent) == expected_spent)
            .where(col(Budget.transaction_count) == expected_count)
            .values(
                amount=budget.amount,
                start_date=budget.start_date,
                end_date=budget.end_date,
                spent=budget.spent,
                remaining=budget.remaining,
                transaction_count=budget.transaction_count,
                last_transaction_date=budget.last_transaction_date,
                rollover_amount=budget.rollover_amount,
                status=budget.status,
                updated_at=datetime.now(),
                last_calculated=datetime.now(),
            )
        )
        with self.session_factory() as session:
            result = session.connection().execute(statement)
            if result.rowcount == 0:
                raise ConcurrentUpdateError(
                    f"Budget {budget.id} changed while renewing; reload and retry"
                )
            snapshot.budget_id = budget.id  # type: ignore[assignment]
            session.add(snapshot)
            session.commit()
            loaded = self._load(session, budget.id)  # type: ignore[arg-type]
            assert loaded is not None
            return loaded
