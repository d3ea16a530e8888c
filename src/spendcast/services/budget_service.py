"""Budget lifecycle operations wired over the repositories.

Counters only move through ``increment_period``/``decrement_period`` (or the
full ``reset_period`` recalculation); every read re-derives status and
remaining and writes them back as cache columns when they drifted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional

from ..domain.repositories.budget import BudgetRepository
from ..domain.repositories.transaction import TransactionRepository
from ..errors import (
    AutoRenewalDisabledError,
    BudgetNotCompletedError,
    BudgetNotFoundError,
    OverlappingBudgetError,
    TransactionNotFoundError,
    ValidationError,
)
from ..logging_config import get_logger
from ..models.budget import Budget, BudgetStatus, BudgetType
from ..models.transaction import Transaction, TransactionStatus, TransactionType
from .budget_lifecycle import (
    compute_metrics,
    derive_status,
    needs_alert,
    remaining_amount,
    renew_for_next_period,
    utilization,
    validate_budget_definition,
)
from .projection import (
    budget_recommendations,
    history_utilization,
    overall_budget_health,
    project_budget_performance,
    spending_pattern,
    utilization_trend,
)

logger = get_logger("services.budgets")

OVERLAP_STATUSES = (BudgetStatus.ACTIVE.value, BudgetStatus.PAUSED.value)
ATTRIBUTION_STATUSES = (BudgetStatus.ACTIVE.value, BudgetStatus.EXCEEDED.value)
SUMMARY_STATUSES = ATTRIBUTION_STATUSES

EDITABLE_FIELDS = frozenset(
    {
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
    }
)
RECALCULATE_ON = ("categories", "amount", "start_date", "end_date")


def transaction_type_for(budget_type: str) -> str:
    """Ledger type that counts toward a budget; savings budgets track income."""

    if budget_type == BudgetType.EXPENSE.value:
        return TransactionType.EXPENSE.value
    return TransactionType.INCOME.value


def budget_types_for(txn_type: str) -> tuple[str, ...]:
    if txn_type == TransactionType.INCOME.value:
        return (BudgetType.INCOME.value, BudgetType.SAVINGS.value)
    return (BudgetType.EXPENSE.value,)


def budget_to_dict(budget: Budget) -> dict[str, Any]:
    return {
        "id": budget.id,
        "name": budget.name,
        "description": budget.description,
        "amount": round(budget.amount, 2),
        "period": budget.period,
        "budget_type": budget.budget_type,
        "categories": list(budget.categories or []),
        "start_date": budget.start_date.isoformat(),
        "end_date": budget.end_date.isoformat(),
        "status": budget.status,
        "current_period": {
            "spent": round(budget.spent, 2),
            "remaining": round(budget.remaining, 2),
            "transaction_count": budget.transaction_count,
            "last_transaction_date": (
                budget.last_transaction_date.isoformat()
                if budget.last_transaction_date
                else None
            ),
            "rollover_amount": round(budget.rollover_amount, 2),
        },
        "history_periods": len(budget.history or []),
    }


class BudgetService:
    """Budget CRUD, transaction attribution, renewal and reporting."""

    def __init__(
        self,
        budgets: BudgetRepository,
        transactions: TransactionRepository,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.budgets = budgets
        self.transactions = transactions
        self.clock = clock

    # Loading
    def _refresh(self, budget: Budget, now: datetime) -> Budget:
        """Re-derive status/remaining and persist them if they drifted."""

        status = derive_status(budget, now)
        remaining = remaining_amount(budget)
        if status != budget.status or abs(remaining - (budget.remaining or 0.0)) > 1e-9:
            self.budgets.cache_status(budget.id, status=status, remaining=remaining)
            if status != budget.status:
                logger.info(
                    "Budget status changed",
                    extra={"budget_id": budget.id, "from": budget.status, "to": status},
                )
            budget.status = status
            budget.remaining = remaining
        return budget

    def get_budget(
        self, budget_id: int, *, user_id: int, now: Optional[datetime] = None
    ) -> Budget:
        budget = self.budgets.get_by_id(budget_id, user_id=user_id)
        if budget is None:
            raise BudgetNotFoundError("Budget not found")
        return self._refresh(budget, now or self.clock())

    def list_budgets(
        self,
        *,
        user_id: int,
        statuses: Iterable[str] | None = None,
        now: Optional[datetime] = None,
    ) -> list[Budget]:
        """Budgets newest first, filtered on their freshly derived status."""

        moment = now or self.clock()
        wanted = set(statuses) if statuses is not None else None
        refreshed = [
            self._refresh(budget, moment) for budget in self.budgets.list_for_user(user_id=user_id)
        ]
        if wanted is None:
            return refreshed
        return [budget for budget in refreshed if budget.status in wanted]

    # Definition
    def create_budget(
        self, budget: Budget, *, user_id: int, now: Optional[datetime] = None
    ) -> Budget:
        """Validate, reject overlaps, persist and backfill spending."""

        moment = now or self.clock()
        validate_budget_definition(budget)
        budget.spent = 0.0
        budget.transaction_count = 0
        budget.last_transaction_date = None
        budget.rollover_amount = 0.0
        budget.remaining = budget.amount

        overlapping = self.budgets.find_overlapping(
            user_id=user_id,
            categories=budget.categories,
            start_date=budget.start_date,
            end_date=budget.end_date,
            statuses=OVERLAP_STATUSES,
        )
        if overlapping is not None:
            logger.warning(
                "Budget overlap rejected",
                extra={"user_id": user_id, "conflicts_with": overlapping.id},
            )
            raise OverlappingBudgetError(
                f'Budget overlaps with existing budget "{overlapping.name}" for the same categories'
            )

        created = self.budgets.create(budget, user_id=user_id)
        logger.info("Budget created", extra={"budget_id": created.id, "user_id": user_id})
        if created.start_date <= moment:
            return self.recalculate_budget_spending(created.id, user_id=user_id, now=moment)
        return self._refresh(created, moment)

    def update_budget(
        self,
        budget_id: int,
        changes: Mapping[str, Any],
        *,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> Budget:
        """Apply edits; spending is rebuilt when the filter, amount or dates moved."""

        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        moment = now or self.clock()
        budget = self.budgets.get_by_id(budget_id, user_id=user_id)
        if budget is None:
            raise BudgetNotFoundError("Budget not found")

        before = {field: getattr(budget, field) for field in RECALCULATE_ON}
        before["categories"] = list(before["categories"] or [])
        for field, value in changes.items():
            setattr(budget, field, value)
        validate_budget_definition(budget)

        updated = self.budgets.update(budget, user_id=user_id)
        if any(getattr(updated, field) != value for field, value in before.items()):
            return self.recalculate_budget_spending(budget_id, user_id=user_id, now=moment)
        return self._refresh(updated, moment)

    def delete_budget(self, budget_id: int, *, user_id: int) -> None:
        """Remove a budget with its history; attributed transactions are kept, unlinked."""

        budget = self.budgets.get_by_id(budget_id, user_id=user_id)
        if budget is None:
            raise BudgetNotFoundError("Budget not found")
        self.transactions.detach_budget(budget_id)
        self.budgets.delete(budget_id, user_id=user_id)
        logger.info("Budget deleted", extra={"budget_id": budget_id, "user_id": user_id})

    def recalculate_budget_spending(
        self, budget_id: int, *, user_id: int, now: Optional[datetime] = None
    ) -> Budget:
        """Rebuild the current-period counters from the transaction store."""

        budget = self.budgets.get_by_id(budget_id, user_id=user_id)
        if budget is None:
            raise BudgetNotFoundError("Budget not found")

        moment = now or self.clock()
        matching = self.transactions.find(
            user_id=user_id,
            categories=budget.categories,
            start_date=budget.start_date,
            end_date=budget.end_date,
            txn_type=transaction_type_for(budget.budget_type),
            status=TransactionStatus.COMPLETED.value,
        )
        # Transactions already counted by another budget stay there.
        counted = [txn for txn in matching if txn.budget_id in (None, budget_id)]
        self.budgets.reset_period(
            budget_id,
            spent=sum(txn.amount for txn in counted),
            transaction_count=len(counted),
            last_transaction_date=max((txn.occurred_at for txn in counted), default=None),
        )
        self.transactions.assign_budget(
            [txn.id for txn in counted if txn.budget_id is None], budget_id
        )

        counted_ids = {txn.id for txn in counted}
        stale = [
            txn
            for txn in self.transactions.find(user_id=user_id, budget_id=budget_id, status=None)
            if txn.id not in counted_ids
        ]
        for txn in stale:
            self._reattribute(txn, user_id=user_id, now=moment)

        logger.debug(
            "Budget spending recalculated",
            extra={
                "budget_id": budget_id,
                "transactions": len(counted),
                "released": len(stale),
            },
        )
        return self.get_budget(budget_id, user_id=user_id, now=moment)

    def _reattribute(self, txn: Transaction, *, user_id: int, now: datetime) -> None:
        """Move a transaction that left its budget's filter to whichever budget now covers it."""

        target = self._matching_budget(txn, user_id)
        if target is not None and target.id == txn.budget_id:
            target = None
        self.transactions.assign_budget([txn.id], target.id if target else None)
        if target is not None:
            self.budgets.increment_period(target.id, txn.amount, at=now)
            self.get_budget(target.id, user_id=user_id, now=now)

    # Transaction attribution
    def _matching_budget(self, txn: Transaction, user_id: int) -> Optional[Budget]:
        if txn.status != TransactionStatus.COMPLETED.value:
            return None
        return self.budgets.find_matching(
            user_id=user_id,
            category=txn.category,
            occurred_at=txn.occurred_at,
            budget_types=budget_types_for(txn.txn_type),
            statuses=ATTRIBUTION_STATUSES,
        )

    def record_transaction(
        self, txn: Transaction, *, user_id: int, now: Optional[datetime] = None
    ) -> Transaction:
        """Store a ledger entry and count it toward the one budget that covers it."""

        if txn.amount is None or txn.amount <= 0:
            raise ValidationError("Transaction amount must be positive")
        if txn.txn_type not in {t.value for t in TransactionType}:
            raise ValidationError(f"Unknown transaction type: {txn.txn_type}")

        txn.category = (txn.category or "").strip().lower()
        budget = self._matching_budget(txn, user_id)
        txn.budget_id = budget.id if budget else None
        created = self.transactions.create(txn, user_id=user_id)
        if budget is not None:
            self.budgets.increment_period(budget.id, created.amount, at=now or self.clock())
            self.get_budget(budget.id, user_id=user_id, now=now)
        return created

    def remove_transaction(
        self, transaction_id: int, *, user_id: int, now: Optional[datetime] = None
    ) -> None:
        txn = self.transactions.get_by_id(transaction_id, user_id=user_id)
        if txn is None:
            raise TransactionNotFoundError("Transaction not found")
        self.transactions.delete(transaction_id, user_id=user_id)
        if txn.budget_id is not None and txn.status == TransactionStatus.COMPLETED.value:
            self.budgets.decrement_period(txn.budget_id, txn.amount)
            self.get_budget(txn.budget_id, user_id=user_id, now=now)

    def edit_transaction(
        self,
        transaction_id: int,
        changes: Mapping[str, Any],
        *,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> Transaction:
        """Edit a transaction, moving its amount between budgets as needed."""

        txn = self.transactions.get_by_id(transaction_id, user_id=user_id)
        if txn is None:
            raise TransactionNotFoundError("Transaction not found")

        previous_budget = txn.budget_id if txn.status == TransactionStatus.COMPLETED.value else None
        previous_amount = txn.amount
        for field, value in changes.items():
            if field in {"id", "user_id", "budget_id"}:
                raise ValidationError(f"Cannot update field: {field}")
            setattr(txn, field, value)
        if txn.amount is None or txn.amount <= 0:
            raise ValidationError("Transaction amount must be positive")
        txn.category = (txn.category or "").strip().lower()

        target = self._matching_budget(txn, user_id)
        txn.budget_id = target.id if target else None
        updated = self.transactions.update(txn, user_id=user_id)

        if previous_budget is not None:
            self.budgets.decrement_period(previous_budget, previous_amount)
        if target is not None:
            self.budgets.increment_period(target.id, updated.amount, at=now or self.clock())

        for budget_id in {previous_budget, txn.budget_id} - {None}:
            self.get_budget(budget_id, user_id=user_id, now=now)
        return updated

    # Renewal
    def renew_budget(
        self, budget_id: int, *, user_id: int, now: Optional[datetime] = None
    ) -> Budget:
        """Roll a completed, auto-renewing budget into its next period."""

        moment = now or self.clock()
        budget = self.get_budget(budget_id, user_id=user_id, now=moment)
        if budget.status != BudgetStatus.COMPLETED.value:
            raise BudgetNotCompletedError("Only completed budgets can be renewed")
        if not budget.auto_renew_enabled:
            raise AutoRenewalDisabledError("Budget auto-renewal is not enabled")

        result = renew_for_next_period(budget, moment)
        if result is None:
            raise BudgetNotCompletedError("Only completed budgets can be renewed")
        renewed, snapshot = result

        stored = self.budgets.renew(
            renewed,
            snapshot,
            expected_spent=budget.spent,
            expected_count=budget.transaction_count,
        )
        logger.info(
            "Budget renewed",
            extra={
                "budget_id": budget_id,
                "closed_period": snapshot.period,
                "rollover": renewed.rollover_amount,
                "amount": renewed.amount,
            },
        )
        return stored

    # Reporting
    def budget_projection(
        self,
        *,
        user_id: int,
        budget_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Burn-rate projections, aggregate health and recommendations."""

        moment = now or self.clock()
        if budget_id is not None:
            selected = [self.get_budget(budget_id, user_id=user_id, now=moment)]
        else:
            selected = self.list_budgets(
                user_id=user_id, statuses=[BudgetStatus.ACTIVE.value], now=moment
            )

        projections = [project_budget_performance(budget, moment) for budget in selected]
        return {
            "projections": [projection.to_dict() for projection in projections],
            "overall_health": overall_budget_health(projections),
            "recommendations": budget_recommendations(projections),
        }

    def budget_summary(
        self, *, user_id: int, now: Optional[datetime] = None
    ) -> dict[str, Any]:
        budgets = self.list_budgets(user_id=user_id, statuses=SUMMARY_STATUSES, now=now)
        total_budget = sum(b.amount for b in budgets)
        total_spent = sum(b.spent for b in budgets)
        attention = []
        for budget in budgets:
            alert = needs_alert(budget)
            if alert is not None:
                attention.append(
                    {
                        "budget_id": budget.id,
                        "name": budget.name,
                        "utilization": round(utilization(budget), 2),
                        "alert": alert.to_dict(),
                    }
                )
        return {
            "total_budget": round(total_budget, 2),
            "total_spent": round(total_spent, 2),
            "total_remaining": round(total_budget - total_spent, 2),
            "average_utilization": (
                round(sum(utilization(b) for b in budgets) / len(budgets), 2) if budgets else 0.0
            ),
            "active_budgets": len(budgets),
            "exceeded_budgets": sum(
                1 for b in budgets if b.status == BudgetStatus.EXCEEDED.value
            ),
            "budgets_needing_attention": attention,
        }

    def budget_performance(
        self, budget_id: int, *, user_id: int, now: Optional[datetime] = None
    ) -> dict[str, Any]:
        """Closed-period history, utilization trend and current-period metrics."""

        moment = now or self.clock()
        budget = self.get_budget(budget_id, user_id=user_id, now=moment)
        history = list(budget.history or [])
        in_period = self.transactions.find(
            user_id=user_id,
            categories=budget.categories,
            start_date=budget.start_date,
            end_date=budget.end_date,
            txn_type=transaction_type_for(budget.budget_type),
            status=TransactionStatus.COMPLETED.value,
        )
        metrics = compute_metrics(budget, moment)
        return {
            "performance": [
                {
                    "period": snapshot.period,
                    "budget_amount": round(snapshot.budget_amount, 2),
                    "actual_spent": round(snapshot.actual_spent, 2),
                    "variance": round(snapshot.variance, 2),
                    "variance_percentage": round(snapshot.variance_percentage, 2),
                    "utilization_percentage": round(history_utilization(snapshot), 2),
                }
                for snapshot in history
            ],
            "trend": utilization_trend(history),
            "spending_pattern": spending_pattern(in_period),
            "current_period": metrics.to_dict(),
        }
