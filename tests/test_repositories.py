"""Unit tests for repository implementations."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytest

from spendcast.errors import BudgetNotFoundError, ConcurrentUpdateError
from spendcast.models import BudgetPeriodSnapshot

USER_ID = 1
OTHER_USER = 2


def test_budget_create_and_get(budget_factory, budget_repo):
    """Created budgets round-trip with their JSON category list."""
    created = budget_factory(categories=["food", "dining"])

    fetched = budget_repo.get_by_id(created.id, user_id=USER_ID)

    assert fetched is not None
    assert fetched.categories == ["food", "dining"]
    assert fetched.history == []
    assert budget_repo.get_by_id(created.id, user_id=OTHER_USER) is None


def test_list_for_user_filters_by_status(budget_factory, budget_repo):
    budget_factory(name="A")
    budget_factory(name="B", status="paused", categories=["travel"])

    assert {b.name for b in budget_repo.list_for_user(user_id=USER_ID)} == {"A", "B"}
    paused = budget_repo.list_for_user(user_id=USER_ID, statuses=["paused"])
    assert [b.name for b in paused] == ["B"]
    assert budget_repo.list_for_user(user_id=OTHER_USER) == []


def test_update_never_touches_counters(budget_factory, budget_repo):
    """A stale object written back cannot clobber counters moved in the meantime."""
    budget = budget_factory()
    stale = budget_repo.get_by_id(budget.id, user_id=USER_ID)
    budget_repo.increment_period(budget.id, 30.0)

    stale.name = "Renamed"
    updated = budget_repo.update(stale, user_id=USER_ID)

    assert updated.name == "Renamed"
    assert updated.spent == 30.0
    assert updated.transaction_count == 1


def test_update_missing_budget(budget_factory, budget_repo):
    budget = budget_factory()
    with pytest.raises(BudgetNotFoundError):
        budget_repo.update(budget, user_id=OTHER_USER)


def test_increment_and_decrement(budget_factory, budget_repo):
    budget = budget_factory()
    at = datetime(2024, 6, 10, 8, 30)

    budget_repo.increment_period(budget.id, 25.0, at=at)
    budget_repo.increment_period(budget.id, 15.0, at=at)
    budget_repo.decrement_period(budget.id, 10.0)

    fetched = budget_repo.get_by_id(budget.id, user_id=USER_ID)
    assert fetched.spent == 30.0
    assert fetched.transaction_count == 1 + 1 - 1
    assert fetched.last_transaction_date == at


def test_decrement_floors_at_zero(budget_factory, budget_repo):
    budget = budget_factory()
    budget_repo.increment_period(budget.id, 5.0)

    budget_repo.decrement_period(budget.id, 50.0, count=3)

    fetched = budget_repo.get_by_id(budget.id, user_id=USER_ID)
    assert fetched.spent == 0.0
    assert fetched.transaction_count == 0


def test_counter_operations_on_missing_budget(budget_repo):
    with pytest.raises(BudgetNotFoundError):
        budget_repo.increment_period(999, 1.0)
    with pytest.raises(BudgetNotFoundError):
        budget_repo.decrement_period(999, 1.0)


def test_concurrent_increments_do_not_lose_updates(budget_factory, budget_repo):
    """N concurrent increments of A leave spent at exactly N * A."""
    budget = budget_factory(amount=10_000.0)
    increments = 20
    amount = 12.5

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda _: budget_repo.increment_period(budget.id, amount), range(increments)))

    fetched = budget_repo.get_by_id(budget.id, user_id=USER_ID)
    assert fetched.spent == increments * amount
    assert fetched.transaction_count == increments


def test_reset_and_cache_status(budget_factory, budget_repo):
    budget = budget_factory()
    last = datetime(2024, 6, 12)

    budget_repo.reset_period(budget.id, spent=75.0, transaction_count=3, last_transaction_date=last)
    budget_repo.cache_status(budget.id, status="exceeded", remaining=0.0)

    fetched = budget_repo.get_by_id(budget.id, user_id=USER_ID)
    assert (fetched.spent, fetched.transaction_count, fetched.last_transaction_date) == (75.0, 3, last)
    assert fetched.status == "exceeded"
    assert fetched.remaining == 0.0


def test_find_overlapping(budget_factory, budget_repo):
    existing = budget_factory(categories=["food", "dining"])
    window = {"start_date": datetime(2024, 6, 20), "end_date": datetime(2024, 7, 20)}

    hit = budget_repo.find_overlapping(
        user_id=USER_ID, categories=["dining"], statuses=["active", "paused"], **window
    )
    assert hit is not None and hit.id == existing.id

    assert (
        budget_repo.find_overlapping(
            user_id=USER_ID, categories=["travel"], statuses=["active", "paused"], **window
        )
        is None
    )
    assert (
        budget_repo.find_overlapping(
            user_id=USER_ID,
            categories=["food"],
            statuses=["active", "paused"],
            start_date=datetime(2024, 7, 1),
            end_date=datetime(2024, 7, 31),
        )
        is None
    )
    assert (
        budget_repo.find_overlapping(
            user_id=USER_ID,
            categories=["food"],
            statuses=["active", "paused"],
            exclude_id=existing.id,
            **window,
        )
        is None
    )
    assert (
        budget_repo.find_overlapping(
            user_id=USER_ID, categories=["food"], statuses=["completed"], **window
        )
        is None
    )


def test_find_matching_prefers_oldest_eligible(budget_factory, budget_repo):
    first = budget_factory(name="First", categories=["food"])
    budget_factory(name="Second", categories=["food"])
    budget_factory(name="Income", categories=["food"], budget_type="income")

    match = budget_repo.find_matching(
        user_id=USER_ID,
        category=" FOOD ",
        occurred_at=datetime(2024, 6, 10),
        budget_types=["expense"],
        statuses=["active", "exceeded"],
    )

    assert match.id == first.id
    assert (
        budget_repo.find_matching(
            user_id=USER_ID,
            category="food",
            occurred_at=datetime(2024, 8, 1),
            budget_types=["expense"],
            statuses=["active", "exceeded"],
        )
        is None
    )


def _snapshot(budget) -> BudgetPeriodSnapshot:
    return BudgetPeriodSnapshot(
        period="2024-06",
        budget_amount=budget.amount,
        actual_spent=budget.spent,
        variance=budget.amount - budget.spent,
        variance_percentage=0.0,
        transaction_count=budget.transaction_count,
        start_date=budget.start_date,
        end_date=budget.end_date,
    )


def test_renew_is_compare_and_swap(budget_factory, budget_repo):
    budget = budget_factory()
    budget_repo.increment_period(budget.id, 40.0)
    observed = budget_repo.get_by_id(budget.id, user_id=USER_ID)

    renewed = budget_repo.get_by_id(budget.id, user_id=USER_ID)
    renewed.start_date = datetime(2024, 7, 1)
    renewed.end_date = datetime(2024, 7, 30)
    renewed.spent = 0.0
    renewed.transaction_count = 0
    renewed.rollover_amount = 60.0
    renewed.remaining = 160.0

    # Another writer moves the counters between read and write.
    budget_repo.increment_period(budget.id, 1.0)
    with pytest.raises(ConcurrentUpdateError):
        budget_repo.renew(
            renewed,
            _snapshot(observed),
            expected_spent=observed.spent,
            expected_count=observed.transaction_count,
        )
    assert budget_repo.get_by_id(budget.id, user_id=USER_ID).history == []

    current = budget_repo.get_by_id(budget.id, user_id=USER_ID)
    stored = budget_repo.renew(
        renewed,
        _snapshot(current),
        expected_spent=current.spent,
        expected_count=current.transaction_count,
    )

    assert stored.start_date == datetime(2024, 7, 1)
    assert stored.spent == 0.0
    assert stored.rollover_amount == 60.0
    assert [h.actual_spent for h in stored.history] == [41.0]


def test_append_history_and_delete_cascade(budget_factory, budget_repo):
    budget = budget_factory()
    budget_repo.append_history(budget.id, _snapshot(budget))
    assert len(budget_repo.get_by_id(budget.id, user_id=USER_ID).history) == 1

    budget_repo.delete(budget.id, user_id=USER_ID)

    assert budget_repo.get_by_id(budget.id, user_id=USER_ID) is None


def test_transaction_find_filters(transaction_factory, transaction_repo):
    transaction_factory(amount=10.0, category="Food", occurred_at=datetime(2024, 5, 30))
    transaction_factory(amount=20.0, category="food", occurred_at=datetime(2024, 6, 2))
    transaction_factory(amount=30.0, category="travel", occurred_at=datetime(2024, 6, 3))
    transaction_factory(amount=40.0, category="food", txn_type="income", occurred_at=datetime(2024, 6, 4))
    transaction_factory(amount=50.0, category="food", status="pending", occurred_at=datetime(2024, 6, 5))

    june_food_expenses = transaction_repo.find(
        user_id=USER_ID,
        categories=["food"],
        start_date=datetime(2024, 6, 1),
        end_date=datetime(2024, 6, 30),
        txn_type="expense",
    )
    assert [t.amount for t in june_food_expenses] == [20.0]

    everything_completed = transaction_repo.find(user_id=USER_ID)
    assert [t.amount for t in everything_completed] == [10.0, 20.0, 30.0, 40.0]
    assert everything_completed[0].category == "food"

    including_pending = transaction_repo.find(user_id=USER_ID, status=None)
    assert len(including_pending) == 5
    assert transaction_repo.find(user_id=OTHER_USER) == []


def test_transaction_budget_links(budget_factory, transaction_factory, transaction_repo):
    budget = budget_factory()
    first = transaction_factory()
    second = transaction_factory()
    unlinked = transaction_factory(status="pending")

    transaction_repo.assign_budget([first.id, second.id], budget.id)
    assert transaction_repo.get_by_id(first.id, user_id=USER_ID).budget_id == budget.id
    linked = transaction_repo.find(user_id=USER_ID, budget_id=budget.id, status=None)
    assert {txn.id for txn in linked} == {first.id, second.id}
    assert unlinked.id not in {txn.id for txn in linked}

    transaction_repo.detach_budget(budget.id)
    assert transaction_repo.get_by_id(second.id, user_id=USER_ID).budget_id is None


def test_transaction_update_and_delete(transaction_factory, transaction_repo):
    txn = transaction_factory(amount=10.0)
    txn.amount = 12.0
    txn.category = " Dining "

    updated = transaction_repo.update(txn, user_id=USER_ID)

    assert updated.amount == 12.0
    assert updated.category == "dining"
    transaction_repo.delete(txn.id, user_id=USER_ID)
    assert transaction_repo.get_by_id(txn.id, user_id=USER_ID) is None
