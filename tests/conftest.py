"""Pytest configuration and shared fixtures for SpendCast tests.

Provides a temporary SQLite database per test, repositories bound to it, and
factories for budgets and transactions. Clocks are always injected so results
do not depend on the day the suite runs.
"""

from __future__ import annotations

import logging
from datetime import datetime

import pytest

from spendcast.config import TestingConfig
from spendcast.infra.database import bootstrap_database
from spendcast.infra.repositories import (
    SQLModelBudgetRepository,
    SQLModelTransactionRepository,
)
from spendcast.logging_config import ROOT_LOGGER_NAME
from spendcast.models import Budget, Transaction
from spendcast.services.budget_service import BudgetService

NOW = datetime(2024, 6, 15, 12, 0, 0)
USER_ID = 1


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Drop handlers installed by setup_logging so streams never outlive a test."""

    yield
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def config(tmp_path):
    """Testing configuration rooted in a per-test temporary directory."""

    return TestingConfig(tmp_path)


@pytest.fixture
def db_engine(config):
    """SQLite file database with the schema created (WAL + busy timeout)."""

    engine, _factory = bootstrap_database(config)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory matching what the repositories expect."""

    from spendcast.infra.database import create_session_factory

    factory = create_session_factory(db_engine)
    return factory


@pytest.fixture
def budget_repo(session_factory) -> SQLModelBudgetRepository:
    return SQLModelBudgetRepository(session_factory)


@pytest.fixture
def transaction_repo(session_factory) -> SQLModelTransactionRepository:
    return SQLModelTransactionRepository(session_factory)


@pytest.fixture
def budget_service(budget_repo, transaction_repo) -> BudgetService:
    """Budget service whose clock is frozen at ``NOW``."""

    return BudgetService(budget_repo, transaction_repo, clock=lambda: NOW)


# =============================================================================
# Test Data Factories
# =============================================================================


def build_budget(**overrides) -> Budget:
    """Unsaved monthly expense budget covering June 2024 by default."""

    values = {
        "user_id": USER_ID,
        "name": "Groceries",
        "amount": 100.0,
        "period": "monthly",
        "budget_type": "expense",
        "categories": ["food"],
        "start_date": datetime(2024, 6, 1),
        "end_date": datetime(2024, 6, 30, 23, 59, 59),
    }
    values.update(overrides)
    return Budget(**values)


@pytest.fixture
def make_budget():
    """Builder for unsaved budgets, for pure-function tests."""

    return build_budget


@pytest.fixture
def budget_factory(budget_repo):
    """Persist a budget directly through the repository (no service rules)."""

    def _create_budget(**overrides) -> Budget:
        return budget_repo.create(build_budget(**overrides), user_id=USER_ID)

    return _create_budget


@pytest.fixture
def transaction_factory(transaction_repo):
    """Persist a transaction directly through the repository (no attribution)."""

    def _create_transaction(
        *,
        amount: float = 10.0,
        occurred_at: datetime = datetime(2024, 6, 10),
        txn_type: str = "expense",
        category: str = "food",
        status: str = "completed",
        description: str = "",
        budget_id: int | None = None,
    ) -> Transaction:
        txn = Transaction(
            user_id=USER_ID,
            amount=amount,
            occurred_at=occurred_at,
            txn_type=txn_type,
            category=category,
            status=status,
            description=description,
            budget_id=budget_id,
        )
        return transaction_repo.create(txn, user_id=USER_ID)

    return _create_transaction
