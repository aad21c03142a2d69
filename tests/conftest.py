"""Shared pytest fixtures for fundledger tests."""

import tempfile
import os
from datetime import datetime
from decimal import Decimal
import pytest

from fundledger.config import get_settings
from fundledger.database.factories import create_sqlite_database
from fundledger.domain.account import AccountService
from fundledger.domain.balance import BalanceService
from fundledger.domain.budget import BudgetService
from fundledger.domain.category import CategoryService
from fundledger.domain.rules import RuleService
from fundledger.domain.timeseries import TimeSeriesService
from fundledger.domain.transaction import TransactionService


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Run every test with default settings and no real database path."""
    for name in list(os.environ):
        if name.startswith("FUNDLEDGER_"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("FUNDLEDGER_DB_PATH", str(tmp_path / "default.db"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for CLI tests
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def account_service(temp_db):
    """Create an AccountService with a temporary database."""
    return AccountService(temp_db)


@pytest.fixture
def category_service(temp_db):
    """Create a CategoryService with a temporary database."""
    return CategoryService(temp_db)


@pytest.fixture
def rule_service(temp_db):
    """Create a RuleService with a temporary database."""
    return RuleService(temp_db)


@pytest.fixture
def transaction_service(temp_db):
    """Create a TransactionService with a temporary database."""
    return TransactionService(temp_db)


@pytest.fixture
def balance_service(temp_db):
    """Create a BalanceService with a temporary database."""
    return BalanceService(temp_db)


@pytest.fixture
def budget_service(temp_db):
    """Create a BudgetService with a temporary database."""
    return BudgetService(temp_db)


@pytest.fixture
def timeseries_service(temp_db):
    """Create a TimeSeriesService anchored on Monday."""
    return TimeSeriesService(temp_db, week_start=0)


@pytest.fixture
def checking(account_service):
    """On Budget checking account with no opening balance."""
    account_id = account_service.create_account(
        name="Checking",
        account_type="On Budget - Checking",
        created_at=datetime(2024, 1, 1),
    )
    return account_service.get_account(account_id)


@pytest.fixture
def savings(account_service):
    """Off Budget savings account with no opening balance."""
    account_id = account_service.create_account(
        name="Savings",
        account_type="Off Budget - Savings",
        created_at=datetime(2024, 1, 1),
    )
    return account_service.get_account(account_id)


@pytest.fixture
def grocer(account_service):
    """External counterparty account."""
    account_id = account_service.create_account(
        name="Grocer", account_type="External", created_at=datetime(2024, 1, 1)
    )
    return account_service.get_account(account_id)


@pytest.fixture
def add_transaction(transaction_service):
    """Shortcut for creating transactions in tests.

    Amounts may be given as strings; dates as datetimes.
    """

    def _add(source, amount, when, description="Test transaction", **kwargs):
        return transaction_service.create_transaction(
            source_account_id=source,
            description=description,
            amount=Decimal(str(amount)),
            transaction_date=when,
            **kwargs,
        )

    return _add


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
