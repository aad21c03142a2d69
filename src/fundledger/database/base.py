"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Optional, Any, Sequence
from datetime import date, datetime
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from fundledger.domain.entities import (
    Account,
    Budget,
    Category,
    Rule,
    RuleAction,
    RuleCondition,
    Transaction,
)

TRANSACTION_FIELDS = frozenset(
    {
        "source_account_id",
        "destination_account_id",
        "destination_name",
        "description",
        "amount",
        "category",
        "category_id",
        "budget_id",
        "transaction_date",
    }
)
ACCOUNT_FIELDS = frozenset({"name", "account_type", "currency", "is_default"})
BUDGET_FIELDS = frozenset({"name", "description", "amount", "start_date", "end_date"})
RULE_FIELDS = frozenset({"name", "description", "is_active", "priority", "conditions", "actions"})


class Database(ABC):
    """Abstract database interface for fundledger.

    The transaction table is the sole source of truth. The cached account
    balance is written only through ``set_account_balance``.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Account operations
    @abstractmethod
    def create_account(
        self,
        name: str,
        account_type: str,
        currency: str,
        is_default: bool = False,
        created_at: Optional[datetime] = None,
    ) -> int:
        """Create a new account with a zero cached balance. Returns account ID."""
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by ID."""
        pass

    @abstractmethod
    def get_account_by_name(self, name: str) -> Optional[Account]:
        """Get account by exact name."""
        pass

    @abstractmethod
    def list_accounts(self) -> list[Account]:
        """List all accounts ordered by name."""
        pass

    @abstractmethod
    def update_account(self, account_id: int, **changes: Any) -> None:
        """Update account fields (name, account_type, currency, is_default)."""
        pass

    @abstractmethod
    def clear_default_account(self, except_account_id: Optional[int] = None) -> None:
        """Clear the default flag on every account but one."""
        pass

    @abstractmethod
    def set_account_balance(self, account_id: int, balance: Decimal) -> None:
        """Overwrite the cached balance of an account."""
        pass

    @abstractmethod
    def delete_account(self, account_id: int) -> None:
        """Delete an account."""
        pass

    @abstractmethod
    def get_account_transaction_count(self, account_id: int) -> int:
        """Count transactions where the account is source or destination."""
        pass

    # Category operations
    @abstractmethod
    def create_category(self, name: str, parent_id: Optional[int] = None) -> int:
        """Create a category. Returns category ID."""
        pass

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[Category]:
        """Get category by ID."""
        pass

    @abstractmethod
    def get_category_by_name(self, name: str) -> Optional[Category]:
        """Get category by exact name."""
        pass

    @abstractmethod
    def list_categories(self) -> list[Category]:
        """List all categories ordered by name."""
        pass

    @abstractmethod
    def get_category_tree(self) -> list[dict[str, Any]]:
        """Get full category tree with hierarchy.

        Returns a list of dictionaries with category data and nested 'children' lists.
        """
        pass

    # Budget operations
    @abstractmethod
    def create_budget(
        self,
        name: str,
        amount: Decimal,
        start_date: date,
        end_date: Optional[date] = None,
        description: Optional[str] = None,
    ) -> int:
        """Create a budget. Returns budget ID."""
        pass

    @abstractmethod
    def get_budget(self, budget_id: int) -> Optional[Budget]:
        """Get budget by ID."""
        pass

    @abstractmethod
    def list_budgets(self) -> list[Budget]:
        """List all budgets ordered by name."""
        pass

    @abstractmethod
    def update_budget(self, budget_id: int, **changes: Any) -> None:
        """Update budget fields."""
        pass

    @abstractmethod
    def delete_budget(self, budget_id: int) -> None:
        """Delete a budget and unassign its transactions."""
        pass

    # Transaction operations
    @abstractmethod
    def create_transaction(
        self,
        source_account_id: int,
        description: str,
        amount: Decimal,
        transaction_date: datetime,
        destination_account_id: Optional[int] = None,
        destination_name: Optional[str] = None,
        category: Optional[str] = None,
        category_id: Optional[int] = None,
        budget_id: Optional[int] = None,
    ) -> int:
        """Create a transaction. Returns transaction ID."""
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Get transaction by ID."""
        pass

    @abstractmethod
    def update_transaction(self, transaction_id: int, **changes: Any) -> None:
        """Update transaction fields. A None value clears a nullable field."""
        pass

    @abstractmethod
    def delete_transaction(self, transaction_id: int) -> None:
        """Delete a transaction."""
        pass

    @abstractmethod
    def list_transactions(
        self,
        account_id: Optional[int] = None,
        category: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        budget_id: Optional[int] = None,
        unbudgeted_only: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Transaction]:
        """List transactions newest first.

        Args:
            account_id: Match transactions where the account is source or destination
            category: Match category name
            start: Inclusive lower bound on transaction_date
            end: Exclusive upper bound on transaction_date
            budget_id: Match assigned budget
            unbudgeted_only: Only transactions with no budget
            limit: Maximum rows to return
            offset: Rows to skip
        """
        pass

    @abstractmethod
    def count_transactions(
        self,
        account_id: Optional[int] = None,
        category: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        budget_id: Optional[int] = None,
        unbudgeted_only: bool = False,
    ) -> int:
        """Count transactions matching the same filters as list_transactions."""
        pass

    @abstractmethod
    def list_account_transactions(
        self, account_ids: Sequence[int], end: Optional[datetime] = None
    ) -> list[Transaction]:
        """All transactions touching any of the accounts, oldest first.

        Args:
            account_ids: Accounts matched as source or destination
            end: Optional exclusive upper bound on transaction_date
        """
        pass

    @abstractmethod
    def list_source_transactions(
        self,
        start: datetime,
        end: datetime,
        source_account_ids: Sequence[int],
    ) -> list[Transaction]:
        """Transactions in ``[start, end)`` whose source is one of the accounts, oldest first."""
        pass

    # Rule operations
    @abstractmethod
    def create_rule(
        self,
        name: str,
        conditions: Sequence[RuleCondition],
        actions: Sequence[RuleAction],
        priority: int = 100,
        is_active: bool = True,
        description: Optional[str] = None,
    ) -> int:
        """Create a rule with its ordered conditions and actions. Returns rule ID."""
        pass

    @abstractmethod
    def get_rule(self, rule_id: int) -> Optional[Rule]:
        """Get rule by ID."""
        pass

    @abstractmethod
    def list_rules(self, active_only: bool = False) -> list[Rule]:
        """List rules ordered by priority, then ID."""
        pass

    @abstractmethod
    def update_rule(self, rule_id: int, **changes: Any) -> None:
        """Update rule fields; conditions/actions replace the existing lists."""
        pass

    @abstractmethod
    def delete_rule(self, rule_id: int) -> None:
        """Delete a rule."""
        pass
