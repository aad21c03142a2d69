"""Account domain service."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from fundledger.config import get_settings
from fundledger.domain.balance import BalanceService
from fundledger.domain.entities import (
    Account as AccountEntity,
    AccountKind,
    AccountType,
    BALANCE_ADJUSTMENT_CATEGORY,
    INITIAL_BALANCE_CATEGORY,
)
from fundledger.domain.errors import (
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
    account_delete_blocked,
    account_not_found,
    duplicate_account_name,
)
from fundledger.utils.date_parser import to_naive_utc, utcnow

if TYPE_CHECKING:
    from fundledger.database.base import Database

logger = logging.getLogger(__name__)


class AccountService:
    """Service for managing accounts.

    There is no way to write a balance directly. Opening balances and
    administrative corrections are recorded as transactions so that replay
    stays authoritative.
    """

    def __init__(self, db: "Database"):
        """Initialize account service.

        Args:
            db: Database instance
        """
        self.db = db
        self.balances = BalanceService(db)

    def create_account(
        self,
        name: str,
        account_type: str | AccountType,
        currency: Optional[str] = None,
        opening_balance: Decimal = Decimal(0),
        is_default: bool = False,
        created_at: Optional[datetime] = None,
    ) -> int:
        """Create a new account.

        A non-zero opening balance is recorded as one "Initial Balance"
        transaction dated at creation with amount ``-opening_balance``.

        Args:
            name: Account name (unique)
            account_type: "On Budget", "Off Budget" or "External", optionally
                followed by " - <subtype>"
            currency: ISO currency code (defaults to the configured currency)
            opening_balance: Balance the account starts with
            is_default: Make this the default account
            created_at: Creation instant (defaults to now)

        Returns:
            Account ID

        Raises:
            ValidationError: If name is empty or account type is unknown
            ConflictError: If account name already exists
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Account name must not be empty")
        if isinstance(account_type, str):
            account_type = AccountType.parse(account_type)
        if self.db.get_account_by_name(name) is not None:
            raise ConflictError(duplicate_account_name(name))
        opening_balance = Decimal(opening_balance)
        if not opening_balance.is_finite():
            raise ValidationError("Opening balance must be a finite number")

        created = to_naive_utc(created_at) if created_at is not None else utcnow()
        account_id = self.db.create_account(
            name=name,
            account_type=account_type.label,
            currency=(currency or get_settings().currency).upper(),
            is_default=is_default,
            created_at=created,
        )
        if is_default:
            self.db.clear_default_account(except_account_id=account_id)

        if opening_balance != 0:
            self._record_seed(account_id, -opening_balance, created)
        return account_id

    def _record_seed(self, account_id: int, amount: Decimal, when: datetime) -> None:
        # Local import: the transaction service imports this module
        from fundledger.domain.transaction import TransactionService

        TransactionService(self.db).create_transaction(
            source_account_id=account_id,
            description="Initial balance",
            amount=amount,
            category=INITIAL_BALANCE_CATEGORY,
            transaction_date=when,
            apply_rules=False,
        )

    def get_account(self, account_id: int) -> Optional[AccountEntity]:
        """Get account by ID.

        Args:
            account_id: Account ID

        Returns:
            Account entity or None if not found
        """
        return self.db.get_account(account_id)

    def get_account_by_name(self, name: str) -> Optional[AccountEntity]:
        return self.db.get_account_by_name(name)

    def require_account(self, account_id: int) -> AccountEntity:
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        return account

    def list_accounts(self, kind: Optional[AccountKind] = None) -> list[AccountEntity]:
        """List accounts, optionally only those of one kind.

        Filtering by kind includes every subtype, so ON_BUDGET matches
        "On Budget - Credit Card".
        """
        accounts = self.db.list_accounts()
        if kind is None:
            return accounts
        return [acc for acc in accounts if acc.account_type.kind is kind]

    def get_default_account(self) -> Optional[AccountEntity]:
        for acc in self.db.list_accounts():
            if acc.is_default:
                return acc
        return None

    def update_account(
        self,
        account_id: int,
        name: Optional[str] = None,
        account_type: Optional[str | AccountType] = None,
        currency: Optional[str] = None,
        is_default: Optional[bool] = None,
    ) -> None:
        """Update account fields. Fields left as None are not changed.

        Raises:
            NotFoundError: If account not found
            ConflictError: If the new name belongs to another account
            ValidationError: If the name is empty or account type is unknown
        """
        self.require_account(account_id)
        changes = {}

        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Account name must not be empty")
            other = self.db.get_account_by_name(name)
            if other is not None and other.id != account_id:
                raise ConflictError(duplicate_account_name(name))
            changes["name"] = name
        if account_type is not None:
            if isinstance(account_type, str):
                account_type = AccountType.parse(account_type)
            changes["account_type"] = account_type.label
        if currency is not None:
            changes["currency"] = currency.upper()
        if is_default is not None:
            changes["is_default"] = is_default

        if changes:
            self.db.update_account(account_id, **changes)
        if is_default:
            self.db.clear_default_account(except_account_id=account_id)

    def adjust_balance(
        self, account_id: int, target_balance: Decimal, as_of: Optional[datetime] = None
    ) -> Optional[int]:
        """Bring an account to a target balance with an adjusting transaction.

        Returns:
            ID of the "Balance Adjustment" transaction, or None if the account
            already has the target balance

        Raises:
            NotFoundError: If account not found
        """
        self.require_account(account_id)
        current = self.balances.balance_at(account_id)
        difference = Decimal(target_balance) - current
        if difference == 0:
            return None

        from fundledger.domain.transaction import TransactionService

        logger.info(
            "Adjusting balance of account %s from %s to %s", account_id, current, target_balance
        )
        return TransactionService(self.db).create_transaction(
            source_account_id=account_id,
            description="Balance adjustment",
            amount=-difference,
            category=BALANCE_ADJUSTMENT_CATEGORY,
            transaction_date=as_of,
            apply_rules=False,
        )

    def delete_account(self, account_id: int, force: bool = False) -> int:
        """Delete an account.

        Args:
            account_id: Account ID to delete
            force: Also delete every transaction touching the account and
                recompute the counterparty accounts

        Returns:
            Number of transactions deleted with the account

        Raises:
            NotFoundError: If account not found
            DependencyError: If transactions reference the account and force is False
        """
        self.require_account(account_id)
        transaction_count = self.db.get_account_transaction_count(account_id)
        if transaction_count and not force:
            raise DependencyError(account_delete_blocked(account_id, transaction_count))

        counterparties: set[int] = set()
        for txn in self.db.list_account_transactions([account_id]):
            counterparties.update(txn.account_ids)
            self.db.delete_transaction(txn.id)
        counterparties.discard(account_id)

        self.db.delete_account(account_id)
        if counterparties:
            self.balances.recompute(counterparties)
        return transaction_count
