"""Transaction domain service.

This is the single write path for the transaction log. Every mutation is
validated first, written, and then followed by a full-replay recompute of
every account it touched (old and new) and by inline rule application.
Failures in those derived steps are logged and never undo the write; they
can be retried with ``account recompute`` and ``rule run``.
"""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from fundledger.config import get_settings
from fundledger.domain.balance import BalanceService
from fundledger.domain.category import CategoryService
from fundledger.domain.entities import Transaction as TransactionEntity
from fundledger.domain.errors import (
    ConflictError,
    DomainError,
    NotFoundError,
    ValidationError,
    account_not_found,
    budget_not_found,
    self_transfer,
    transaction_not_found,
)
from fundledger.utils.amount_parser import quantize
from fundledger.utils.date_parser import end_of_day, start_of_day, to_naive_utc, utcnow

if TYPE_CHECKING:
    from fundledger.database.base import Database

logger = logging.getLogger(__name__)


def _validate_amount(amount) -> Decimal:
    if amount is None:
        raise ValidationError("Amount is required")
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except InvalidOperation:
        raise ValidationError(f"Amount '{amount}' is not a number")
    if not value.is_finite():
        raise ValidationError("Amount must be a finite number")
    try:
        value = quantize(value)
    except InvalidOperation:
        raise ValidationError(f"Amount '{amount}' is too large")
    if value == 0:
        raise ValidationError("Amount must not be zero")
    return value


def _validate_description(description: Optional[str]) -> str:
    text = (description or "").strip()
    if not text:
        raise ValidationError("Description is required")
    return text


def _normalize_date(value: date | datetime | None) -> datetime:
    if value is None:
        return utcnow()
    if isinstance(value, datetime):
        return to_naive_utc(value)
    return start_of_day(value)


class TransactionService:
    """Service for managing transactions."""

    def __init__(self, db: "Database", rules=None):
        """Initialize transaction service.

        Args:
            db: Database instance
            rules: Optional RuleService used for inline rule application
        """
        self.db = db
        self.balances = BalanceService(db)
        self.categories = CategoryService(db)
        self._rules = rules

    @property
    def rules(self):
        if self._rules is None:
            from fundledger.domain.rules import RuleService

            self._rules = RuleService(self.db, transactions=self)
        return self._rules

    def _require_account(self, account_id: int) -> None:
        if self.db.get_account(account_id) is None:
            raise NotFoundError(account_not_found(account_id))

    def _require_transaction(self, transaction_id: int) -> TransactionEntity:
        txn = self.db.get_transaction(transaction_id)
        if txn is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        return txn

    def _resolve_destination(
        self,
        destination_account_id: Optional[int],
        destination_name: Optional[str],
    ) -> tuple[Optional[int], Optional[str]]:
        """Link a destination name to an account of that name when one exists."""
        if destination_name is not None:
            destination_name = destination_name.strip() or None

        if destination_account_id is not None:
            account = self.db.get_account(destination_account_id)
            if account is None:
                raise NotFoundError(account_not_found(destination_account_id))
            return destination_account_id, destination_name or account.name

        if destination_name is not None:
            match = self.db.get_account_by_name(destination_name)
            if match is not None:
                return match.id, match.name
        return None, destination_name

    def _resolve_category(self, category: Optional[str]) -> tuple[Optional[str], Optional[int]]:
        if category is None or not category.strip():
            return None, None
        found = self.categories.find_or_create_category(category)
        return found.name, found.id

    def _check_budget(self, budget_id: Optional[int]) -> None:
        if budget_id is not None and self.db.get_budget(budget_id) is None:
            raise NotFoundError(budget_not_found(budget_id))

    def create_transaction(
        self,
        source_account_id: int,
        description: str,
        amount: Decimal,
        category: Optional[str] = None,
        destination_account_id: Optional[int] = None,
        destination_name: Optional[str] = None,
        budget_id: Optional[int] = None,
        transaction_date: date | datetime | None = None,
        apply_rules: bool = True,
    ) -> int:
        """Create a transaction.

        Args:
            source_account_id: Account the amount is stated from
            description: Non-empty description
            amount: Signed amount; positive leaves the source, negative enters it
            category: Optional category name, created if missing
            destination_account_id: Optional destination account (a transfer)
            destination_name: Optional payee text; linked to an account of
                the same name when one exists
            budget_id: Optional budget
            transaction_date: When it happened (defaults to now). A plain date
                means midnight UTC.
            apply_rules: Run active rules on the new transaction

        Returns:
            Transaction ID

        Raises:
            ValidationError: If description or amount is invalid
            NotFoundError: If an account or budget doesn't exist
            ConflictError: If destination equals source
        """
        description = _validate_description(description)
        amount = _validate_amount(amount)
        self._require_account(source_account_id)
        destination_account_id, destination_name = self._resolve_destination(
            destination_account_id, destination_name
        )
        if destination_account_id == source_account_id:
            raise ConflictError(self_transfer(source_account_id))
        self._check_budget(budget_id)
        category_name, category_id = self._resolve_category(category)

        transaction_id = self.db.create_transaction(
            source_account_id=source_account_id,
            description=description,
            amount=amount,
            transaction_date=_normalize_date(transaction_date),
            destination_account_id=destination_account_id,
            destination_name=destination_name,
            category=category_name,
            category_id=category_id,
            budget_id=budget_id,
        )

        self._after_write({source_account_id, destination_account_id})
        if apply_rules:
            self._apply_rules(transaction_id)
        return transaction_id

    def get_transaction(self, transaction_id: int) -> Optional[TransactionEntity]:
        """Get transaction by ID.

        Args:
            transaction_id: Transaction ID

        Returns:
            Transaction entity or None if not found
        """
        return self.db.get_transaction(transaction_id)

    def update_transaction(
        self,
        transaction_id: int,
        source_account_id: Optional[int] = None,
        description: Optional[str] = None,
        amount: Optional[Decimal] = None,
        category: Optional[str] = None,
        destination_account_id: Optional[int] = None,
        destination_name: Optional[str] = None,
        budget_id: Optional[int] = None,
        transaction_date: date | datetime | None = None,
        clear_category: bool = False,
        clear_budget: bool = False,
        clear_destination: bool = False,
        apply_rules: bool = True,
    ) -> bool:
        """Update transaction fields. Fields left as None are not changed.

        Args:
            transaction_id: Transaction ID to update
            clear_category: Remove the category
            clear_budget: Remove the budget assignment
            clear_destination: Remove both destination account and name
            apply_rules: Run active rules on the updated transaction

        Returns:
            True if any stored field changed

        Raises:
            NotFoundError: If the transaction, an account or the budget doesn't exist
            ValidationError: If a new description or amount is invalid, or a
                clear flag is combined with a value for the same field
            ConflictError: If destination would equal source
        """
        txn = self._require_transaction(transaction_id)

        if clear_category and category is not None:
            raise ValidationError("Cannot set both category and clear_category")
        if clear_budget and budget_id is not None:
            raise ValidationError("Cannot set both budget and clear_budget")
        if clear_destination and (destination_account_id is not None or destination_name is not None):
            raise ValidationError("Cannot set both destination and clear_destination")

        changes = {}
        if description is not None:
            changes["description"] = _validate_description(description)
        if amount is not None:
            changes["amount"] = _validate_amount(amount)
        if source_account_id is not None:
            self._require_account(source_account_id)
            changes["source_account_id"] = source_account_id
        if transaction_date is not None:
            changes["transaction_date"] = _normalize_date(transaction_date)

        if clear_destination:
            changes["destination_account_id"] = None
            changes["destination_name"] = None
        elif destination_account_id is not None:
            dest_id, dest_name = self._resolve_destination(destination_account_id, destination_name)
            changes["destination_account_id"] = dest_id
            changes["destination_name"] = dest_name
        elif destination_name is not None:
            # Payee text only; the account link is left as it is
            changes["destination_name"] = destination_name.strip() or None

        new_source = changes.get("source_account_id", txn.source_account_id)
        new_destination = changes.get("destination_account_id", txn.destination_account_id)
        if new_destination is not None and new_destination == new_source:
            raise ConflictError(self_transfer(new_source))

        if clear_category:
            changes["category"] = None
            changes["category_id"] = None
        elif category is not None:
            changes["category"], changes["category_id"] = self._resolve_category(category)

        if clear_budget:
            changes["budget_id"] = None
        elif budget_id is not None:
            self._check_budget(budget_id)
            changes["budget_id"] = budget_id

        changes = {k: v for k, v in changes.items() if getattr(txn, k) != v}
        if not changes:
            return False

        self.db.update_transaction(transaction_id, **changes)
        self._after_write(txn.account_ids | {new_source, new_destination})
        if apply_rules:
            self._apply_rules(transaction_id)
        return True

    def delete_transaction(self, transaction_id: int) -> None:
        """Delete a transaction and recompute the accounts it touched.

        Raises:
            NotFoundError: If transaction doesn't exist
        """
        txn = self._require_transaction(transaction_id)
        self.db.delete_transaction(transaction_id)
        self._after_write(txn.account_ids)

    def list_transactions(
        self,
        account_id: Optional[int] = None,
        category: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        budget_id: Optional[int] = None,
        unbudgeted_only: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[TransactionEntity]:
        """List transactions newest first.

        Args:
            account_id: Match transactions where the account is source or destination
            category: Category name
            start_date: First day included
            end_date: Last day included
            budget_id: Only transactions assigned to this budget
            unbudgeted_only: Only transactions with no budget
            limit: Page size (defaults to the configured page size)
            offset: Rows to skip

        Returns:
            List of transaction entities
        """
        if limit is None:
            limit = get_settings().page_size
        if limit < 1 or offset < 0:
            raise ValidationError("Limit must be positive and offset must not be negative")
        return self.db.list_transactions(
            limit=limit,
            offset=offset,
            **self._filters(account_id, category, start_date, end_date, budget_id, unbudgeted_only),
        )

    def count_transactions(
        self,
        account_id: Optional[int] = None,
        category: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        budget_id: Optional[int] = None,
        unbudgeted_only: bool = False,
    ) -> int:
        """Count transactions matching the list_transactions filters."""
        return self.db.count_transactions(
            **self._filters(account_id, category, start_date, end_date, budget_id, unbudgeted_only)
        )

    @staticmethod
    def _filters(account_id, category, start_date, end_date, budget_id, unbudgeted_only) -> dict:
        if start_date is not None and end_date is not None and start_date > end_date:
            raise ValidationError(f"Start date {start_date} is after end date {end_date}")
        return {
            "account_id": account_id,
            "category": category,
            "start": start_of_day(start_date) if start_date is not None else None,
            "end": end_of_day(end_date) if end_date is not None else None,
            "budget_id": budget_id,
            "unbudgeted_only": unbudgeted_only,
        }

    def _after_write(self, account_ids: Iterable[Optional[int]]) -> None:
        try:
            self.balances.recompute(account_ids)
        except (DomainError, SQLAlchemyError):
            logger.exception("Balance recompute failed after write; run 'account recompute' to retry")

    def _apply_rules(self, transaction_id: int) -> None:
        try:
            self.rules.apply_and_persist(transactions=[self._require_transaction(transaction_id)])
        except (DomainError, SQLAlchemyError):
            logger.exception("Rule application failed for transaction %s", transaction_id)
