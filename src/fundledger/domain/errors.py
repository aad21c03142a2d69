"""Shared domain error messages and error types."""

from decimal import Decimal


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as a transfer to its own source account."""


class DependencyError(DomainError):
    """Operation blocked due to dependent domain data."""


class InconsistencyError(DomainError):
    """Cached balance diverged from a full replay of the transaction log.

    Only used to describe and log the divergence; reads correct the cache
    instead of raising.
    """

    def __init__(self, account_id: int, cached: Decimal, replayed: Decimal):
        self.account_id = account_id
        self.cached = cached
        self.replayed = replayed
        super().__init__(
            f"Account {account_id} cached balance {cached} does not match replayed balance {replayed}"
        )


def account_not_found(account_id: int) -> str:
    """Return message for missing account."""
    return f"Account {account_id} not found"


def account_name_not_found(name: str) -> str:
    """Return message for missing account by name."""
    return f"Account '{name}' not found"


def duplicate_account_name(name: str) -> str:
    """Return message for duplicate account name."""
    return f"Account with name '{name}' already exists"


def category_name_not_found(name: str) -> str:
    """Return message for missing category by name."""
    return f"Category '{name}' not found"


def transaction_not_found(transaction_id: int) -> str:
    """Return message for missing transaction."""
    return f"Transaction {transaction_id} not found"


def budget_not_found(budget_id: int) -> str:
    """Return message for missing budget."""
    return f"Budget {budget_id} not found"


def rule_not_found(rule_id: int) -> str:
    """Return message for missing rule."""
    return f"Rule {rule_id} not found"


def self_transfer(account_id: int) -> str:
    """Return message when source and destination are the same account."""
    return f"Source and destination accounts must differ (both are account {account_id})"


def account_delete_blocked(account_id: int, transaction_count: int) -> str:
    """Return message when account has dependent transactions."""
    return (
        f"Cannot delete account {account_id}: it has "
        f"{transaction_count} transaction{'s' if transaction_count != 1 else ''}. "
        "Delete them first or use --force."
    )
