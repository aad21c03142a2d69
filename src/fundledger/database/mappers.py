"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic. Stored account type labels are
parsed into AccountType here so the domain never sees the raw string.
"""

from decimal import Decimal

from fundledger.domain import entities as domain
from fundledger.database.models import (
    Account as ORMAccount,
    Budget as ORMBudget,
    Category as ORMCategory,
    Rule as ORMRule,
    Transaction as ORMTransaction,
)


def _decimal(value) -> Decimal:
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        id=orm_account.id,
        name=orm_account.name,
        account_type=domain.AccountType.parse(orm_account.account_type),
        currency=orm_account.currency,
        balance=_decimal(orm_account.balance),
        is_default=bool(orm_account.is_default),
        created_at=orm_account.created_at,
    )


def category_to_domain(orm_category: ORMCategory) -> domain.Category:
    """Convert SQLAlchemy Category model to domain Category entity."""
    return domain.Category(
        id=orm_category.id,
        name=orm_category.name,
        parent_id=orm_category.parent_id,
        created_at=orm_category.created_at,
    )


def budget_to_domain(orm_budget: ORMBudget) -> domain.Budget:
    """Convert SQLAlchemy Budget model to domain Budget entity."""
    return domain.Budget(
        id=orm_budget.id,
        name=orm_budget.name,
        description=orm_budget.description,
        amount=_decimal(orm_budget.amount),
        start_date=orm_budget.start_date,
        end_date=orm_budget.end_date,
        created_at=orm_budget.created_at,
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    return domain.Transaction(
        id=orm_transaction.id,
        source_account_id=orm_transaction.source_account_id,
        destination_account_id=orm_transaction.destination_account_id,
        destination_name=orm_transaction.destination_name,
        description=orm_transaction.description,
        amount=_decimal(orm_transaction.amount),
        category=orm_transaction.category,
        category_id=orm_transaction.category_id,
        budget_id=orm_transaction.budget_id,
        transaction_date=orm_transaction.transaction_date,
        created_at=orm_transaction.created_at,
        updated_at=orm_transaction.updated_at,
    )


def rule_to_domain(orm_rule: ORMRule) -> domain.Rule:
    """Convert SQLAlchemy Rule model (with children) to domain Rule entity."""
    return domain.Rule(
        id=orm_rule.id,
        name=orm_rule.name,
        description=orm_rule.description,
        is_active=bool(orm_rule.is_active),
        priority=orm_rule.priority,
        conditions=tuple(
            domain.RuleCondition(
                condition_type=domain.ConditionType(c.condition_type),
                value=c.value,
            )
            for c in orm_rule.conditions
        ),
        actions=tuple(
            domain.RuleAction(
                action_type=domain.ActionType(a.action_type),
                value=a.value,
            )
            for a in orm_rule.actions
        ),
        created_at=orm_rule.created_at,
    )
