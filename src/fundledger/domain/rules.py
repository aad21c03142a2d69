"""Rule engine for automatic transaction categorization.

Active rules are evaluated in ascending (priority, id) order. A rule matches
when every one of its conditions matches. The first matching rule wins: its
actions are applied in order and no further rules are consulted. Actions only
touch categorization fields (category, budget, description, payee text),
never amounts or account links.
"""

import dataclasses
import logging
import threading
import weakref
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Callable, Iterable, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from fundledger.domain.entities import (
    ActionType,
    ConditionType,
    Rule,
    RuleAction,
    RuleCondition,
    Transaction,
)
from fundledger.domain.errors import (
    DomainError,
    NotFoundError,
    ValidationError,
    budget_not_found,
    rule_not_found,
)

if TYPE_CHECKING:
    from fundledger.database.base import Database

logger = logging.getLogger(__name__)

ConditionEvaluator = Callable[[Transaction, str], bool]

AMOUNT_TOLERANCE = Decimal("0.001")
DEFAULT_PRIORITY = 100

# Evaluation order per database, shared by every RuleService on it
_order_cache: "weakref.WeakKeyDictionary[Database, list[Rule]]" = weakref.WeakKeyDictionary()
_order_lock = threading.Lock()


def _number(value: str) -> Optional[Decimal]:
    try:
        number = Decimal(value.strip())
    except (InvalidOperation, AttributeError):
        return None
    return number if number.is_finite() else None


def _description_contains(txn: Transaction, value: str) -> bool:
    return value.lower() in txn.description.lower()


def _description_starts_with(txn: Transaction, value: str) -> bool:
    return txn.description.lower().startswith(value.lower())


def _description_equals(txn: Transaction, value: str) -> bool:
    return txn.description.lower() == value.lower()


def _source_account_equals(txn: Transaction, value: str) -> bool:
    return str(txn.source_account_id) == value.strip()


def _destination_account_equals(txn: Transaction, value: str) -> bool:
    return txn.destination_account_id is not None and str(txn.destination_account_id) == value.strip()


def _destination_name_contains(txn: Transaction, value: str) -> bool:
    return txn.destination_name is not None and value.lower() in txn.destination_name.lower()


def _destination_name_equals(txn: Transaction, value: str) -> bool:
    return txn.destination_name is not None and txn.destination_name.lower() == value.lower()


def _amount_greater_than(txn: Transaction, value: str) -> bool:
    number = _number(value)
    return number is not None and txn.amount > number


def _amount_less_than(txn: Transaction, value: str) -> bool:
    number = _number(value)
    return number is not None and txn.amount < number


def _amount_equals(txn: Transaction, value: str) -> bool:
    number = _number(value)
    return number is not None and abs(txn.amount - number) < AMOUNT_TOLERANCE


CONDITION_EVALUATORS: dict[ConditionType, ConditionEvaluator] = {
    ConditionType.DESCRIPTION_CONTAINS: _description_contains,
    ConditionType.DESCRIPTION_STARTS_WITH: _description_starts_with,
    ConditionType.DESCRIPTION_EQUALS: _description_equals,
    ConditionType.SOURCE_ACCOUNT_EQUALS: _source_account_equals,
    ConditionType.DESTINATION_ACCOUNT_EQUALS: _destination_account_equals,
    ConditionType.DESTINATION_NAME_CONTAINS: _destination_name_contains,
    ConditionType.DESTINATION_NAME_EQUALS: _destination_name_equals,
    ConditionType.AMOUNT_GREATER_THAN: _amount_greater_than,
    ConditionType.AMOUNT_LESS_THAN: _amount_less_than,
    ConditionType.AMOUNT_EQUALS: _amount_equals,
}

# Fields a rule may change, compared to decide whether a write is needed
RULE_FIELDS = ("category", "category_id", "budget_id", "description", "destination_name")


def parse_condition(condition_type: str, value: str) -> RuleCondition:
    """Build a condition from its type name.

    Raises:
        ValidationError: If the type is unknown or the value is empty
    """
    try:
        kind = ConditionType(condition_type.strip().lower())
    except ValueError:
        raise ValidationError(
            f"Unknown condition type '{condition_type}'. Expected one of: "
            + ", ".join(c.value for c in ConditionType)
        )
    if value is None or not str(value).strip():
        raise ValidationError(f"Condition '{kind.value}' needs a value")
    return RuleCondition(condition_type=kind, value=str(value))


def parse_action(action_type: str, value: str) -> RuleAction:
    """Build an action from its type name.

    Raises:
        ValidationError: If the type is unknown or the value is empty
    """
    try:
        kind = ActionType(action_type.strip().lower())
    except ValueError:
        raise ValidationError(
            f"Unknown action type '{action_type}'. Expected one of: "
            + ", ".join(a.value for a in ActionType)
        )
    if value is None or not str(value).strip():
        raise ValidationError(f"Action '{kind.value}' needs a value")
    return RuleAction(action_type=kind, value=str(value).strip())


def conditions_match(txn: Transaction, conditions: Iterable[RuleCondition]) -> bool:
    """True when every condition matches (AND)."""
    return all(
        CONDITION_EVALUATORS[condition.condition_type](txn, condition.value)
        for condition in conditions
    )


class RuleService:
    """Service for managing and applying categorization rules."""

    def __init__(self, db: "Database", transactions=None):
        """Initialize rule service.

        Args:
            db: Database instance
            transactions: Optional TransactionService used to write changes back
        """
        self.db = db
        self._transactions = transactions

    @property
    def transactions(self):
        if self._transactions is None:
            from fundledger.domain.transaction import TransactionService

            self._transactions = TransactionService(self.db, rules=self)
        return self._transactions

    # Rule CRUD
    def _validate(
        self,
        name: Optional[str],
        conditions: Optional[Sequence[RuleCondition]],
        actions: Optional[Sequence[RuleAction]],
    ) -> None:
        if name is not None and not name.strip():
            raise ValidationError("Rule name must not be empty")
        if conditions is not None and not conditions:
            raise ValidationError("A rule needs at least one condition")
        if actions is not None:
            if not actions:
                raise ValidationError("A rule needs at least one action")
            for action in actions:
                if action.action_type is ActionType.SET_BUDGET:
                    budget_id = _number(action.value)
                    if budget_id is None or budget_id != budget_id.to_integral_value():
                        raise ValidationError(f"Budget ID '{action.value}' is not an integer")
                    if self.db.get_budget(int(budget_id)) is None:
                        raise NotFoundError(budget_not_found(int(budget_id)))

    def create_rule(
        self,
        name: str,
        conditions: Sequence[RuleCondition],
        actions: Sequence[RuleAction],
        priority: int = DEFAULT_PRIORITY,
        is_active: bool = True,
        description: Optional[str] = None,
    ) -> int:
        """Create a rule.

        Args:
            name: Rule name
            conditions: Ordered conditions, all of which must match
            actions: Ordered actions applied on a match
            priority: Lower runs first
            is_active: Inactive rules are never evaluated
            description: Optional free text

        Returns:
            Rule ID

        Raises:
            ValidationError: If the name is empty, there are no conditions or
                actions, or a budget action has a malformed ID
            NotFoundError: If a budget action references a missing budget
        """
        self._validate(name, conditions, actions)
        rule_id = self.db.create_rule(
            name=name.strip(),
            conditions=list(conditions),
            actions=list(actions),
            priority=priority,
            is_active=is_active,
            description=description,
        )
        self.invalidate()
        return rule_id

    def get_rule(self, rule_id: int) -> Optional[Rule]:
        return self.db.get_rule(rule_id)

    def require_rule(self, rule_id: int) -> Rule:
        rule = self.db.get_rule(rule_id)
        if rule is None:
            raise NotFoundError(rule_not_found(rule_id))
        return rule

    def list_rules(self, active_only: bool = False) -> list[Rule]:
        """List rules in evaluation order."""
        return self.db.list_rules(active_only=active_only)

    def update_rule(
        self,
        rule_id: int,
        name: Optional[str] = None,
        conditions: Optional[Sequence[RuleCondition]] = None,
        actions: Optional[Sequence[RuleAction]] = None,
        priority: Optional[int] = None,
        is_active: Optional[bool] = None,
        description: Optional[str] = None,
    ) -> None:
        """Update a rule. Given conditions or actions replace the existing lists.

        Raises:
            NotFoundError: If rule doesn't exist
            ValidationError: If the update would leave the rule without
                conditions or actions
        """
        self.require_rule(rule_id)
        self._validate(name, conditions, actions)
        changes = {
            key: value
            for key, value in {
                "name": name.strip() if name is not None else None,
                "conditions": list(conditions) if conditions is not None else None,
                "actions": list(actions) if actions is not None else None,
                "priority": priority,
                "is_active": is_active,
                "description": description,
            }.items()
            if value is not None
        }
        if changes:
            self.db.update_rule(rule_id, **changes)
        self.invalidate()

    def set_active(self, rule_id: int, active: bool) -> None:
        self.update_rule(rule_id, is_active=active)

    def delete_rule(self, rule_id: int) -> None:
        """Delete a rule.

        Raises:
            NotFoundError: If rule doesn't exist
        """
        self.require_rule(rule_id)
        self.db.delete_rule(rule_id)
        self.invalidate()

    # Evaluation
    def invalidate(self) -> None:
        """Drop the cached evaluation order for this database."""
        with _order_lock:
            _order_cache.pop(self.db, None)

    def ordered_rules(self) -> list[Rule]:
        """Active rules sorted by (priority, id), cached until the next CRUD call."""
        with _order_lock:
            cached = _order_cache.get(self.db)
        if cached is not None:
            return cached

        rules = sorted(self.db.list_rules(active_only=True), key=lambda r: r.sort_key)
        usable = []
        for rule in rules:
            if not rule.conditions:
                logger.warning(
                    "Skipping rule %s (%s): it has no conditions and would match every transaction",
                    rule.id,
                    rule.name,
                )
                continue
            usable.append(rule)
        with _order_lock:
            _order_cache[self.db] = usable
        return usable

    def match(self, txn: Transaction, rules: Optional[Sequence[Rule]] = None) -> Optional[Rule]:
        """Return the first rule whose conditions all match, if any."""
        for rule in self.ordered_rules() if rules is None else rules:
            if not rule.is_active or not rule.conditions:
                continue
            if conditions_match(txn, rule.conditions):
                return rule
        return None

    def apply_rule(self, txn: Transaction, rule: Rule) -> Transaction:
        """Apply one rule's actions in order and return the resulting transaction."""
        result = txn
        for action in rule.actions:
            if action.action_type is ActionType.SET_CATEGORY:
                category = self.db.get_category_by_name(action.value)
                result = dataclasses.replace(
                    result,
                    category=category.name if category is not None else action.value,
                    category_id=category.id if category is not None else None,
                )
            elif action.action_type is ActionType.SET_BUDGET:
                budget_id = _number(action.value)
                if budget_id is None or self.db.get_budget(int(budget_id)) is None:
                    logger.error("Rule %s references unknown budget '%s'", rule.id, action.value)
                    continue
                result = dataclasses.replace(result, budget_id=int(budget_id))
            elif action.action_type is ActionType.SET_DESCRIPTION:
                result = dataclasses.replace(result, description=action.value)
            elif action.action_type is ActionType.SET_DESTINATION_NAME:
                result = dataclasses.replace(result, destination_name=action.value)
        return result

    def apply(self, txn: Transaction) -> Transaction:
        """Return the transaction as the first matching active rule would leave it.

        Nothing is written. Amount and account links are never changed.
        """
        rule = self.match(txn)
        if rule is None:
            return txn
        return self.apply_rule(txn, rule)

    def apply_and_persist(
        self,
        rule_id: Optional[int] = None,
        transactions: Optional[Iterable[Transaction]] = None,
    ) -> int:
        """Apply rules and write back transactions whose fields changed.

        Args:
            rule_id: Run only this rule; None runs every active rule with
                first match wins
            transactions: Transactions to process; None processes all

        Returns:
            Number of transactions changed

        Raises:
            NotFoundError: If rule_id doesn't exist
        """
        if rule_id is not None:
            rule = self.require_rule(rule_id)
            if not rule.is_active:
                logger.info("Rule %s is inactive; nothing to apply", rule_id)
                return 0
            rules: Optional[list[Rule]] = [rule]
        else:
            rules = None

        if transactions is None:
            transactions = self.db.list_transactions()

        changed = 0
        for txn in transactions:
            rule = self.match(txn, rules)
            if rule is None:
                continue
            updated = self.apply_rule(txn, rule)
            if all(getattr(updated, f) == getattr(txn, f) for f in RULE_FIELDS):
                continue
            try:
                if not self._persist(txn, updated):
                    continue
            except (DomainError, SQLAlchemyError):
                logger.exception("Failed to apply rule '%s' to transaction %s", rule.name, txn.id)
                continue
            changed += 1
            logger.info("Applied rule '%s' to transaction %s", rule.name, txn.id)

        if rule_id is not None or changed:
            logger.info("Rule run changed %d transaction(s)", changed)
        return changed

    def _persist(self, original: Transaction, updated: Transaction) -> bool:
        changes = {}
        if updated.category != original.category or updated.category_id != original.category_id:
            changes["category"] = updated.category
        if updated.budget_id != original.budget_id:
            changes["budget_id"] = updated.budget_id
        if updated.description != original.description:
            changes["description"] = updated.description
        if updated.destination_name != original.destination_name:
            changes["destination_name"] = updated.destination_name
        return self.transactions.update_transaction(original.id, apply_rules=False, **changes)

    def test_conditions(
        self, conditions: Sequence[RuleCondition], sample_size: int = 100
    ) -> tuple[int, list[Transaction]]:
        """Count transactions matching a condition set without saving a rule.

        Returns:
            Tuple of (total matches, up to sample_size most recent matches)

        Raises:
            ValidationError: If there are no conditions
        """
        if not conditions:
            raise ValidationError("At least one condition is required")
        total = 0
        sample: list[Transaction] = []
        for txn in self.db.list_transactions():
            if conditions_match(txn, conditions):
                total += 1
                if len(sample) < sample_size:
                    sample.append(txn)
        return total, sample
