"""Tests for the categorization rule engine."""

import dataclasses
import logging
from datetime import date, datetime
from decimal import Decimal

import pytest

from fundledger.domain.entities import (
    ActionType,
    ConditionType,
    RuleAction,
    RuleCondition,
)
from fundledger.domain.errors import NotFoundError, ValidationError
from fundledger.domain.rules import RuleService, conditions_match, parse_action, parse_condition
from fundledger.domain.transaction import TransactionService


def _when(condition_type, value):
    return RuleCondition(ConditionType(condition_type), value)


def _then(action_type, value):
    return RuleAction(ActionType(action_type), value)


@pytest.fixture
def food_rule(rule_service, category_service):
    category_service.create_category("Food")
    return rule_service.create_rule(
        name="Groceries",
        conditions=[_when("description_contains", "groceries")],
        actions=[_then("set_category", "Food")],
    )


class TestParsing:
    def test_parse_condition_and_action(self):
        assert parse_condition(" Description_Contains ", "x") == _when("description_contains", "x")
        assert parse_action("set_budget", "3") == _then("set_budget", "3")

    def test_unknown_types_are_rejected(self):
        with pytest.raises(ValidationError, match="Unknown condition type"):
            parse_condition("description_regex", "x")
        with pytest.raises(ValidationError, match="Unknown action type"):
            parse_action("set_amount", "1")

    def test_empty_values_are_rejected(self):
        with pytest.raises(ValidationError):
            parse_condition("description_contains", "  ")


class TestConditions:
    def test_text_conditions_ignore_case(self, checking, grocer, add_transaction, temp_db):
        txn = temp_db.get_transaction(
            add_transaction(
                checking.id,
                "42",
                datetime(2024, 1, 1),
                description="Weekly GROCERIES run",
                destination_name="Corner Shop",
            )
        )

        assert conditions_match(txn, [_when("description_contains", "groceries")])
        assert conditions_match(txn, [_when("description_starts_with", "weekly")])
        assert not conditions_match(txn, [_when("description_equals", "weekly")])
        assert conditions_match(txn, [_when("destination_name_equals", "corner shop")])
        assert conditions_match(txn, [_when("destination_name_contains", "SHOP")])
        assert conditions_match(txn, [_when("source_account_equals", str(checking.id))])
        assert not conditions_match(txn, [_when("destination_account_equals", str(grocer.id))])

    def test_numeric_conditions(self, checking, add_transaction, temp_db):
        txn = temp_db.get_transaction(add_transaction(checking.id, "42.50", datetime(2024, 1, 1)))

        assert conditions_match(txn, [_when("amount_greater_than", "40")])
        assert conditions_match(txn, [_when("amount_less_than", "50")])
        assert conditions_match(txn, [_when("amount_equals", "42.5")])
        assert not conditions_match(txn, [_when("amount_equals", "42.51")])
        # Unparseable numbers never match
        assert not conditions_match(txn, [_when("amount_greater_than", "lots")])

    def test_all_conditions_must_match(self, checking, add_transaction, temp_db):
        txn = temp_db.get_transaction(
            add_transaction(checking.id, "10", datetime(2024, 1, 1), description="Coffee")
        )

        assert not conditions_match(
            txn, [_when("description_contains", "coffee"), _when("amount_greater_than", "20")]
        )


class TestRuleCrud:
    def test_create_requires_conditions_and_actions(self, rule_service):
        with pytest.raises(ValidationError):
            rule_service.create_rule("Empty", conditions=[], actions=[_then("set_category", "X")])
        with pytest.raises(ValidationError):
            rule_service.create_rule("Empty", conditions=[_when("description_contains", "x")], actions=[])
        with pytest.raises(ValidationError):
            rule_service.create_rule(" ", [_when("description_contains", "x")], [_then("set_category", "X")])

    def test_budget_action_must_reference_budget(self, rule_service, budget_service):
        conditions = [_when("description_contains", "x")]
        with pytest.raises(ValidationError):
            rule_service.create_rule("Bad", conditions, [_then("set_budget", "abc")])
        with pytest.raises(NotFoundError):
            rule_service.create_rule("Bad", conditions, [_then("set_budget", "12")])

        budget_id = budget_service.create_budget("Food", Decimal("10"), date(2024, 1, 1))
        rule_id = rule_service.create_rule("Good", conditions, [_then("set_budget", str(budget_id))])
        assert rule_service.get_rule(rule_id).actions[0].value == str(budget_id)

    def test_update_and_delete(self, rule_service, food_rule):
        rule_service.update_rule(food_rule, priority=5, name="Food shopping")
        rule = rule_service.get_rule(food_rule)
        assert rule.priority == 5
        assert rule.name == "Food shopping"

        with pytest.raises(ValidationError):
            rule_service.update_rule(food_rule, conditions=[])

        rule_service.delete_rule(food_rule)
        assert rule_service.get_rule(food_rule) is None
        with pytest.raises(NotFoundError):
            rule_service.delete_rule(food_rule)

    def test_crud_invalidates_cached_order(self, rule_service, food_rule):
        assert [r.id for r in rule_service.ordered_rules()] == [food_rule]

        rule_service.set_active(food_rule, False)

        assert rule_service.ordered_rules() == []


class TestRuleApplication:
    def test_rule_applies_inline_on_create(self, checking, food_rule, add_transaction, temp_db):
        txn_id = add_transaction(checking.id, "55.20", datetime(2024, 2, 1), description="groceries")

        txn = temp_db.get_transaction(txn_id)
        assert txn.category == "Food"
        assert txn.category_id is not None
        assert txn.amount == Decimal("55.20")
        assert txn.source_account_id == checking.id

    def test_rule_run_over_existing_transactions(self, checking, rule_service, category_service, add_transaction, temp_db):
        txn_id = add_transaction(checking.id, "20", datetime(2024, 2, 1), description="Groceries at market")
        category_service.create_category("Food")
        rule_id = rule_service.create_rule(
            "Groceries", [_when("description_contains", "groceries")], [_then("set_category", "Food")]
        )

        assert rule_service.apply_and_persist(rule_id) == 1
        assert temp_db.get_transaction(txn_id).category == "Food"
        # Second run finds nothing to change
        assert rule_service.apply_and_persist(rule_id) == 0
        assert rule_service.apply_and_persist() == 0

    def test_rules_created_elsewhere_apply_inline(self, checking, temp_db):
        """Rules added through one RuleService are seen by every other service on the database."""
        transactions = TransactionService(temp_db)
        transactions.create_transaction(checking.id, "Coffee", Decimal("3"), transaction_date=datetime(2024, 2, 1))

        RuleService(temp_db).create_rule(
            "Groceries", [_when("description_contains", "groceries")], [_then("set_category", "Food")]
        )
        txn_id = transactions.create_transaction(
            checking.id, "Weekly groceries shopping", Decimal("40"), transaction_date=datetime(2024, 2, 2)
        )

        assert temp_db.get_transaction(txn_id).category == "Food"

    def test_padded_action_values_stay_idempotent(self, checking, rule_service, add_transaction, temp_db):
        txn_id = add_transaction(checking.id, "20", datetime(2024, 2, 1), description="Groceries", apply_rules=False)
        rule_service.create_rule(
            "Groceries", [_when("description_contains", "groceries")], [parse_action("set_category", " Food ")]
        )

        assert rule_service.apply_and_persist() == 1
        assert temp_db.get_transaction(txn_id).category == "Food"
        assert rule_service.apply_and_persist() == 0

    def test_stored_padded_value_is_not_counted_twice(self, checking, rule_service, add_transaction, temp_db):
        add_transaction(checking.id, "20", datetime(2024, 2, 1), description="Groceries", apply_rules=False)
        rule_service.create_rule(
            "Groceries", [_when("description_contains", "groceries")], [_then("set_category", " Food ")]
        )

        assert rule_service.apply_and_persist() == 1
        assert rule_service.apply_and_persist() == 0

    def test_first_match_wins(self, checking, rule_service, add_transaction, temp_db):
        rule_service.create_rule(
            "Broad", [_when("amount_greater_than", "0")], [_then("set_category", "General")], priority=50
        )
        rule_service.create_rule(
            "Specific", [_when("description_contains", "rent")], [_then("set_category", "Housing")], priority=10
        )

        rent = add_transaction(checking.id, "900", datetime(2024, 3, 1), description="Rent March")
        other = add_transaction(checking.id, "9", datetime(2024, 3, 2), description="Snacks")

        assert temp_db.get_transaction(rent).category == "Housing"
        assert temp_db.get_transaction(other).category == "General"

    def test_equal_priority_breaks_ties_by_id(self, checking, rule_service, add_transaction, temp_db):
        rule_service.create_rule("First", [_when("description_contains", "x")], [_then("set_category", "A")])
        rule_service.create_rule("Second", [_when("description_contains", "x")], [_then("set_category", "B")])

        txn_id = add_transaction(checking.id, "1", datetime(2024, 3, 1), description="x")

        assert temp_db.get_transaction(txn_id).category == "A"

    def test_actions_never_touch_amount_or_accounts(self, checking, grocer, rule_service, add_transaction, temp_db):
        rule_service.create_rule(
            "Rename",
            [_when("destination_name_contains", "grocer")],
            [_then("set_description", "Groceries"), _then("set_destination_name", "The Grocer")],
        )

        txn_id = add_transaction(checking.id, "12", datetime(2024, 3, 1), destination_account_id=grocer.id)

        txn = temp_db.get_transaction(txn_id)
        assert txn.description == "Groceries"
        assert txn.destination_name == "The Grocer"
        assert txn.destination_account_id == grocer.id
        assert txn.amount == Decimal("12")
        assert temp_db.get_account(checking.id).balance == Decimal("-12")

    def test_set_budget_action(self, checking, rule_service, budget_service, add_transaction, temp_db):
        budget_id = budget_service.create_budget("Fun", Decimal("100"), date(2024, 1, 1))
        rule_service.create_rule(
            "Cinema", [_when("description_contains", "cinema")], [_then("set_budget", str(budget_id))]
        )

        txn_id = add_transaction(checking.id, "15", datetime(2024, 3, 1), description="Cinema tickets")

        assert temp_db.get_transaction(txn_id).budget_id == budget_id

    def test_apply_rules_can_be_skipped(self, checking, food_rule, add_transaction, temp_db):
        txn_id = add_transaction(checking.id, "5", datetime(2024, 2, 1), description="groceries", apply_rules=False)
        assert temp_db.get_transaction(txn_id).category is None

    def test_inactive_rule_is_not_run(self, checking, rule_service, food_rule, add_transaction):
        add_transaction(checking.id, "5", datetime(2024, 2, 1), description="groceries", apply_rules=False)
        rule_service.set_active(food_rule, False)

        assert rule_service.apply_and_persist(food_rule) == 0
        assert rule_service.apply_and_persist() == 0

    def test_rule_without_conditions_is_skipped(self, checking, rule_service, add_transaction, temp_db, caplog):
        # Stored directly; the service refuses to create such a rule
        temp_db.create_rule(name="Catch all", conditions=[], actions=[_then("set_category", "Misc")])
        rule_service.invalidate()

        with caplog.at_level(logging.WARNING):
            txn_id = add_transaction(checking.id, "5", datetime(2024, 2, 1))

        assert temp_db.get_transaction(txn_id).category is None
        assert "no conditions" in caplog.text

    def test_apply_does_not_write(self, checking, food_rule, rule_service, add_transaction, temp_db):
        txn_id = add_transaction(checking.id, "5", datetime(2024, 2, 1), description="misc", apply_rules=False)
        txn = temp_db.get_transaction(txn_id)

        assert rule_service.apply(txn) == txn
        renamed = rule_service.apply(dataclasses.replace(txn, description="groceries"))
        assert renamed.category == "Food"
        assert temp_db.get_transaction(txn_id).category is None


class TestConditionPreview:
    def test_counts_and_samples_newest_first(self, checking, rule_service, add_transaction):
        for day in range(1, 6):
            add_transaction(checking.id, "3", datetime(2024, 4, day), description=f"Coffee {day}")
        add_transaction(checking.id, "3", datetime(2024, 4, 9), description="Tea")

        total, sample = rule_service.test_conditions([_when("description_contains", "coffee")], sample_size=2)

        assert total == 5
        assert [t.description for t in sample] == ["Coffee 5", "Coffee 4"]

    def test_requires_conditions(self, rule_service):
        with pytest.raises(ValidationError):
            rule_service.test_conditions([])
