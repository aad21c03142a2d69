"""Tests for budgets and the monthly budget status."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from fundledger.domain.errors import NotFoundError, ValidationError


class TestMonthlyStatus:
    def test_incoming_and_outgoing(self, checking, grocer, add_transaction, budget_service):
        add_transaction(checking.id, "-2500", datetime(2024, 3, 1), category="Income")
        add_transaction(checking.id, "-40", datetime(2024, 3, 2), category="Refunds")
        add_transaction(checking.id, "120", datetime(2024, 3, 5), destination_account_id=grocer.id, category="Food")
        add_transaction(checking.id, "80", datetime(2024, 4, 1), category="Food")

        status = budget_service.monthly_status(2024, 3)

        assert status.incoming_funds == Decimal("2540")
        assert status.outgoing_funds == Decimal("120")

    def test_initial_balance_is_not_outgoing(self, account_service, budget_service):
        account_service.create_account(
            name="Card",
            account_type="On Budget - Credit Card",
            opening_balance=Decimal("-700"),
            created_at=datetime(2024, 5, 3),
        )

        status = budget_service.monthly_status(2024, 5)

        assert status.outgoing_funds == Decimal(0)
        assert status.incoming_funds == Decimal(0)

    def test_positive_opening_balance_counts_as_incoming(self, account_service, budget_service):
        account_service.create_account(
            name="Cash",
            account_type="On Budget",
            opening_balance=Decimal("300"),
            created_at=datetime(2024, 5, 3),
        )

        assert budget_service.monthly_status(2024, 5).incoming_funds == Decimal("300")

    def test_off_budget_accounts_are_ignored(self, savings, add_transaction, budget_service):
        add_transaction(savings.id, "-1000", datetime(2024, 3, 1))
        add_transaction(savings.id, "50", datetime(2024, 3, 2))

        status = budget_service.monthly_status(2024, 3)

        assert status.incoming_funds == Decimal(0)
        assert status.outgoing_funds == Decimal(0)

    def test_budgeted_amount_counts_overlapping_budgets(self, budget_service):
        budget_service.create_budget("Food", Decimal("400"), date(2024, 1, 1))
        budget_service.create_budget("Trip", Decimal("900"), date(2024, 3, 15), date(2024, 3, 20))
        budget_service.create_budget("Old", Decimal("50"), date(2023, 1, 1), date(2024, 2, 29))
        budget_service.create_budget("Later", Decimal("75"), date(2024, 4, 1))

        status = budget_service.monthly_status(2024, 3)

        assert status.budgeted_amount == Decimal("1300")
        assert status.remaining_to_budget == -Decimal("1300")

    def test_month_must_be_valid(self, budget_service):
        with pytest.raises(ValidationError):
            budget_service.monthly_status(2024, 13)
        with pytest.raises(ValidationError):
            budget_service.monthly_status(2024, 0)


class TestBudgetCrud:
    def test_create_and_get(self, budget_service):
        budget_id = budget_service.create_budget(
            "  Groceries ", Decimal("350.00"), date(2024, 1, 1), description="Weekly shop"
        )

        budget = budget_service.get_budget(budget_id)
        assert budget.name == "Groceries"
        assert budget.amount == Decimal("350")
        assert budget.end_date is None
        assert budget.description == "Weekly shop"

    def test_validation(self, budget_service):
        with pytest.raises(ValidationError):
            budget_service.create_budget("", Decimal("10"), date(2024, 1, 1))
        with pytest.raises(ValidationError):
            budget_service.create_budget("Neg", Decimal("-1"), date(2024, 1, 1))
        with pytest.raises(ValidationError):
            budget_service.create_budget("Inverted", Decimal("1"), date(2024, 2, 1), date(2024, 1, 1))

    def test_update(self, budget_service):
        budget_id = budget_service.create_budget("Fun", Decimal("100"), date(2024, 1, 1), date(2024, 6, 30))

        budget_service.update_budget(budget_id, amount=Decimal("150"), clear_end_date=True)

        budget = budget_service.get_budget(budget_id)
        assert budget.amount == Decimal("150")
        assert budget.end_date is None

        with pytest.raises(ValidationError):
            budget_service.update_budget(budget_id, end_date=date(2023, 12, 31))
        with pytest.raises(NotFoundError):
            budget_service.update_budget(999, amount=Decimal("1"))

    def test_active_budgets(self, budget_service):
        current = budget_service.create_budget("Now", Decimal("1"), date(2024, 1, 1), date(2024, 12, 31))
        budget_service.create_budget("Past", Decimal("1"), date(2023, 1, 1), date(2023, 12, 31))

        assert [b.id for b in budget_service.active_budgets(date(2024, 6, 1))] == [current]

    def test_delete_leaves_transactions_unbudgeted(self, checking, add_transaction, budget_service, temp_db):
        budget_id = budget_service.create_budget("Food", Decimal("200"), date(2024, 1, 1))
        txn_id = add_transaction(checking.id, "20", datetime(2024, 1, 3), budget_id=budget_id)

        budget_service.delete_budget(budget_id)

        assert budget_service.get_budget(budget_id) is None
        assert temp_db.get_transaction(txn_id).budget_id is None
        with pytest.raises(NotFoundError):
            budget_service.delete_budget(budget_id)


class TestBudgetSpending:
    def test_spent_and_remaining(self, checking, add_transaction, budget_service):
        budget_id = budget_service.create_budget("Food", Decimal("200"), date(2024, 1, 1))
        add_transaction(checking.id, "30", datetime(2024, 1, 3), budget_id=budget_id)
        add_transaction(checking.id, "45", datetime(2024, 2, 3), budget_id=budget_id)
        add_transaction(checking.id, "-10", datetime(2024, 2, 4), budget_id=budget_id)

        assert budget_service.budget_spent(budget_id) == Decimal("75")
        assert budget_service.budget_spent(budget_id, 2024, 2) == Decimal("45")
        assert budget_service.budget_remaining(budget_id) == Decimal("125")
        assert len(budget_service.budget_transactions(budget_id)) == 3

    def test_month_window_needs_year_and_month(self, budget_service):
        budget_id = budget_service.create_budget("Food", Decimal("200"), date(2024, 1, 1))
        with pytest.raises(ValidationError):
            budget_service.budget_spent(budget_id, year=2024)

    def test_unbudgeted_spent(self, checking, savings, add_transaction, account_service, budget_service):
        budget_id = budget_service.create_budget("Food", Decimal("200"), date(2024, 1, 1))
        add_transaction(checking.id, "30", datetime(2024, 1, 3), budget_id=budget_id)
        add_transaction(checking.id, "12", datetime(2024, 1, 4))
        add_transaction(savings.id, "99", datetime(2024, 1, 4))
        account_service.create_account(
            name="Card",
            account_type="On Budget",
            opening_balance=Decimal("-500"),
            created_at=datetime(2024, 1, 2),
        )

        assert budget_service.unbudgeted_spent() == Decimal("12")
        assert budget_service.unbudgeted_spent(2024, 2) == Decimal(0)
