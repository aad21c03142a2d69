"""Tests for domain entities."""

import pytest
from datetime import datetime, date
from decimal import Decimal

from fundledger.domain.entities import (
    AccountKind,
    AccountType,
    BalanceSeries,
    Budget,
    Granularity,
    MonthlyBudgetStatus,
    SeriesPoint,
    Transaction,
)
from fundledger.domain.errors import ValidationError


def make_transaction(**overrides):
    fields = dict(
        id=1,
        source_account_id=1,
        destination_account_id=None,
        destination_name=None,
        description="Coffee",
        amount=Decimal("4.50"),
        category=None,
        category_id=None,
        budget_id=None,
        transaction_date=datetime(2024, 3, 1, 9, 30),
        created_at=datetime(2024, 3, 1, 9, 30),
        updated_at=datetime(2024, 3, 1, 9, 30),
    )
    fields.update(overrides)
    return Transaction(**fields)


class TestAccountType:
    """Tests for parsing stored account type labels."""

    @pytest.mark.parametrize(
        "label, kind, subtype",
        [
            ("On Budget", AccountKind.ON_BUDGET, None),
            ("On Budget - Checking", AccountKind.ON_BUDGET, "Checking"),
            ("On Budget - Credit Card", AccountKind.ON_BUDGET, "Credit Card"),
            ("Off Budget - Loan", AccountKind.OFF_BUDGET, "Loan"),
            ("External", AccountKind.EXTERNAL, None),
        ],
    )
    def test_parse(self, label, kind, subtype):
        parsed = AccountType.parse(label)
        assert parsed.kind is kind
        assert parsed.subtype == subtype
        assert parsed.label == label

    def test_credit_card_is_on_budget_not_off_budget(self):
        """A subtype never changes the kind."""
        parsed = AccountType.parse("On Budget - Credit Card")
        assert parsed.is_on_budget
        assert not parsed.is_off_budget
        assert not parsed.is_external

    @pytest.mark.parametrize("label", ["", "Checking", "On-Budget", "Budget - On"])
    def test_parse_unknown(self, label):
        with pytest.raises(ValidationError, match="Unknown account type"):
            AccountType.parse(label)

    def test_str_is_label(self):
        assert str(AccountType(AccountKind.OFF_BUDGET, "Savings")) == "Off Budget - Savings"


class TestTransaction:
    """Tests for transaction effects on accounts."""

    def test_expense_reduces_source(self):
        txn = make_transaction(amount=Decimal("20"))
        assert txn.effect_on(1) == Decimal("-20")
        assert txn.effect_on(2) == Decimal(0)
        assert not txn.is_transfer

    def test_income_increases_source(self):
        txn = make_transaction(amount=Decimal("-1000"))
        assert txn.effect_on(1) == Decimal("1000")

    def test_transfer_has_two_sides(self):
        txn = make_transaction(destination_account_id=2, amount=Decimal("100"))
        assert txn.is_transfer
        assert txn.account_ids == frozenset({1, 2})
        assert txn.effect_on(1) == Decimal("-100")
        assert txn.effect_on(2) == Decimal("100")

    def test_immutability(self):
        txn = make_transaction()
        with pytest.raises(Exception):  # dataclass frozen raises FrozenInstanceError
            txn.amount = Decimal("1")


class TestBudget:
    """Tests for budget activity windows."""

    def test_open_ended(self):
        budget = Budget(1, "Food", None, Decimal("400"), date(2024, 1, 1), None, datetime(2024, 1, 1))
        assert budget.is_active_on(date(2030, 1, 1))
        assert not budget.is_active_on(date(2023, 12, 31))
        assert budget.overlaps(date(2024, 5, 1), date(2024, 6, 1))

    def test_closed_window(self):
        budget = Budget(1, "Trip", None, Decimal("900"), date(2024, 6, 10), date(2024, 6, 20), datetime(2024, 1, 1))
        assert budget.overlaps(date(2024, 6, 1), date(2024, 7, 1))
        assert not budget.overlaps(date(2024, 7, 1), date(2024, 8, 1))
        assert not budget.overlaps(date(2024, 5, 1), date(2024, 6, 10))


class TestBalanceSeries:
    """Individual and summed modes come from the same per-account points."""

    def make_series(self):
        points = (
            SeriesPoint("2024-07", date(2024, 7, 1), date(2024, 8, 1), {1: Decimal("-100"), 2: Decimal("100")}),
            SeriesPoint("2024-08", date(2024, 8, 1), date(2024, 9, 1), {1: Decimal("-150"), 2: Decimal("100")}),
        )
        return BalanceSeries(account_ids=(1, 2), granularity=Granularity.MONTH, points=points)

    def test_individual(self):
        lines = self.make_series().individual({1: "Checking", 2: "Savings"})
        assert [line.label for line in lines] == ["Checking", "Savings"]
        assert lines[0].values == (("2024-07", Decimal("-100")), ("2024-08", Decimal("-150")))

    def test_summed(self):
        line = self.make_series().summed()
        assert line.label == "Combined"
        assert line.account_id is None
        assert line.values == (("2024-07", Decimal(0)), ("2024-08", Decimal("-50")))


def test_monthly_status_remaining_to_budget():
    status = MonthlyBudgetStatus(2024, 5, Decimal("3000"), Decimal("1200"), Decimal("2500"))
    assert status.remaining_to_budget == Decimal("500")
