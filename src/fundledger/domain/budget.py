"""Budget domain service and monthly budget status."""

import logging
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from fundledger.domain.entities import (
    Budget,
    INITIAL_BALANCE_CATEGORY,
    MonthlyBudgetStatus,
    Transaction,
)
from fundledger.domain.errors import NotFoundError, ValidationError, budget_not_found
from fundledger.utils.date_parser import start_of_day
from fundledger.utils.periods import month_bounds

if TYPE_CHECKING:
    from fundledger.database.base import Database

logger = logging.getLogger(__name__)


class BudgetService:
    """Service for budgets and on-budget monthly totals."""

    def __init__(self, db: "Database"):
        """Initialize budget service.

        Args:
            db: Database instance
        """
        self.db = db

    def _on_budget_account_ids(self) -> list[int]:
        return [acc.id for acc in self.db.list_accounts() if acc.account_type.is_on_budget]

    @staticmethod
    def _window(year: Optional[int], month: Optional[int]) -> tuple[Optional[date], Optional[date]]:
        if year is None and month is None:
            return None, None
        if year is None or month is None:
            raise ValidationError("Year and month must be given together")
        return month_bounds(year, month)

    def monthly_status(self, year: int, month: int) -> MonthlyBudgetStatus:
        """Incoming and outgoing funds of all On Budget accounts for a month.

        Every subtype of On Budget counts. Incoming funds sum ``|amount|``
        over rows with a negative amount, whatever their category. Outgoing
        funds sum positive amounts except "Initial Balance" rows.

        Args:
            year: Calendar year
            month: Month number (1-12)

        Raises:
            ValidationError: If month is outside 1..12
        """
        first, following = month_bounds(year, month)
        rows = self.db.list_source_transactions(
            start_of_day(first), start_of_day(following), self._on_budget_account_ids()
        )

        incoming = Decimal(0)
        outgoing = Decimal(0)
        for txn in rows:
            if txn.amount < 0:
                incoming += -txn.amount
            elif txn.category != INITIAL_BALANCE_CATEGORY:
                outgoing += txn.amount

        budgeted = sum(
            (b.amount for b in self.db.list_budgets() if b.overlaps(first, following)),
            Decimal(0),
        )
        return MonthlyBudgetStatus(
            year=year,
            month=month,
            incoming_funds=incoming,
            outgoing_funds=outgoing,
            budgeted_amount=budgeted,
        )

    # Budget CRUD
    @staticmethod
    def _validate(
        name: Optional[str],
        amount: Optional[Decimal],
        start_date: Optional[date],
        end_date: Optional[date],
    ) -> None:
        if name is not None and not name.strip():
            raise ValidationError("Budget name must not be empty")
        if amount is not None:
            amount = Decimal(amount)
            if not amount.is_finite() or amount < 0:
                raise ValidationError("Budget amount must be a non-negative number")
        if start_date is not None and end_date is not None and end_date < start_date:
            raise ValidationError(f"Budget end date {end_date} is before start date {start_date}")

    def create_budget(
        self,
        name: str,
        amount: Decimal,
        start_date: date,
        end_date: Optional[date] = None,
        description: Optional[str] = None,
    ) -> int:
        """Create a budget.

        Args:
            name: Budget name
            amount: Target amount
            start_date: First active day
            end_date: Last active day, or None for open-ended
            description: Optional free text

        Returns:
            Budget ID

        Raises:
            ValidationError: If the name is empty, the amount is negative or
                the window is inverted
        """
        self._validate(name, amount, start_date, end_date)
        return self.db.create_budget(
            name=name.strip(),
            amount=Decimal(amount),
            start_date=start_date,
            end_date=end_date,
            description=description,
        )

    def get_budget(self, budget_id: int) -> Optional[Budget]:
        return self.db.get_budget(budget_id)

    def require_budget(self, budget_id: int) -> Budget:
        budget = self.db.get_budget(budget_id)
        if budget is None:
            raise NotFoundError(budget_not_found(budget_id))
        return budget

    def list_budgets(self) -> list[Budget]:
        return self.db.list_budgets()

    def active_budgets(self, on: Optional[date] = None) -> list[Budget]:
        """Budgets whose window contains the given day (default today)."""
        on = on or date.today()
        return [b for b in self.db.list_budgets() if b.is_active_on(on)]

    def update_budget(
        self,
        budget_id: int,
        name: Optional[str] = None,
        amount: Optional[Decimal] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        description: Optional[str] = None,
        clear_end_date: bool = False,
    ) -> None:
        """Update budget fields. Fields left as None are not changed.

        Raises:
            NotFoundError: If budget doesn't exist
            ValidationError: If the resulting budget would be invalid
        """
        budget = self.require_budget(budget_id)
        new_start = start_date or budget.start_date
        new_end = None if clear_end_date else (end_date or budget.end_date)
        self._validate(name, amount, new_start, new_end)

        changes = {}
        if name is not None:
            changes["name"] = name.strip()
        if amount is not None:
            changes["amount"] = Decimal(amount)
        if start_date is not None:
            changes["start_date"] = start_date
        if clear_end_date or end_date is not None:
            changes["end_date"] = new_end
        if description is not None:
            changes["description"] = description
        if changes:
            self.db.update_budget(budget_id, **changes)

    def delete_budget(self, budget_id: int) -> None:
        """Delete a budget. Its transactions become unbudgeted.

        Raises:
            NotFoundError: If budget doesn't exist
        """
        self.require_budget(budget_id)
        self.db.delete_budget(budget_id)
        logger.info("Deleted budget %s", budget_id)

    # Spending
    def budget_transactions(
        self, budget_id: int, year: Optional[int] = None, month: Optional[int] = None
    ) -> list[Transaction]:
        """Transactions assigned to a budget, newest first, optionally for one month.

        Raises:
            NotFoundError: If budget doesn't exist
        """
        self.require_budget(budget_id)
        first, following = self._window(year, month)
        return self.db.list_transactions(
            budget_id=budget_id,
            start=start_of_day(first) if first else None,
            end=start_of_day(following) if following else None,
        )

    def budget_spent(
        self, budget_id: int, year: Optional[int] = None, month: Optional[int] = None
    ) -> Decimal:
        """Sum of positive amounts assigned to a budget, all-time or for one month."""
        return sum(
            (t.amount for t in self.budget_transactions(budget_id, year, month) if t.amount > 0),
            Decimal(0),
        )

    def budget_remaining(self, budget_id: int) -> Decimal:
        """Target amount minus all-time spending."""
        budget = self.require_budget(budget_id)
        return budget.amount - self.budget_spent(budget_id)

    def unbudgeted_spent(self, year: Optional[int] = None, month: Optional[int] = None) -> Decimal:
        """Positive On Budget spending with no budget, excluding Initial Balance rows."""
        first, following = self._window(year, month)
        on_budget = set(self._on_budget_account_ids())
        rows = self.db.list_transactions(
            unbudgeted_only=True,
            start=start_of_day(first) if first else None,
            end=start_of_day(following) if following else None,
        )
        return sum(
            (
                t.amount
                for t in rows
                if t.amount > 0
                and t.source_account_id in on_budget
                and t.category != INITIAL_BALANCE_CATEGORY
            ),
            Decimal(0),
        )
