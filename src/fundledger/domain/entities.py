"""Domain model entities for fundledger.

These are pure data classes representing business concepts, independent of
database schema. Account classification is parsed once at the storage
boundary into an AccountType so business logic never compares type strings.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional

from fundledger.domain.errors import ValidationError

INITIAL_BALANCE_CATEGORY = "Initial Balance"
BALANCE_ADJUSTMENT_CATEGORY = "Balance Adjustment"
TRANSFER_CATEGORIES = frozenset({"Transfer", "Transfers"})
UNCATEGORIZED = "Uncategorized"
UNGROUPED = "Ungrouped"


class AccountKind(str, Enum):
    """Top-level account classification."""

    ON_BUDGET = "On Budget"
    OFF_BUDGET = "Off Budget"
    EXTERNAL = "External"


@dataclass(frozen=True)
class AccountType:
    """Account classification with an optional free-text subtype.

    Stored as "On Budget", "On Budget - Checking", "Off Budget - Loan", etc.
    """

    kind: AccountKind
    subtype: Optional[str] = None

    SEPARATOR = " - "

    @classmethod
    def parse(cls, value: str) -> "AccountType":
        """Parse a stored account type label.

        Raises:
            ValidationError: If the label does not start with a known kind
        """
        text = (value or "").strip()
        for kind in AccountKind:
            if text == kind.value:
                return cls(kind=kind)
            prefix = kind.value + cls.SEPARATOR
            if text.startswith(prefix):
                subtype = text[len(prefix):].strip()
                return cls(kind=kind, subtype=subtype or None)
        raise ValidationError(
            f"Unknown account type '{value}'. Expected one of: "
            + ", ".join(kind.value for kind in AccountKind)
            + " (optionally followed by ' - <subtype>')"
        )

    @property
    def label(self) -> str:
        if self.subtype:
            return f"{self.kind.value}{self.SEPARATOR}{self.subtype}"
        return self.kind.value

    @property
    def is_on_budget(self) -> bool:
        return self.kind is AccountKind.ON_BUDGET

    @property
    def is_off_budget(self) -> bool:
        return self.kind is AccountKind.OFF_BUDGET

    @property
    def is_external(self) -> bool:
        return self.kind is AccountKind.EXTERNAL

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class Account:
    """Ledger account domain entity.

    ``balance`` is a cached projection of the transaction log.
    """

    id: int
    name: str
    account_type: AccountType
    currency: str
    balance: Decimal
    is_default: bool
    created_at: datetime


@dataclass(frozen=True)
class Category:
    """Category domain entity with hierarchical structure."""

    id: int
    name: str
    parent_id: Optional[int]
    created_at: datetime


@dataclass(frozen=True)
class Budget:
    """Budget with a target amount and an activity window."""

    id: int
    name: str
    description: Optional[str]
    amount: Decimal
    start_date: date
    end_date: Optional[date]
    created_at: datetime

    def is_active_on(self, on: date) -> bool:
        return self.start_date <= on and (self.end_date is None or self.end_date >= on)

    def overlaps(self, start: date, end_exclusive: date) -> bool:
        """Check whether the budget window overlaps ``[start, end_exclusive)``."""
        if self.start_date >= end_exclusive:
            return False
        return self.end_date is None or self.end_date >= start


@dataclass(frozen=True)
class Transaction:
    """Transaction domain entity.

    The amount is stated from the source account's perspective: positive
    means funds leave the source, negative means funds enter it.
    """

    id: int
    source_account_id: int
    destination_account_id: Optional[int]
    destination_name: Optional[str]
    description: str
    amount: Decimal
    category: Optional[str]
    category_id: Optional[int]
    budget_id: Optional[int]
    transaction_date: datetime
    created_at: datetime
    updated_at: datetime

    @property
    def is_transfer(self) -> bool:
        return self.destination_account_id is not None

    @property
    def account_ids(self) -> frozenset[int]:
        """IDs of every account this transaction affects."""
        if self.destination_account_id is None:
            return frozenset({self.source_account_id})
        return frozenset({self.source_account_id, self.destination_account_id})

    def effect_on(self, account_id: int) -> Decimal:
        """Signed balance effect of this transaction on an account."""
        effect = Decimal(0)
        if self.source_account_id == account_id:
            effect -= self.amount
        if self.destination_account_id == account_id:
            effect += self.amount
        return effect


class ConditionType(str, Enum):
    """Supported rule condition types."""

    DESCRIPTION_CONTAINS = "description_contains"
    DESCRIPTION_STARTS_WITH = "description_starts_with"
    DESCRIPTION_EQUALS = "description_equals"
    SOURCE_ACCOUNT_EQUALS = "source_account_equals"
    DESTINATION_ACCOUNT_EQUALS = "destination_account_equals"
    DESTINATION_NAME_CONTAINS = "destination_name_contains"
    DESTINATION_NAME_EQUALS = "destination_name_equals"
    AMOUNT_GREATER_THAN = "amount_greater_than"
    AMOUNT_LESS_THAN = "amount_less_than"
    AMOUNT_EQUALS = "amount_equals"


class ActionType(str, Enum):
    """Supported rule action types."""

    SET_CATEGORY = "set_category"
    SET_BUDGET = "set_budget"
    SET_DESCRIPTION = "set_description"
    SET_DESTINATION_NAME = "set_destination_name"


@dataclass(frozen=True)
class RuleCondition:
    """Single rule condition."""

    condition_type: ConditionType
    value: str


@dataclass(frozen=True)
class RuleAction:
    """Single rule action."""

    action_type: ActionType
    value: str


@dataclass(frozen=True)
class Rule:
    """Categorization rule with ordered conditions and actions."""

    id: int
    name: str
    description: Optional[str]
    is_active: bool
    priority: int
    conditions: tuple[RuleCondition, ...]
    actions: tuple[RuleAction, ...]
    created_at: datetime

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.priority, self.id)


class Granularity(str, Enum):
    """Bucket width for time series."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class SeriesMode(str, Enum):
    """Display mode for balance series."""

    INDIVIDUAL = "individual"
    SUMMED = "summed"


@dataclass(frozen=True)
class SeriesPoint:
    """Per-account balances snapshotted at the end of one period."""

    period: str
    start: date
    end: date
    balances: dict[int, Decimal] = field(default_factory=dict)

    @property
    def total(self) -> Decimal:
        return sum(self.balances.values(), Decimal(0))


@dataclass(frozen=True)
class SeriesLine:
    """One plotted line: a single account or the combined total."""

    label: str
    account_id: Optional[int]
    values: tuple[tuple[str, Decimal], ...]


@dataclass(frozen=True)
class BalanceSeries:
    """Per-account balance series over consecutive periods."""

    account_ids: tuple[int, ...]
    granularity: Granularity
    points: tuple[SeriesPoint, ...]

    def individual(self, names: Optional[dict[int, str]] = None) -> list[SeriesLine]:
        """One line per account."""
        names = names or {}
        return [
            SeriesLine(
                label=names.get(account_id, str(account_id)),
                account_id=account_id,
                values=tuple((point.period, point.balances[account_id]) for point in self.points),
            )
            for account_id in self.account_ids
        ]

    def summed(self, label: str = "Combined") -> SeriesLine:
        """Single line with the per-period total across all accounts."""
        return SeriesLine(
            label=label,
            account_id=None,
            values=tuple((point.period, point.total) for point in self.points),
        )


@dataclass(frozen=True)
class SpendingRow:
    """Spending for one category (or group) in one period."""

    period: str
    name: str
    amount: Decimal


@dataclass(frozen=True)
class CategoryFlow:
    """Inflow and outflow for a single category within a period."""

    inflow: Decimal = Decimal(0)
    outflow: Decimal = Decimal(0)


@dataclass(frozen=True)
class FlowPoint:
    """Inflow vs outflow for one period."""

    period: str
    start: date
    end: date
    inflow: Decimal
    outflow: Decimal
    categories: dict[str, CategoryFlow] = field(default_factory=dict)

    @property
    def net(self) -> Decimal:
        return self.inflow - self.outflow


@dataclass(frozen=True)
class MonthlyBudgetStatus:
    """Incoming and outgoing funds of on-budget accounts for one month."""

    year: int
    month: int
    incoming_funds: Decimal
    outgoing_funds: Decimal
    budgeted_amount: Decimal

    @property
    def remaining_to_budget(self) -> Decimal:
        return self.incoming_funds - self.budgeted_amount


@dataclass(frozen=True)
class BalanceCheck:
    """Comparison of a cached balance with its replayed value."""

    account_id: int
    cached: Decimal
    replayed: Decimal

    @property
    def consistent(self) -> bool:
        return self.cached == self.replayed
