"""Time-series aggregation over the transaction log.

All series share the same period walk: calendar-aligned day, week or month
buckets from the start date through the end date inclusive, where a
transaction belongs to the bucket with ``period_start <= transaction_date <
period_end``.
"""

import logging
from bisect import bisect_right
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Sequence

from fundledger.config import get_settings
from fundledger.domain.balance import BalanceService, effective_transactions
from fundledger.domain.category import CategoryService
from fundledger.domain.entities import (
    BalanceSeries,
    CategoryFlow,
    FlowPoint,
    Granularity,
    INITIAL_BALANCE_CATEGORY,
    SeriesLine,
    SeriesMode,
    SeriesPoint,
    SpendingRow,
    TRANSFER_CATEGORIES,
    UNCATEGORIZED,
    UNGROUPED,
)
from fundledger.domain.errors import NotFoundError, ValidationError, account_not_found
from fundledger.utils.date_parser import start_of_day
from fundledger.utils.periods import Period, iter_periods, parse_granularity

if TYPE_CHECKING:
    from fundledger.database.base import Database

logger = logging.getLogger(__name__)


def _parse_mode(value: str | SeriesMode) -> SeriesMode:
    if isinstance(value, SeriesMode):
        return value
    try:
        return SeriesMode(value.strip().lower())
    except ValueError:
        raise ValidationError(
            f"Unknown series mode '{value}'. Expected one of: "
            + ", ".join(m.value for m in SeriesMode)
        )


class _PeriodIndex:
    """Locate the period a transaction date falls into."""

    def __init__(self, periods: list[Period]):
        self.periods = periods
        self.starts = [start_of_day(p.start) for p in periods]
        self.lower = self.starts[0]
        self.upper = start_of_day(periods[-1].end)

    def find(self, when: datetime) -> Optional[int]:
        if when < self.lower or when >= self.upper:
            return None
        return bisect_right(self.starts, when) - 1


class TimeSeriesService:
    """Build balance, spending and inflow/outflow series."""

    def __init__(self, db: "Database", week_start: Optional[int] = None):
        """Initialize time-series service.

        Args:
            db: Database instance
            week_start: Weekday index that anchors week buckets (0 = Monday).
                Defaults to the configured FUNDLEDGER_WEEK_START.
        """
        self.db = db
        self.balances = BalanceService(db)
        self.week_start = get_settings().week_start if week_start is None else week_start

    def _periods(self, start_date: date, end_date: date, granularity: str | Granularity) -> list[Period]:
        return list(iter_periods(start_date, end_date, parse_granularity(granularity), self.week_start))

    def _select_accounts(self, account_ids: Optional[Sequence[int]]) -> list[int]:
        """Validate the selection; an empty selection means every On Budget account."""
        if not account_ids:
            return [acc.id for acc in self.db.list_accounts() if acc.account_type.is_on_budget]
        selected = []
        for account_id in account_ids:
            if self.db.get_account(account_id) is None:
                raise NotFoundError(account_not_found(account_id))
            if account_id not in selected:
                selected.append(account_id)
        return selected

    def balance_series(
        self,
        account_ids: Sequence[int],
        start_date: date,
        end_date: date,
        granularity: str | Granularity = Granularity.MONTH,
    ) -> BalanceSeries:
        """Per-account balances snapshotted at the end of each period.

        Each account is seeded with its replayed balance before start_date,
        then every period applies only its own transactions.

        Args:
            account_ids: Accounts to include (empty means all On Budget accounts)
            start_date: First day covered
            end_date: Last day covered
            granularity: "day", "week" or "month"

        Raises:
            ValidationError: If start_date is after end_date or granularity is unknown
            NotFoundError: If an account doesn't exist
        """
        periods = self._periods(start_date, end_date, granularity)
        ids = self._select_accounts(account_ids)
        index = _PeriodIndex(periods)

        rows = self.db.list_account_transactions(ids, end=index.upper)
        running = {acc: self.balances.balance_before(acc, start_date) for acc in ids}
        pending = {
            acc: [t for t in effective_transactions(rows, acc) if t.transaction_date >= index.lower]
            for acc in ids
        }
        cursor = dict.fromkeys(ids, 0)

        points = []
        for period in periods:
            bound = start_of_day(period.end)
            for acc in ids:
                txns = pending[acc]
                i = cursor[acc]
                while i < len(txns) and txns[i].transaction_date < bound:
                    running[acc] += txns[i].effect_on(acc)
                    i += 1
                cursor[acc] = i
            points.append(
                SeriesPoint(period=period.key, start=period.start, end=period.end, balances=dict(running))
            )

        return BalanceSeries(
            account_ids=tuple(ids),
            granularity=parse_granularity(granularity),
            points=tuple(points),
        )

    def balance_lines(
        self,
        account_ids: Sequence[int],
        start_date: date,
        end_date: date,
        granularity: str | Granularity = Granularity.MONTH,
        mode: str | SeriesMode = SeriesMode.INDIVIDUAL,
    ) -> list[SeriesLine]:
        """Balance series as plot lines: one per account, or one combined line."""
        mode = _parse_mode(mode)
        series = self.balance_series(account_ids, start_date, end_date, granularity)
        if mode is SeriesMode.SUMMED:
            return [series.summed()]
        names = {acc.id: acc.name for acc in self.db.list_accounts()}
        return series.individual(names)

    def spending_series(
        self,
        account_ids: Sequence[int],
        start_date: date,
        end_date: date,
        granularity: str | Granularity = Granularity.MONTH,
        group_by_category_group: bool = False,
    ) -> list[SpendingRow]:
        """Spending per period and category (or category group).

        Spending is every positive amount whose source is a selected
        account, except Initial Balance and Transfer(s) categories.

        Returns:
            Rows ordered by period, then name
        """
        periods = self._periods(start_date, end_date, granularity)
        ids = self._select_accounts(account_ids)
        index = _PeriodIndex(periods)
        groups = CategoryService(self.db).group_lookup() if group_by_category_group else {}

        totals: dict[tuple[int, str], Decimal] = defaultdict(Decimal)
        for txn in self.db.list_source_transactions(index.lower, index.upper, ids):
            if txn.amount <= 0:
                continue
            if txn.category == INITIAL_BALANCE_CATEGORY or txn.category in TRANSFER_CATEGORIES:
                continue
            position = index.find(txn.transaction_date)
            if position is None:
                continue
            if group_by_category_group:
                name = groups.get(txn.category, txn.category) if txn.category else UNGROUPED
            else:
                name = txn.category or UNCATEGORIZED
            totals[(position, name)] += txn.amount

        return [
            SpendingRow(period=periods[position].key, name=name, amount=amount)
            for (position, name), amount in sorted(totals.items())
        ]

    def inflow_outflow_series(
        self,
        account_ids: Sequence[int],
        start_date: date,
        end_date: date,
        granularity: str | Granularity = Granularity.MONTH,
    ) -> list[FlowPoint]:
        """Inflow and outflow of the selected accounts per period.

        Each transaction is split into its effect on every selected account:
        positive effects are inflow, negative effects are outflow. Transfers
        between two selected accounts are internal and skipped. Initial
        Balance rows are excluded.
        """
        periods = self._periods(start_date, end_date, granularity)
        ids = self._select_accounts(account_ids)
        selected = set(ids)
        index = _PeriodIndex(periods)

        inflow = [Decimal(0)] * len(periods)
        outflow = [Decimal(0)] * len(periods)
        by_category: list[dict[str, list[Decimal]]] = [
            defaultdict(lambda: [Decimal(0), Decimal(0)]) for _ in periods
        ]

        for txn in self.db.list_account_transactions(ids, end=index.upper):
            if txn.category == INITIAL_BALANCE_CATEGORY:
                continue
            if txn.account_ids <= selected and txn.is_transfer:
                continue
            position = index.find(txn.transaction_date)
            if position is None:
                continue
            category = txn.category or UNCATEGORIZED
            for acc in txn.account_ids & selected:
                effect = txn.effect_on(acc)
                if effect > 0:
                    inflow[position] += effect
                    by_category[position][category][0] += effect
                elif effect < 0:
                    outflow[position] += -effect
                    by_category[position][category][1] += -effect

        return [
            FlowPoint(
                period=period.key,
                start=period.start,
                end=period.end,
                inflow=inflow[i],
                outflow=outflow[i],
                categories={
                    name: CategoryFlow(inflow=values[0], outflow=values[1])
                    for name, values in sorted(by_category[i].items())
                },
            )
            for i, period in enumerate(periods)
        ]
