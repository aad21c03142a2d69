"""Balance reconstruction by replaying the transaction log.

Balances are never derived from the cached ``Account.balance`` column; every
answer comes from summing signed transaction effects from zero. The cache is
rewritten from a full replay whenever a transaction touching the account is
created, changed or deleted.
"""

import logging
import threading
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from fundledger.domain.entities import (
    BalanceCheck,
    INITIAL_BALANCE_CATEGORY,
    Transaction,
)
from fundledger.domain.errors import InconsistencyError, NotFoundError, account_not_found
from fundledger.utils.date_parser import end_of_day, start_of_day

if TYPE_CHECKING:
    from fundledger.database.base import Database

logger = logging.getLogger(__name__)

_account_locks: dict[int, threading.Lock] = {}
_registry_lock = threading.Lock()


def account_lock(account_id: int) -> threading.Lock:
    """Process-wide lock serializing cache rewrites for one account."""
    with _registry_lock:
        lock = _account_locks.get(account_id)
        if lock is None:
            lock = _account_locks[account_id] = threading.Lock()
        return lock


def effective_transactions(
    transactions: Iterable[Transaction], account_id: int
) -> list[Transaction]:
    """Transactions touching the account that replay should apply.

    An account should have a single Initial Balance row. If several exist
    with the account as source, only the earliest by (date, id) counts.
    """
    touching = [t for t in transactions if account_id in t.account_ids]
    seeds = sorted(
        (
            t
            for t in touching
            if t.category == INITIAL_BALANCE_CATEGORY and t.source_account_id == account_id
        ),
        key=lambda t: (t.transaction_date, t.id),
    )
    if len(seeds) <= 1:
        return touching

    ignored = {t.id for t in seeds[1:]}
    logger.warning(
        "Account %s has %d Initial Balance transactions; applying %s and ignoring %s",
        account_id,
        len(seeds),
        seeds[0].id,
        sorted(ignored),
    )
    return [t for t in touching if t.id not in ignored]


def replay(transactions: Iterable[Transaction], account_id: int) -> Decimal:
    """Sum the signed effects of transactions on an account, starting at zero."""
    total = Decimal(0)
    for txn in effective_transactions(transactions, account_id):
        total += txn.effect_on(account_id)
    return total


def _inclusive_bound(instant: date | datetime | None) -> Optional[datetime]:
    if instant is None:
        return None
    if isinstance(instant, datetime):
        return instant + timedelta(microseconds=1)
    return end_of_day(instant)


def _exclusive_bound(instant: date | datetime) -> datetime:
    if isinstance(instant, datetime):
        return instant
    return start_of_day(instant)


class BalanceService:
    """Compute account balances from the transaction log."""

    def __init__(self, db: "Database"):
        """Initialize balance service.

        Args:
            db: Database instance
        """
        self.db = db

    def _require_account(self, account_id: int):
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        return account

    def balance_at(self, account_id: int, instant: date | datetime | None = None) -> Decimal:
        """Balance of an account through an instant.

        Args:
            account_id: Account ID
            instant: A datetime includes rows dated at or before it. A date
                includes the whole day. None replays the whole log.

        Returns:
            Signed balance

        Raises:
            NotFoundError: If account doesn't exist
        """
        self._require_account(account_id)
        rows = self.db.list_account_transactions([account_id], end=_inclusive_bound(instant))
        return replay(rows, account_id)

    def balance_before(self, account_id: int, instant: date | datetime) -> Decimal:
        """Balance from rows dated strictly before an instant (or day).

        Raises:
            NotFoundError: If account doesn't exist
        """
        self._require_account(account_id)
        rows = self.db.list_account_transactions([account_id], end=_exclusive_bound(instant))
        return replay(rows, account_id)

    def current_balance(self, account_id: int) -> Decimal:
        """Authoritative current balance.

        The cached value is compared with a full replay. On divergence the
        mismatch is logged and the cache is overwritten; the caller always
        gets the replayed value.

        Raises:
            NotFoundError: If account doesn't exist
        """
        account = self._require_account(account_id)
        replayed = self.balance_at(account_id)
        if account.balance != replayed:
            logger.warning("%s; correcting cache", InconsistencyError(account_id, account.balance, replayed))
            self._rewrite(account_id)
        return replayed

    def _rewrite(self, account_id: int) -> Decimal:
        with account_lock(account_id):
            rows = self.db.list_account_transactions([account_id])
            balance = replay(rows, account_id)
            self.db.set_account_balance(account_id, balance)
            return balance

    def recompute(self, account_ids: Iterable[Optional[int]]) -> dict[int, Decimal]:
        """Rewrite the cached balance of each account from a full replay.

        Accounts are processed one at a time in ID order, each under its own
        lock. Missing IDs are skipped.

        Returns:
            Mapping of account ID to the balance written
        """
        results: dict[int, Decimal] = {}
        for account_id in sorted({a for a in account_ids if a is not None}):
            if self.db.get_account(account_id) is None:
                logger.warning("Skipping recompute of missing account %s", account_id)
                continue
            results[account_id] = self._rewrite(account_id)
            logger.info("Recomputed balance of account %s: %s", account_id, results[account_id])
        return results

    def recompute_all(self) -> dict[int, Decimal]:
        """Rewrite every cached balance from a full replay."""
        return self.recompute(acc.id for acc in self.db.list_accounts())

    def verify(self, account_ids: Sequence[int]) -> list[BalanceCheck]:
        """Compare cached balances with replay without writing anything."""
        checks = []
        for account_id in account_ids:
            account = self._require_account(account_id)
            rows = self.db.list_account_transactions([account_id])
            checks.append(
                BalanceCheck(account_id=account_id, cached=account.balance, replayed=replay(rows, account_id))
            )
        return checks

    def verify_all(self) -> list[BalanceCheck]:
        """Compare every cached balance with its replay."""
        return self.verify([acc.id for acc in self.db.list_accounts()])
