"""Domain layer for fundledger."""

from fundledger.domain.account import AccountService
from fundledger.domain.balance import BalanceService
from fundledger.domain.budget import BudgetService
from fundledger.domain.category import CategoryService
from fundledger.domain.rules import RuleService
from fundledger.domain.timeseries import TimeSeriesService
from fundledger.domain.transaction import TransactionService

__all__ = [
    "AccountService",
    "BalanceService",
    "BudgetService",
    "CategoryService",
    "RuleService",
    "TimeSeriesService",
    "TransactionService",
]
