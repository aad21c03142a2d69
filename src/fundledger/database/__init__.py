"""Database layer for fundledger."""

from fundledger.database.base import Database
from fundledger.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
