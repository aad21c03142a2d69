"""Database factory functions for creating database instances."""

from typing import Optional

from fundledger.config import get_settings
from fundledger.database.sqlalchemy_db import SQLAlchemyDatabase


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create a SQLite database instance.

    Args:
        database_path: Path to SQLite database file. If None, uses the configured
            path (FUNDLEDGER_DB_PATH, default ~/.fundledger/fundledger.db)

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    if database_path is None:
        database_path = get_settings().database_path

    database_url = f"sqlite:///{database_path}"
    return SQLAlchemyDatabase(database_url)
