"""
Database connection management.

Provides SQLite connection for data persistence.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "ai_message_gateway.db"


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Create and return a SQLite database connection.

    A fresh connection is opened for every operation so that callers in
    different threads never share one.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection with a busy timeout for concurrent writers
    """
    path = Path(db_path)
    return sqlite3.connect(str(path), timeout=10.0)
