"""
Database connection management.

Provides the SQLite connection backing the blood ledger.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "./data/bloodkeeper.db"
DEFAULT_BUSY_TIMEOUT = 5.0


def get_connection(db_path: str = DEFAULT_DB_PATH, timeout: float = DEFAULT_BUSY_TIMEOUT) -> sqlite3.Connection:
    """Create and return a SQLite connection for the ledger.

    The parent directory is created if missing. The connection is in
    autocommit mode: multi-statement writes must open their own
    transaction. It may be used from worker threads; callers are
    responsible for serialising access.

    Args:
        db_path: Path to SQLite database file
        timeout: Seconds to wait for another writer's lock before failing

    Returns:
        SQLite connection with rows accessible by column name
    """
    path = Path(db_path)
    if str(path) != ":memory:":
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=timeout, check_same_thread=False, isolation_level=None)
    conn.row_factory = sqlite3.Row
    return conn
