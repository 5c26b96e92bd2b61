"""
Repository pattern for data access.

Owns the SQLite handle behind the blood ledger and exposes the append-only
operations the ledger is built on.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from bloodkeeper.core.errors import NotInitialized, StorageFailure

from .db import DEFAULT_BUSY_TIMEOUT, DEFAULT_DB_PATH, get_connection
from .models import HistoryEntry, LevelRecord

logger = logging.getLogger(__name__)

# Python ints that do not fit SQLite's 64-bit INTEGER raise OverflowError
# on bind, which is not a sqlite3.Error.
DRIVER_ERRORS = (sqlite3.Error, OverflowError)


class LedgerTransaction:
    """Reads and appends that share one open write transaction.

    Obtained from ``LedgerRepository.transaction()``; everything done
    through it commits together or not at all.
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def create_schema(self) -> None:
        """Create both ledger tables if they do not exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS blood_level (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                level INTEGER NOT NULL,
                last_reset TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS blood_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                successes INTEGER NOT NULL,
                resulting_level INTEGER NOT NULL,
                source_text TEXT,
                timestamp TEXT NOT NULL
            )
        """)

    def latest_level(self) -> Optional[LevelRecord]:
        """Return the most recently appended level record, or None."""
        row = self._conn.execute(
            "SELECT id, level, last_reset, created_at FROM blood_level ORDER BY id DESC LIMIT 1"
        ).fetchone()
        if row is None:
            return None
        return LevelRecord(
            id=row["id"],
            level=row["level"],
            last_reset=datetime.fromisoformat(row["last_reset"]),
            created_at=datetime.fromisoformat(row["created_at"])
        )

    def append_level(self, level: int, last_reset: datetime, created_at: datetime) -> LevelRecord:
        """Append a new level record, which becomes the current level."""
        cursor = self._conn.execute(
            "INSERT INTO blood_level (level, last_reset, created_at) VALUES (?, ?, ?)",
            (level, last_reset.isoformat(), created_at.isoformat())
        )
        return LevelRecord(id=cursor.lastrowid, level=level, last_reset=last_reset, created_at=created_at)

    def append_history(
        self,
        successes: int,
        resulting_level: int,
        source_text: Optional[str],
        timestamp: datetime
    ) -> int:
        """Append a consumption entry and return its id."""
        cursor = self._conn.execute(
            """
            INSERT INTO blood_history (successes, resulting_level, source_text, timestamp)
            VALUES (?, ?, ?, ?)
            """,
            (successes, resulting_level, source_text, timestamp.isoformat())
        )
        return cursor.lastrowid


class LedgerRepository:
    """Repository for the blood level and consumption history tables.

    Lifecycle is explicit: construct, ``initialize()``, serve operations,
    ``close()``. Both tables are append-only; no UPDATE or DELETE is ever
    issued against them.

    Every write runs in a ``BEGIN IMMEDIATE`` transaction, which takes the
    database write lock up front. Writers in this process are also
    serialized by an internal lock, so a read-then-append inside one
    transaction can never interleave with another writer, whether it runs
    in this process or another one on the same file.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH, timeout: float = DEFAULT_BUSY_TIMEOUT):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
            timeout: Seconds to wait for another writer before failing
        """
        self.db_path = db_path
        self.timeout = timeout
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    def __enter__(self) -> "LedgerRepository":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_initialized(self) -> bool:
        return self._conn is not None

    def initialize(self, cap: int, now: datetime) -> bool:
        """Create the ledger tables and seed the first level record.

        The seed record (``level = cap``, ``last_reset = now``) is inserted
        only when the level table is empty, so calling this on an existing
        database leaves its state untouched.

        Args:
            cap: Level to seed a fresh ledger with
            now: Timestamp used as the initial reset instant

        Returns:
            True if a seed record was inserted

        Raises:
            StorageFailure: If the database cannot be opened or written
        """
        with self._lock:
            if self._conn is None:
                try:
                    self._conn = get_connection(self.db_path, self.timeout)
                except sqlite3.Error as e:
                    raise StorageFailure(f"Failed to open ledger at {self.db_path}: {e}") from e

            with self.transaction() as tx:
                tx.create_schema()
                seeded = tx.latest_level() is None
                if seeded:
                    tx.append_level(cap, now, now)

        if seeded:
            logger.info("Initialized blood level to %d", cap)
        logger.info("Connected to ledger database %s", self.db_path)
        return seeded

    def close(self) -> None:
        """Close the underlying connection. Safe to call more than once."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    @contextmanager
    def transaction(self) -> Iterator[LedgerTransaction]:
        """Open a write transaction holding the database write lock.

        Commits when the block exits normally and rolls back on any error.
        Driver errors are re-raised as StorageFailure.

        Raises:
            NotInitialized: If the repository has not been initialized
            StorageFailure: If the lock cannot be taken or a statement fails
        """
        with self._lock:
            conn = self._require_connection()
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StorageFailure(f"Could not lock ledger for writing: {e}") from e
            try:
                yield LedgerTransaction(conn)
                conn.execute("COMMIT")
            except DRIVER_ERRORS as e:
                self._rollback()
                raise StorageFailure(f"Ledger write failed: {e}") from e
            except BaseException:
                self._rollback()
                raise

    def append_level(self, level: int, last_reset: datetime, created_at: datetime) -> LevelRecord:
        """Append a new level record, which becomes the current level.

        Args:
            level: New level value
            last_reset: Reset instant carried by this record
            created_at: Creation timestamp

        Returns:
            The stored record including its id
        """
        with self.transaction() as tx:
            return tx.append_level(level, last_reset, created_at)

    def latest_level(self) -> Optional[LevelRecord]:
        """Return the most recently appended level record, or None."""
        with self._lock:
            conn = self._require_connection()
            try:
                return LedgerTransaction(conn).latest_level()
            except DRIVER_ERRORS as e:
                raise StorageFailure(f"Ledger read failed: {e}") from e

    def append_history(
        self,
        successes: int,
        resulting_level: int,
        source_text: Optional[str],
        timestamp: datetime
    ) -> int:
        """Append a consumption entry to the history table.

        Returns:
            Id of the new history entry
        """
        with self.transaction() as tx:
            return tx.append_history(successes, resulting_level, source_text, timestamp)

    def fetch_history(self, limit: int = 10) -> List[HistoryEntry]:
        """Fetch consumption history, newest first.

        Args:
            limit: Maximum number of entries to return

        Returns:
            List of history entries ordered by id (newest first)
        """
        rows = self._read_all(
            """
            SELECT id, successes, resulting_level, source_text, timestamp
            FROM blood_history ORDER BY id DESC LIMIT ?
            """,
            (max(0, limit),)
        )
        return [
            HistoryEntry(
                id=row["id"],
                successes=row["successes"],
                resulting_level=row["resulting_level"],
                source_text=row["source_text"],
                timestamp=datetime.fromisoformat(row["timestamp"])
            )
            for row in rows
        ]

    def count_history(self) -> int:
        return self._read_all("SELECT COUNT(*) AS total FROM blood_history")[0]["total"]

    def _require_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise NotInitialized()
        return self._conn

    def _read_all(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self._lock:
            conn = self._require_connection()
            try:
                return conn.execute(query, params).fetchall()
            except DRIVER_ERRORS as e:
                raise StorageFailure(f"Ledger read failed: {e}") from e

    def _rollback(self) -> None:
        if self._conn is not None and self._conn.in_transaction:
            try:
                self._conn.execute("ROLLBACK")
            except sqlite3.Error:
                logger.exception("Rollback failed on %s", self.db_path)
