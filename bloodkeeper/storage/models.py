"""
Data models for storage layer.

Defines the two append-only record types of the blood ledger.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class LevelRecord:
    """Snapshot of the city blood level.

    A new record is appended whenever the level changes. The record with
    the highest id is the current level; older rows are never modified.
    """
    id: int
    level: int
    last_reset: datetime
    created_at: datetime


@dataclass(frozen=True)
class HistoryEntry:
    """One consumption of blood caused by a roll."""
    id: int
    successes: int
    resulting_level: int
    source_text: Optional[str]
    timestamp: datetime
