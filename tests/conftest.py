"""
Shared fixtures for the ledger tests.
"""

import os
import tempfile
from datetime import datetime, timezone

import pytest

from bloodkeeper.core.ledger import BloodLedger
from bloodkeeper.storage.repository import LedgerRepository

ROLL_BOT_ID = "642775025770037279"
BLOOD_CHANNEL_ID = "1339973204201963633"


class FixedClock:
    """Clock that returns a settable instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def db_path():
    with tempfile.TemporaryDirectory() as temp_dir:
        yield os.path.join(temp_dir, "test.db")


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 3, 5, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def ledger(db_path, clock):
    """Initialized ledger seeded at 200 on 5 March 2025."""
    repository = LedgerRepository(db_path)
    ledger = BloodLedger(
        repository,
        cap=200,
        roll_bot_id=ROLL_BOT_ID,
        channel_id=BLOOD_CHANNEL_ID,
        clock=clock
    )
    ledger.initialize()
    yield ledger
    repository.close()
