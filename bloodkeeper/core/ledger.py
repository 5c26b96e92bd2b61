"""
Blood ledger state machine.

Owns the city blood level: consumption, admin overrides, monthly resets
and the consumption history.

Roll Processing Order:
1. Source check - only the configured roll bot in the configured channel
2. Monthly reset - applied before the roll is counted
3. Parse - maximum success count over body and embeds
4. Consume - decrement and record history in one commit
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from bloodkeeper.storage.models import HistoryEntry, LevelRecord
from bloodkeeper.storage.repository import LedgerRepository, LedgerTransaction

from .errors import NotInitialized
from .events import RollEvent, RollOutcome
from .parser import extract_successes

logger = logging.getLogger(__name__)

DEFAULT_CAP = 200


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def months_between(earlier: datetime, later: datetime) -> int:
    """Whole calendar months from earlier to later, ignoring the day.

    Naive datetimes are taken to be UTC; aware ones are converted to UTC.
    """
    earlier, later = _as_utc(earlier), _as_utc(later)
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class BloodLedger:
    """Authoritative state machine for the city blood level.

    Every change appends a new level record; the latest record is the
    current level. Each read-then-append runs inside one repository
    transaction, so concurrent writers never compute from the same stale
    level.

    Store errors propagate unchanged as StorageFailure. Nothing is retried.
    """

    def __init__(
        self,
        repository: LedgerRepository,
        cap: int = DEFAULT_CAP,
        roll_bot_id: Optional[str] = None,
        channel_id: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        """Initialize the ledger.

        Args:
            repository: Store handle owned by the caller
            cap: Maximum level and monthly reset target
            roll_bot_id: Author id of the dice bot, or None to accept any
            channel_id: Channel to watch, or None to accept any
            clock: Source of the current time
        """
        if cap <= 0:
            raise ValueError("cap must be > 0")
        self.repository = repository
        self.cap = cap
        self.roll_bot_id = roll_bot_id
        self.channel_id = channel_id
        self.clock = clock

    def initialize(self) -> bool:
        """Create the store and seed it at ``cap`` if it is empty."""
        return self.repository.initialize(self.cap, self.clock())

    def current_record(self) -> LevelRecord:
        """Return the latest level record.

        Raises:
            NotInitialized: If the store has not been initialized and seeded
        """
        return _require_record(self.repository.latest_level())

    def get_current_level(self) -> int:
        return self.current_record().level

    def get_last_reset(self) -> datetime:
        return self.current_record().last_reset

    def set_level(self, amount: int) -> int:
        """Store ``amount`` as the new level.

        Range checking is the caller's job. The reset timestamp is carried
        forward; only a reset moves it.

        Returns:
            The stored amount
        """
        with self.repository.transaction() as tx:
            previous = _require_record(tx.latest_level())
            tx.append_level(amount, previous.last_reset, self.clock())
        logger.info("Blood level set to %d", amount)
        return amount

    def decrease(self, amount: int) -> int:
        """Subtract ``amount`` from the level, clamping at zero.

        Returns:
            The new level
        """
        with self.repository.transaction() as tx:
            return self._decrease_in(tx, amount)

    def consume(self, successes: int, source_text: Optional[str] = None) -> int:
        """Decrease the level and record the consumption as one commit.

        Either both the new level record and the history entry become
        visible, or neither does.

        Returns:
            The new level
        """
        with self.repository.transaction() as tx:
            new_level = self._decrease_in(tx, successes)
            tx.append_history(successes, new_level, source_text, self.clock())
        return new_level

    def check_and_reset_monthly(self) -> bool:
        """Restore the level to ``cap`` if a calendar month has turned.

        A month has turned when the current month differs from the month of
        the last reset, however few days apart they are. The reset is a
        single appended record, so a second call in the same month sees the
        new reset instant and returns False.

        Returns:
            True if a reset was applied
        """
        with self.repository.transaction() as tx:
            previous = _require_record(tx.latest_level())
            now = self.clock()
            if months_between(previous.last_reset, now) < 1:
                return False
            tx.append_level(self.cap, now, now)
        logger.info("Monthly blood reset completed, level restored to %d", self.cap)
        return True

    def record_history(self, successes: int, resulting_level: int, source_text: Optional[str] = None) -> int:
        """Append a consumption entry and return its id."""
        return self.repository.append_history(successes, resulting_level, source_text, self.clock())

    def get_history(self, limit: int = 10) -> List[HistoryEntry]:
        """Return up to ``limit`` consumption entries, newest first."""
        return self.repository.fetch_history(limit)

    def accepts(self, author_id: str, channel_id: str) -> bool:
        """True if a message from this author in this channel is a roll."""
        if self.roll_bot_id is not None and str(author_id) != str(self.roll_bot_id):
            return False
        if self.channel_id is not None and str(channel_id) != str(self.channel_id):
            return False
        return True

    def process_roll_event(self, event: RollEvent) -> Optional[RollOutcome]:
        """Consume blood for a dice-bot roll message.

        Success counts above ``cap`` are clamped to ``cap``; no roll can
        consume more than a full pool.

        Args:
            event: Inbound message

        Returns:
            RollOutcome if successes were found and consumed, otherwise None.
            A zero-success roll returns None even if a reset just happened.
        """
        if not self.accepts(event.author_id, event.channel_id):
            return None

        was_reset = self.check_and_reset_monthly()

        successes = min(extract_successes(event.text, event.embeds), self.cap)
        if successes <= 0:
            return None

        new_level = self.consume(successes, event.text)
        logger.info("Blood consumed: %d successes, new level: %d", successes, new_level)
        return RollOutcome(successes=successes, new_level=new_level, was_reset=was_reset)

    def _decrease_in(self, tx: LedgerTransaction, amount: int) -> int:
        previous = _require_record(tx.latest_level())
        new_level = max(0, previous.level - amount)
        tx.append_level(new_level, previous.last_reset, self.clock())
        return new_level


def _require_record(record: Optional[LevelRecord]) -> LevelRecord:
    if record is None:
        raise NotInitialized("Ledger has no level record. Call initialize() first.")
    return record
