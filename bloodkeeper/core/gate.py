"""
Message gate for roll messages.

Passes only dice-bot messages from the blood channel to the ledger.
"""

import logging
from typing import Optional

from .errors import BloodkeeperError
from .events import RollEvent, RollOutcome
from .ledger import BloodLedger

logger = logging.getLogger(__name__)


class MessageGate:
    """Filter in front of the ledger.

    Messages from any other author or channel are dropped without effect.
    Ledger errors are logged and the event dropped so a failing store never
    takes down the host process.
    """

    def __init__(self, ledger: BloodLedger, roll_bot_id: str, channel_id: str):
        self.ledger = ledger
        self.roll_bot_id = str(roll_bot_id)
        self.channel_id = str(channel_id)

    def accepts(self, author_id: str, channel_id: str) -> bool:
        return str(author_id) == self.roll_bot_id and str(channel_id) == self.channel_id

    def handle(self, event: RollEvent) -> Optional[RollOutcome]:
        """Feed a qualifying event to the ledger.

        Returns:
            The ledger outcome, or None if the event was dropped or consumed
            nothing
        """
        if not self.accepts(event.author_id, event.channel_id):
            logger.debug("Ignoring message from %s in %s", event.author_id, event.channel_id)
            return None

        logger.info("Processing roll message in channel %s", event.channel_id)
        try:
            return self.ledger.process_roll_event(event)
        except BloodkeeperError:
            logger.exception("Failed to process roll message, event dropped")
            return None
