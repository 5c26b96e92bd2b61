"""
Command responder.

Request/response operations on the ledger exposed to chat users.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List

from bloodkeeper.storage.models import HistoryEntry

from .errors import AuthorizationFailure, ValidationFailure
from .ledger import BloodLedger


class LevelStatus(Enum):
    """Health band of the current level."""
    HEALTHY = "healthy"
    MODERATE = "moderate"
    CRITICAL = "critical"


@dataclass(frozen=True)
class LevelReport:
    """Current level with derived display values."""
    level: int
    cap: int
    percentage: int
    status: LevelStatus


def level_status(level: int, cap: int) -> LevelStatus:
    """Healthy above half the cap, moderate above a quarter, else critical."""
    if level > cap / 2:
        return LevelStatus.HEALTHY
    if level > cap / 4:
        return LevelStatus.MODERATE
    return LevelStatus.CRITICAL


class CommandResponder:
    """Validates command input and maps each command to a ledger call.

    Rejected requests (unauthorized or out of range) never reach the ledger.
    """

    def __init__(
        self,
        ledger: BloodLedger,
        history_limit: int = 10,
        history_display: int = 5
    ):
        self.ledger = ledger
        self.history_limit = history_limit
        self.history_display = history_display

    @property
    def cap(self) -> int:
        return self.ledger.cap

    def ping(self) -> str:
        return "Pong! Bot is responding successfully!"

    def query_level(self) -> LevelReport:
        level = self.ledger.get_current_level()
        return LevelReport(
            level=level,
            cap=self.cap,
            percentage=round(level / self.cap * 100),
            status=level_status(level, self.cap)
        )

    def set_level(self, amount: int, is_admin: bool) -> int:
        """Set the level on behalf of an administrator.

        Raises:
            AuthorizationFailure: If the caller is not an administrator
            ValidationFailure: If amount is outside [0, cap]
        """
        if not is_admin:
            raise AuthorizationFailure("You need administrator permissions to use this command.")
        if not isinstance(amount, int) or isinstance(amount, bool) or not 0 <= amount <= self.cap:
            raise ValidationFailure(f"Please provide a value between 0 and {self.cap}.", amount)
        return self.ledger.set_level(amount)

    def view_history(self) -> List[HistoryEntry]:
        """Most recent consumption entries, trimmed for display."""
        return self.ledger.get_history(self.history_limit)[:self.history_display]
