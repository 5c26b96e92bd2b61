"""
Monthly reset scheduling.

The reset check itself is idempotent, so the trigger only needs to fire
at least once early in each month.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from .ledger import BloodLedger

logger = logging.getLogger(__name__)


def is_reset_day(now: datetime) -> bool:
    """True on the first day of the month."""
    return now.day == 1


def run_monthly_check(
    ledger: BloodLedger,
    now: Optional[datetime] = None,
    notify: Optional[Callable[[], None]] = None
) -> bool:
    """Run the scheduled reset check.

    Args:
        ledger: Ledger to check
        now: Tick time; when given, the check only runs on a reset day
        notify: Called once if a reset was applied

    Returns:
        True if the ledger was reset
    """
    if now is not None and not is_reset_day(now):
        return False

    logger.info("Running monthly blood reset check")
    was_reset = ledger.check_and_reset_monthly()
    if was_reset and notify is not None:
        notify()
    return was_reset
