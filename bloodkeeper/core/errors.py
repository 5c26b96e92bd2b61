"""
Error taxonomy for the blood ledger.

Every failure the ledger or its callers raise derives from BloodkeeperError
so adapters can catch the whole family in one place.
"""


class BloodkeeperError(Exception):
    """Base class for all bloodkeeper errors."""


class NotInitialized(BloodkeeperError):
    """Raised when the ledger store is used before it has been initialized."""

    def __init__(self, message: str = "Ledger store not initialized. Call initialize() first."):
        super().__init__(message)


class StorageFailure(BloodkeeperError):
    """Raised when a read or write against the ledger store fails.

    The failed operation has been rolled back; no partial state is visible.
    """


class ValidationFailure(BloodkeeperError):
    """Raised when a command argument is outside its allowed range."""

    def __init__(self, message: str, value=None):
        super().__init__(message)
        self.value = value


class AuthorizationFailure(BloodkeeperError):
    """Raised when a non-privileged actor invokes a privileged command."""
