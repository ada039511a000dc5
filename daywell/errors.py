"""Error types raised by the tracking engine.

Validation problems are recovered by the caller and shown inline; they are
never persisted.  Persistence failures carry the operation that failed so
the caller can report it.  Clock skew is not an error: negative durations
are clamped to zero where they are computed.
"""
from __future__ import annotations


class DaywellError(Exception):
    """Base exception for the tracker."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(DaywellError):
    """Raised when user input or a requested transition is invalid."""


class BudgetExceededError(ValidationError):
    """Raised when active targets for a day type would exceed one day.

    Attributes:
        day_type: Day type whose budget would be exceeded
        overage_minutes: Minutes above the daily limit
    """

    def __init__(self, day_type: str, overage_minutes: int) -> None:
        self.day_type = day_type
        self.overage_minutes = overage_minutes
        super().__init__(
            f"Cannot exceed 24 hours. You are over by {overage_minutes} minutes for {day_type}s."
        )


class HistoricalDateError(ValidationError):
    """Raised when a write is attempted while viewing a past date."""

    def __init__(self, operation: str, viewed: str) -> None:
        self.operation = operation
        super().__init__(f"Cannot {operation} while viewing {viewed}; past days are read-only")


class SessionBusyError(ValidationError):
    """Raised when a session operation is triggered while another is in flight."""

    def __init__(self, state: str) -> None:
        self.state = state
        super().__init__(f"Another session operation is in flight ({state})")


class NotAuthenticatedError(DaywellError):
    """Raised when an operation needs a signed-in identity and there is none."""

    def __init__(self, message: str = "Not signed in") -> None:
        super().__init__(message)


class PersistenceError(DaywellError):
    """Raised when the store fails.

    Attributes:
        operation: Store operation that failed
        cause: Original exception that caused the failure
    """

    def __init__(self, operation: str, cause: Exception) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"Store operation '{operation}' failed: {cause}")
