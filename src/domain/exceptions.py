"""
Domain-level exceptions for the account security subsystem.

Every failure raised by the core carries an ``ErrorKind`` so the management
boundary can report it as a typed result without inspecting messages.
"""

from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Error categories reported across the management boundary."""

    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    AUTHENTICATION = "authentication_error"
    INVALID_CODE = "invalid_code"
    CONFLICT = "conflict"
    INVALID_STATE = "invalid_state"
    FORBIDDEN = "forbidden_operation"
    STORAGE = "storage_error"
    INTERNAL = "internal_error"


class AccountSecurityError(Exception):
    """Base exception for all account security errors."""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(AccountSecurityError):
    """Raised when caller input is malformed or inconsistent."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, details={"field": field} if field else None)
        self.field = field


class NotFoundError(AccountSecurityError):
    """Raised when a referenced account, session or enrollment attempt is absent."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity_type: str, entity_id: str, message: str | None = None) -> None:
        super().__init__(
            message or f"{entity_type} not found",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class AuthenticationError(AccountSecurityError):
    """Raised when a supplied credential does not match."""

    kind = ErrorKind.AUTHENTICATION


class InvalidCodeError(AccountSecurityError):
    """
    Raised when an MFA code or backup code is rejected.

    ``attempts_remaining`` is set while an enrollment attempt is still open.
    """

    kind = ErrorKind.INVALID_CODE

    def __init__(self, message: str = "Invalid verification code", attempts_remaining: int | None = None) -> None:
        details = {}
        if attempts_remaining is not None:
            details["attempts_remaining"] = attempts_remaining
        super().__init__(message, details)
        self.attempts_remaining = attempts_remaining


class ConflictError(AccountSecurityError):
    """Raised when an operation collides with concurrent or existing state."""

    kind = ErrorKind.CONFLICT


class InvalidStateError(ConflictError):
    """Raised when an enrollment event is not valid for the attempt's current state."""

    kind = ErrorKind.INVALID_STATE

    def __init__(self, event: str, state: str) -> None:
        super().__init__(
            f"Cannot {event} while enrollment is in state {state}",
            details={"event": event, "state": state},
        )
        self.event = event
        self.state = state


class ForbiddenOperationError(AccountSecurityError):
    """Raised when an action is disallowed on this path."""

    kind = ErrorKind.FORBIDDEN


class StorageError(AccountSecurityError):
    """
    Raised when a backing store fails.

    The original exception is kept as ``__cause__``; the message never leaves
    the management boundary.
    """

    kind = ErrorKind.STORAGE

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(
            f"Storage operation {operation} failed: {reason}",
            details={"operation": operation},
        )
        self.operation = operation
        self.reason = reason
