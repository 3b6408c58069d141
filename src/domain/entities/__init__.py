"""Domain entities with business logic."""

from .account import Account, BackupCode, MfaMethod, MfaStatus
from .enrollment import EnrollmentAttempt, EnrollmentEvent, EnrollmentState
from .session import DeviceType, Session

__all__ = [
    "Account",
    "BackupCode",
    "MfaMethod",
    "MfaStatus",
    "EnrollmentAttempt",
    "EnrollmentEvent",
    "EnrollmentState",
    "DeviceType",
    "Session",
]
