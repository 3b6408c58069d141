"""
EnrollmentAttempt Entity - ephemeral state of one in-progress MFA setup

The attempt is a small state machine. Transitions are table driven so the
allowed (state, event) pairs live in one place; anything else raises
InvalidStateError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from ..exceptions import InvalidStateError
from .account import MfaMethod

DEFAULT_VERIFICATION_ATTEMPTS = 5


class EnrollmentState(Enum):
    """Enrollment state enumeration"""

    DISABLED = "disabled"
    METHOD_SELECTION = "method_selection"
    SECRET_ISSUED = "secret_issued"
    PENDING_VERIFICATION = "pending_verification"
    ENROLLED = "enrolled"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (EnrollmentState.ENROLLED, EnrollmentState.CANCELLED)


class EnrollmentEvent(Enum):
    """Events that drive an enrollment attempt"""

    CONFIRM_METHOD = "confirm_method"
    REQUEST_VERIFICATION = "request_verification"
    VERIFY = "submit_code"
    CANCEL = "cancel"


_TRANSITIONS: dict[tuple[EnrollmentState, EnrollmentEvent], EnrollmentState] = {
    (EnrollmentState.METHOD_SELECTION, EnrollmentEvent.CONFIRM_METHOD): EnrollmentState.SECRET_ISSUED,
    (EnrollmentState.SECRET_ISSUED, EnrollmentEvent.REQUEST_VERIFICATION): EnrollmentState.PENDING_VERIFICATION,
    (EnrollmentState.PENDING_VERIFICATION, EnrollmentEvent.VERIFY): EnrollmentState.ENROLLED,
    (EnrollmentState.METHOD_SELECTION, EnrollmentEvent.CANCEL): EnrollmentState.CANCELLED,
    (EnrollmentState.SECRET_ISSUED, EnrollmentEvent.CANCEL): EnrollmentState.CANCELLED,
    (EnrollmentState.PENDING_VERIFICATION, EnrollmentEvent.CANCEL): EnrollmentState.CANCELLED,
}


@dataclass
class EnrollmentAttempt:
    """
    One MFA enrollment in progress for an account.

    ``version`` increases on every mutation and is used by stores for
    compare-and-swap saves.
    """

    account_id: str
    chosen_method: MfaMethod
    state: EnrollmentState = EnrollmentState.METHOD_SELECTION
    pending_secret: str | None = None
    verification_attempts_remaining: int = DEFAULT_VERIFICATION_ATTEMPTS
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_activity_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    version: int = 0

    def ensure_state(self, event: EnrollmentEvent) -> None:
        """Raise InvalidStateError unless ``event`` is allowed in the current state."""
        if (self.state, event) not in _TRANSITIONS:
            raise InvalidStateError(event.value, self.state.value)

    def apply(self, event: EnrollmentEvent, now: datetime) -> EnrollmentState:
        """Apply ``event`` and return the new state."""
        self.ensure_state(event)
        self.state = _TRANSITIONS[(self.state, event)]
        self._touch(now)
        return self.state

    def record_failed_verification(self, now: datetime) -> int:
        """
        Consume one verification attempt.

        Moves the attempt to CANCELLED when none remain and returns the
        remaining count.
        """
        self.ensure_state(EnrollmentEvent.VERIFY)
        self.verification_attempts_remaining = max(0, self.verification_attempts_remaining - 1)
        if self.verification_attempts_remaining == 0:
            self.state = EnrollmentState.CANCELLED
        self._touch(now)
        return self.verification_attempts_remaining

    def is_expired(self, now: datetime, timeout: timedelta) -> bool:
        return now - self.last_activity_at >= timeout

    def _touch(self, now: datetime) -> None:
        self.last_activity_at = now
        self.version += 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "account_id": self.account_id,
            "chosen_method": self.chosen_method.value,
            "state": self.state.value,
            "pending_secret": self.pending_secret,
            "verification_attempts_remaining": self.verification_attempts_remaining,
            "started_at": self.started_at.isoformat(),
            "last_activity_at": self.last_activity_at.isoformat(),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EnrollmentAttempt:
        return cls(
            account_id=data["account_id"],
            chosen_method=MfaMethod(data["chosen_method"]),
            state=EnrollmentState(data["state"]),
            pending_secret=data.get("pending_secret"),
            verification_attempts_remaining=int(data["verification_attempts_remaining"]),
            started_at=datetime.fromisoformat(data["started_at"]),
            last_activity_at=datetime.fromisoformat(data["last_activity_at"]),
            version=int(data.get("version", 0)),
        )
