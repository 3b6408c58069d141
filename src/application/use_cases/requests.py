"""
Request DTOs for account security operations.
"""

from dataclasses import dataclass

from src.domain.entities.account import MfaMethod
from src.domain.exceptions import ValidationError

from .base_request import BaseRequestDTO


@dataclass(kw_only=True)
class AccountRequest(BaseRequestDTO):
    """Request addressing a single account."""

    required_fields = ("account_id",)

    account_id: str


@dataclass(kw_only=True)
class RotatePasswordRequest(BaseRequestDTO):
    required_fields = (
        "account_id",
        "current_password",
        "new_password",
        "confirm_password",
        "requesting_session_id",
    )

    account_id: str
    current_password: str
    new_password: str
    confirm_password: str
    requesting_session_id: str


@dataclass(kw_only=True)
class StartEnrollmentRequest(BaseRequestDTO):
    required_fields = ("account_id", "method")

    account_id: str
    method: str

    def validate(self) -> str | None:
        error = super().validate()
        if error:
            return error
        try:
            MfaMethod.parse(self.method)
        except ValidationError as e:
            return e.message
        return None


@dataclass(kw_only=True)
class SubmitCodeRequest(BaseRequestDTO):
    required_fields = ("account_id", "code")

    account_id: str
    code: str
    requesting_session_id: str | None = None


@dataclass(kw_only=True)
class PasswordConfirmedRequest(BaseRequestDTO):
    """Request for operations that re-authenticate with the current password."""

    required_fields = ("account_id", "current_password")

    account_id: str
    current_password: str
    requesting_session_id: str | None = None


@dataclass(kw_only=True)
class ListSessionsRequest(BaseRequestDTO):
    required_fields = ("account_id", "requesting_session_id")

    account_id: str
    requesting_session_id: str


@dataclass(kw_only=True)
class TerminateSessionRequest(BaseRequestDTO):
    required_fields = ("account_id", "session_id", "requesting_session_id")

    account_id: str
    session_id: str
    requesting_session_id: str


@dataclass(kw_only=True)
class TerminateOtherSessionsRequest(BaseRequestDTO):
    required_fields = ("account_id", "requesting_session_id")

    account_id: str
    requesting_session_id: str
