"""
Account Entity - credential and MFA state owned by one user account
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from ..exceptions import ValidationError


class MfaStatus(Enum):
    """MFA status enumeration"""

    DISABLED = "disabled"
    PENDING = "pending"
    ENABLED = "enabled"


class MfaMethod(Enum):
    """MFA delivery method enumeration"""

    NONE = "none"
    AUTHENTICATOR_APP = "authenticator_app"
    SMS = "sms"

    @classmethod
    def parse(cls, value: str | MfaMethod) -> MfaMethod:
        """Parse a caller-supplied method name; ``none`` is not selectable."""
        if isinstance(value, MfaMethod):
            method = value
        else:
            aliases = {
                "app": cls.AUTHENTICATOR_APP,
                "totp": cls.AUTHENTICATOR_APP,
                "authenticator": cls.AUTHENTICATOR_APP,
                "authenticator_app": cls.AUTHENTICATOR_APP,
                "sms": cls.SMS,
            }
            method = aliases.get(str(value).strip().lower(), cls.NONE)

        if method is cls.NONE:
            raise ValidationError(f"Unsupported MFA method: {value}", field="method")
        return method


@dataclass
class BackupCode:
    """Single-use recovery code, stored only as a hash."""

    code_hash: str
    used: bool = False
    used_at: datetime | None = None

    def mark_used(self, when: datetime | None = None) -> None:
        self.used = True
        self.used_at = when or datetime.now(UTC)


@dataclass
class Account:
    """
    Account entity holding the password hash and MFA fields.

    Invariants:
        - ``mfa_secret`` is set iff ``mfa_status`` is not DISABLED
        - ``backup_codes`` is non-empty iff ``mfa_status`` is ENABLED
    """

    account_id: str
    password_hash: str

    # Contact details used for provisioning
    email: str | None = None
    phone_number: str | None = None

    # MFA
    mfa_status: MfaStatus = MfaStatus.DISABLED
    mfa_method: MfaMethod = MfaMethod.NONE
    mfa_secret: str | None = None
    backup_codes: list[BackupCode] = field(default_factory=list)

    @property
    def mfa_enabled(self) -> bool:
        return self.mfa_status is MfaStatus.ENABLED

    def unused_backup_codes(self) -> list[BackupCode]:
        return [code for code in self.backup_codes if not code.used]

    def check_invariants(self) -> None:
        """Raise ValidationError if the MFA fields are inconsistent."""
        has_secret = bool(self.mfa_secret)
        if has_secret != (self.mfa_status is not MfaStatus.DISABLED):
            raise ValidationError(
                f"Account {self.account_id}: MFA secret presence does not match "
                f"status {self.mfa_status.value}"
            )

        if bool(self.backup_codes) != (self.mfa_status is MfaStatus.ENABLED):
            raise ValidationError(
                f"Account {self.account_id}: backup codes present does not match "
                f"status {self.mfa_status.value}"
            )

        if self.mfa_status is MfaStatus.DISABLED and self.mfa_method is not MfaMethod.NONE:
            raise ValidationError(
                f"Account {self.account_id}: MFA method set while MFA is disabled"
            )
