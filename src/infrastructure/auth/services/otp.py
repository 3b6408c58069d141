"""
One-time code primitives.

TOTP generation/verification (via pyotp) and backup code issuance.
"""

import logging
import secrets
from datetime import datetime

import pyotp

from src.domain.entities.account import BackupCode

from .password_service import PasswordHasher

logger = logging.getLogger(__name__)

TOTP_DIGITS = 6
BACKUP_CODE_LENGTH = 8


def normalize_code(code: str) -> str:
    """Strip whitespace and separators users commonly type."""
    return code.strip().replace(" ", "").replace("-", "").upper()


def looks_like_totp(code: str) -> bool:
    return len(code) == TOTP_DIGITS and code.isdigit()


def looks_like_backup_code(code: str) -> bool:
    return len(code) == BACKUP_CODE_LENGTH and all(c in "0123456789ABCDEF" for c in code)


class TotpService:
    """Time-based one-time passwords (RFC 6238) using pyotp."""

    def __init__(self, issuer: str = "Account Security", valid_window: int = 1) -> None:
        self.issuer = issuer
        self.valid_window = valid_window

    def generate_secret(self) -> str:
        """Generate a new base32 shared secret."""
        return pyotp.random_base32()

    def provisioning_uri(self, secret: str, label: str) -> str:
        """otpauth:// URI for QR-code enrollment in authenticator apps."""
        return pyotp.TOTP(secret).provisioning_uri(name=label, issuer_name=self.issuer)

    def current_code(self, secret: str, for_time: datetime | None = None) -> str:
        totp = pyotp.TOTP(secret)
        return totp.at(for_time) if for_time else totp.now()

    def verify(self, secret: str, code: str, for_time: datetime | None = None) -> bool:
        """
        Verify ``code`` against ``secret``.

        Accepts codes from ``valid_window`` steps before/after now to allow
        for clock drift.
        """
        if not secret or not looks_like_totp(code):
            return False
        return pyotp.TOTP(secret).verify(code, for_time=for_time, valid_window=self.valid_window)


class BackupCodeService:
    """Issues and checks single-use backup codes; only hashes are stored."""

    def __init__(self, hasher: PasswordHasher, count: int = 10) -> None:
        self.hasher = hasher
        self.count = count

    def issue(self) -> tuple[list[str], list[BackupCode]]:
        """
        Generate a fresh set of backup codes.

        Returns:
            Tuple of (plaintext codes to show once, hashed records to store)
        """
        plaintexts = []
        records = []
        seen = set()
        while len(plaintexts) < self.count:
            code = secrets.token_hex(BACKUP_CODE_LENGTH // 2).upper()
            if code in seen:
                continue
            seen.add(code)
            plaintexts.append(code)
            records.append(BackupCode(code_hash=self.hasher.hash(code)))
        return plaintexts, records

    def find_unused_match(self, code: str, records: list[BackupCode]) -> int | None:
        """Return the index of the unused record matching ``code``, or None."""
        normalized = normalize_code(code)
        if not looks_like_backup_code(normalized):
            return None
        for index, record in enumerate(records):
            if not record.used and self.hasher.verify(normalized, record.code_hash):
                return index
        return None
