"""
MFA enforcement gate for the login flow.

Consulted after primary-credential verification succeeds: decides whether a
second factor is needed, delivers SMS challenges and verifies the code.
Backup code consumption is a conditional check-and-mark in the credential
store, so one code cannot be spent twice even by logins handled in
different processes.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum

from src.application.interfaces.repositories import ICredentialStore, ISmsSender
from src.domain.entities.account import Account, MfaMethod
from src.domain.exceptions import InvalidCodeError, InvalidStateError, ValidationError

from ..concurrency import AccountLockManager
from .services.otp import BackupCodeService, TotpService, looks_like_backup_code, looks_like_totp, normalize_code

logger = logging.getLogger(__name__)


class MFAVerificationMethod(Enum):
    """How a second factor was satisfied."""

    TOTP = "totp"
    BACKUP_CODE = "backup_code"


class MfaEnforcementGate:
    """Second-factor decision and verification for the authentication front door."""

    def __init__(
        self,
        credentials: ICredentialStore,
        totp: TotpService,
        backup_codes: BackupCodeService,
        sms_sender: ISmsSender | None = None,
        locks: AccountLockManager | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.credentials = credentials
        self.totp = totp
        self.backup_codes = backup_codes
        self.sms_sender = sms_sender
        self.locks = locks or AccountLockManager()
        self.clock = clock or (lambda: datetime.now(UTC))

    @staticmethod
    def requires_second_factor(account: Account) -> bool:
        """True iff the account has MFA enabled. Pure."""
        return account.mfa_enabled

    async def send_challenge(self, account: Account) -> bool:
        """
        Deliver a login code to accounts enrolled with SMS.

        Returns:
            True if a code was sent; False for authenticator-app accounts,
            which read the code from their app

        Raises:
            InvalidStateError: If MFA is not enabled
            ValidationError: If SMS delivery is unavailable or the account
                has no phone number
        """
        if not account.mfa_enabled:
            raise InvalidStateError("send an MFA challenge", account.mfa_status.value)

        if account.mfa_method is not MfaMethod.SMS:
            return False

        if self.sms_sender is None:
            raise ValidationError("SMS verification is not available", field="method")
        if not account.phone_number:
            raise ValidationError("A phone number is required for SMS verification", field="phone_number")

        await self.sms_sender.send_code(
            account.phone_number, self.totp.current_code(account.mfa_secret or "")
        )
        logger.info(
            f"SMS login challenge sent for account {account.account_id}",
            extra={"account_id": account.account_id},
        )
        return True

    async def verify_second_factor(self, account: Account, code: str) -> MFAVerificationMethod:
        """
        Verify a live TOTP code or an unconsumed backup code.

        A matching backup code is marked consumed before returning and
        ``account.backup_codes`` is refreshed to reflect it.

        Raises:
            InvalidCodeError: If the code matches neither
        """
        if not account.mfa_enabled:
            raise InvalidCodeError("MFA is not enabled for this account")

        normalized = normalize_code(code)

        if looks_like_totp(normalized):
            if self.totp.verify(account.mfa_secret or "", normalized):
                return MFAVerificationMethod.TOTP
            logger.warning(
                f"Invalid MFA code attempt for account {account.account_id}",
                extra={"account_id": account.account_id},
            )
            raise InvalidCodeError()

        if looks_like_backup_code(normalized):
            await self._consume_backup_code(account, normalized)
            return MFAVerificationMethod.BACKUP_CODE

        raise InvalidCodeError()

    async def _consume_backup_code(self, account: Account, code: str) -> None:
        async with self.locks.hold(account.account_id):
            # Re-read under the lock; the caller's copy may predate another consumption
            current = await self.credentials.find_account(account.account_id)
            if current is None or not current.mfa_enabled:
                raise InvalidCodeError()

            index = self.backup_codes.find_unused_match(code, current.backup_codes)
            used_at = self.clock()
            if index is None or not await self.credentials.consume_backup_code(
                current.account_id, current.backup_codes[index].code_hash, used_at
            ):
                logger.warning(
                    f"Rejected backup code for account {account.account_id}",
                    extra={"account_id": account.account_id},
                )
                raise InvalidCodeError("Invalid or already used backup code")

            current.backup_codes[index].mark_used(used_at)

        account.backup_codes = current.backup_codes
        remaining = len(current.unused_backup_codes())
        logger.info(
            f"Backup code used for account {account.account_id}",
            extra={"account_id": account.account_id, "remaining_codes": remaining},
        )
