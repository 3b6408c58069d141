"""
Multi-factor authentication enrollment service.

Drives the enrollment state machine (method selection, secret issuance,
verification, backup code issuance) and handles disabling MFA and backup
code maintenance for enrolled accounts.

All transitions for one account are serialized through the account lock;
the attempt store additionally rejects saves based on a stale version.
No Account field is written before the ENROLLED transition, so cancelling
never needs a rollback.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from src.application.interfaces.repositories import (
    ICredentialStore,
    IEnrollmentAttemptStore,
    ISmsSender,
)
from src.domain.entities.account import Account, MfaMethod, MfaStatus
from src.domain.entities.enrollment import (
    DEFAULT_VERIFICATION_ATTEMPTS,
    EnrollmentAttempt,
    EnrollmentEvent,
    EnrollmentState,
)
from src.domain.exceptions import (
    AuthenticationError,
    ConflictError,
    InvalidCodeError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

from ...concurrency import AccountLockManager
from .otp import BackupCodeService, TotpService, normalize_code
from .password_service import PasswordService
from .session_manager import SessionRegistry

logger = logging.getLogger(__name__)


def mask_phone_number(phone_number: str) -> str:
    """Show only the last four digits of a phone number."""
    digits = [c for c in phone_number if c.isdigit()]
    if len(digits) <= 4:
        return "*" * len(digits)
    prefix = "+" if phone_number.strip().startswith("+") else ""
    return prefix + "*" * (len(digits) - 4) + "".join(digits[-4:])


@dataclass
class ProvisioningMaterial:
    """What the client needs to set up its second factor."""

    method: MfaMethod
    manual_entry_key: str | None = None
    provisioning_uri: str | None = None
    sms_target: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method.value,
            "manual_entry_key": self.manual_entry_key,
            "provisioning_uri": self.provisioning_uri,
            "sms_target": self.sms_target,
        }


@dataclass
class EnrollmentStatus:
    """Snapshot of an account's enrollment progress."""

    state: EnrollmentState
    method: MfaMethod | None = None
    attempts_remaining: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "method": self.method.value if self.method else None,
            "attempts_remaining": self.attempts_remaining,
        }


class MfaEnrollmentFlow:
    """MFA enrollment state machine service."""

    def __init__(
        self,
        credentials: ICredentialStore,
        attempts: IEnrollmentAttemptStore,
        password_service: PasswordService,
        totp: TotpService,
        backup_codes: BackupCodeService,
        session_registry: SessionRegistry | None = None,
        sms_sender: ISmsSender | None = None,
        locks: AccountLockManager | None = None,
        verification_attempts: int = DEFAULT_VERIFICATION_ATTEMPTS,
        enrollment_timeout: timedelta = timedelta(minutes=10),
        clock: Callable[[], datetime] | None = None,
    ):
        self.credentials = credentials
        self.attempts = attempts
        self.password_service = password_service
        self.totp = totp
        self.backup_codes = backup_codes
        self.session_registry = session_registry
        self.sms_sender = sms_sender
        self.locks = locks or AccountLockManager()
        self.verification_attempts = verification_attempts
        self.enrollment_timeout = enrollment_timeout
        self.clock = clock or (lambda: datetime.now(UTC))

    def list_available_methods(self) -> list[dict[str, Any]]:
        """List the MFA methods this deployment can enroll."""
        methods = [
            {
                "method": MfaMethod.AUTHENTICATOR_APP.value,
                "name": "Authenticator App",
                "description": "Use Google Authenticator, Authy, or similar",
            }
        ]
        if self.sms_sender is not None:
            methods.append(
                {
                    "method": MfaMethod.SMS.value,
                    "name": "SMS",
                    "description": "Receive codes via text message",
                }
            )
        return methods

    async def start_enrollment(self, account_id: str, method: str | MfaMethod) -> EnrollmentStatus:
        """
        Open a new enrollment attempt.

        Raises:
            ValidationError: If the method is unknown or unavailable
            NotFoundError: If the account does not exist
            ConflictError: If MFA is already enabled or an attempt is active
        """
        chosen = MfaMethod.parse(method)
        if chosen is MfaMethod.SMS and self.sms_sender is None:
            raise ValidationError("SMS verification is not available", field="method")

        async with self.locks.hold(account_id):
            account = await self._require_account(account_id)
            if account.mfa_enabled:
                raise ConflictError("MFA is already enabled for this account")

            if await self._active_attempt(account_id) is not None:
                raise ConflictError("An MFA enrollment is already in progress for this account")

            now = self.clock()
            attempt = EnrollmentAttempt(
                account_id=account_id,
                chosen_method=chosen,
                verification_attempts_remaining=self.verification_attempts,
                started_at=now,
                last_activity_at=now,
            )
            await self.attempts.save(attempt, expected_version=None)

        logger.info(
            f"MFA enrollment started for account {account_id}",
            extra={"account_id": account_id, "method": chosen.value},
        )
        return self._status_of(attempt)

    async def confirm_method(self, account_id: str) -> ProvisioningMaterial:
        """
        Confirm the chosen method and issue the pending secret.

        Returns:
            Provisioning material: otpauth URI and manual key for
            authenticator apps, masked phone number for SMS
        """
        async with self.locks.hold(account_id):
            attempt = await self._require_attempt(account_id)
            attempt.ensure_state(EnrollmentEvent.CONFIRM_METHOD)
            account = await self._require_account(account_id)

            if attempt.chosen_method is MfaMethod.SMS and not account.phone_number:
                raise ValidationError(
                    "A phone number is required for SMS verification", field="phone_number"
                )

            expected_version = attempt.version
            attempt.pending_secret = self.totp.generate_secret()
            attempt.apply(EnrollmentEvent.CONFIRM_METHOD, self.clock())
            await self.attempts.save(attempt, expected_version)

        logger.info(f"MFA secret issued for account {account_id}", extra={"account_id": account_id})

        if attempt.chosen_method is MfaMethod.SMS:
            return ProvisioningMaterial(
                method=MfaMethod.SMS, sms_target=mask_phone_number(account.phone_number or "")
            )

        return ProvisioningMaterial(
            method=MfaMethod.AUTHENTICATOR_APP,
            manual_entry_key=attempt.pending_secret,
            provisioning_uri=self.totp.provisioning_uri(
                attempt.pending_secret, account.email or account_id
            ),
        )

    async def request_verification(self, account_id: str) -> EnrollmentStatus:
        """Open the verification window; SMS enrollments get their code sent now."""
        async with self.locks.hold(account_id):
            attempt = await self._require_attempt(account_id)
            attempt.ensure_state(EnrollmentEvent.REQUEST_VERIFICATION)

            if attempt.chosen_method is MfaMethod.SMS:
                await self._send_sms_code(account_id, attempt)

            expected_version = attempt.version
            attempt.apply(EnrollmentEvent.REQUEST_VERIFICATION, self.clock())
            await self.attempts.save(attempt, expected_version)

        return self._status_of(attempt)

    async def submit_code(
        self, account_id: str, code: str, requesting_session_id: str | None = None
    ) -> list[str]:
        """
        Verify a code against the attempt's pending secret.

        On success MFA is enabled and the plaintext backup codes are
        returned; they are never retrievable again.

        Raises:
            NotFoundError: If no attempt is active (including after the
                last verification attempt was used up)
            InvalidStateError: If verification was not requested yet
            InvalidCodeError: If the code is wrong
        """
        async with self.locks.hold(account_id):
            attempt = await self._require_attempt(account_id)
            attempt.ensure_state(EnrollmentEvent.VERIFY)
            expected_version = attempt.version

            if not self.totp.verify(attempt.pending_secret or "", normalize_code(code)):
                remaining = attempt.record_failed_verification(self.clock())
                if attempt.state is EnrollmentState.CANCELLED:
                    await self.attempts.delete(account_id)
                    logger.warning(
                        f"MFA enrollment cancelled for account {account_id}: "
                        "verification attempts exhausted",
                        extra={"account_id": account_id},
                    )
                else:
                    await self.attempts.save(attempt, expected_version)
                    logger.info(
                        f"Invalid MFA enrollment code for account {account_id}",
                        extra={"account_id": account_id, "attempts_remaining": remaining},
                    )
                raise InvalidCodeError(
                    f"Invalid verification code. {remaining} attempts remaining",
                    attempts_remaining=remaining,
                )

            plaintexts, records = self.backup_codes.issue()
            await self.credentials.update_mfa_fields(
                account_id,
                status=MfaStatus.ENABLED,
                method=attempt.chosen_method,
                secret=attempt.pending_secret,
                backup_codes=records,
            )
            attempt.apply(EnrollmentEvent.VERIFY, self.clock())
            await self.attempts.delete(account_id)

        logger.info(
            f"MFA enabled for account {account_id}",
            extra={"account_id": account_id, "method": attempt.chosen_method.value},
        )

        if self.session_registry is not None:
            await self.session_registry.reevaluate_mfa(account_id, True, requesting_session_id)

        return plaintexts

    async def cancel(self, account_id: str) -> EnrollmentStatus:
        """Abandon the active attempt. No account field is touched."""
        async with self.locks.hold(account_id):
            attempt = await self._require_attempt(account_id)
            attempt.apply(EnrollmentEvent.CANCEL, self.clock())
            await self.attempts.delete(account_id)

        logger.info(f"MFA enrollment cancelled for account {account_id}")
        return self._status_of(attempt)

    async def disable(
        self, account_id: str, current_password: str, requesting_session_id: str | None = None
    ) -> None:
        """
        Disable MFA (requires password confirmation).

        Raises:
            NotFoundError: If the account does not exist
            InvalidStateError: If MFA is not enabled
            AuthenticationError: If the password is wrong
        """
        async with self.locks.hold(account_id):
            account = await self._require_account(account_id)
            if not account.mfa_enabled:
                raise InvalidStateError("disable MFA", account.mfa_status.value)

            await self._reauthenticate(account, current_password, "mfa_disable")

            await self.credentials.update_mfa_fields(
                account_id,
                status=MfaStatus.DISABLED,
                method=MfaMethod.NONE,
                secret=None,
                backup_codes=[],
            )

        logger.info(f"MFA disabled for account {account_id}", extra={"account_id": account_id})

        if self.session_registry is not None:
            await self.session_registry.reevaluate_mfa(account_id, False, requesting_session_id)

    async def get_enrollment_status(self, account_id: str) -> EnrollmentStatus:
        """Current enrollment state; DISABLED or ENROLLED when no attempt is active."""
        async with self.locks.hold(account_id):
            attempt = await self._active_attempt(account_id)
            if attempt is not None:
                return self._status_of(attempt)
            account = await self._require_account(account_id)

        if account.mfa_enabled:
            return EnrollmentStatus(state=EnrollmentState.ENROLLED, method=account.mfa_method)
        return EnrollmentStatus(state=EnrollmentState.DISABLED)

    async def regenerate_backup_codes(self, account_id: str, current_password: str) -> list[str]:
        """
        Replace all backup codes of an enrolled account.

        Returns:
            New plaintext backup codes
        """
        async with self.locks.hold(account_id):
            account = await self._require_account(account_id)
            if not account.mfa_enabled:
                raise InvalidStateError("regenerate backup codes", account.mfa_status.value)

            await self._reauthenticate(account, current_password, "backup_code_regeneration")

            plaintexts, records = self.backup_codes.issue()
            await self.credentials.update_mfa_fields(
                account_id,
                status=account.mfa_status,
                method=account.mfa_method,
                secret=account.mfa_secret,
                backup_codes=records,
            )

        logger.info(f"Backup codes regenerated for account {account_id}")
        return plaintexts

    async def get_backup_codes_status(self, account_id: str) -> dict[str, Any]:
        """Counts of total, used and remaining backup codes."""
        account = await self._require_account(account_id)
        if not account.mfa_enabled:
            return {"mfa_enabled": False, "total_codes": 0, "used_codes": 0, "remaining_codes": 0}

        used = sum(1 for code in account.backup_codes if code.used)
        return {
            "mfa_enabled": True,
            "total_codes": len(account.backup_codes),
            "used_codes": used,
            "remaining_codes": len(account.backup_codes) - used,
        }

    async def sweep_expired(self) -> int:
        """Discard every attempt idle past the enrollment timeout; returns the count."""
        swept = 0
        for listed in await self.attempts.list_all():
            async with self.locks.hold(listed.account_id):
                # Reload; the attempt may have completed or been replaced since listing
                attempt = await self.attempts.get(listed.account_id)
                if attempt is None or not attempt.is_expired(self.clock(), self.enrollment_timeout):
                    continue
                await self.attempts.delete(listed.account_id)
                swept += 1
                logger.info(
                    f"MFA enrollment for account {listed.account_id} swept in state {attempt.state.value}",
                    extra={"account_id": listed.account_id},
                )
        return swept

    async def _active_attempt(self, account_id: str) -> EnrollmentAttempt | None:
        """Load the account's attempt, discarding it if it timed out."""
        attempt = await self.attempts.get(account_id)
        if attempt is None:
            return None
        if attempt.is_expired(self.clock(), self.enrollment_timeout):
            await self.attempts.delete(account_id)
            logger.info(
                f"MFA enrollment for account {account_id} timed out in state {attempt.state.value}",
                extra={"account_id": account_id},
            )
            return None
        return attempt

    async def _require_attempt(self, account_id: str) -> EnrollmentAttempt:
        attempt = await self._active_attempt(account_id)
        if attempt is None:
            raise NotFoundError(
                "EnrollmentAttempt", account_id, "No MFA enrollment is in progress"
            )
        return attempt

    async def _require_account(self, account_id: str) -> Account:
        account = await self.credentials.find_account(account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        return account

    async def _reauthenticate(self, account: Account, password: str, purpose: str) -> None:
        if not password or not self.password_service.verify_password(password, account.password_hash):
            logger.warning(
                f"Password confirmation failed for account {account.account_id}",
                extra={"account_id": account.account_id, "purpose": purpose},
            )
            raise AuthenticationError("Invalid password")

        if self.password_service.needs_rehash(account.password_hash):
            account.password_hash = self.password_service.hash_password(password)
            await self.credentials.update_password_hash(account.account_id, account.password_hash)
            logger.info(
                f"Password hash upgraded for account {account.account_id}",
                extra={"account_id": account.account_id},
            )

    async def _send_sms_code(self, account_id: str, attempt: EnrollmentAttempt) -> None:
        if self.sms_sender is None:
            raise ValidationError("SMS verification is not available", field="method")
        account = await self._require_account(account_id)
        if not account.phone_number:
            raise ValidationError("A phone number is required for SMS verification", field="phone_number")
        code = self.totp.current_code(attempt.pending_secret or "")
        await self.sms_sender.send_code(account.phone_number, code)

    def _status_of(self, attempt: EnrollmentAttempt) -> EnrollmentStatus:
        return EnrollmentStatus(
            state=attempt.state,
            method=attempt.chosen_method,
            attempts_remaining=attempt.verification_attempts_remaining,
        )
