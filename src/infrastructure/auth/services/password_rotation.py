"""
Password rotation flow.

Validates and executes a password change, then (by default) revokes every
other session of the account so a stolen credential cannot keep a foothold.
"""

import logging

from src.application.interfaces.repositories import ICredentialStore
from src.domain.exceptions import AuthenticationError, NotFoundError, ValidationError

from ...concurrency import AccountLockManager
from .password_service import PasswordService
from .session_manager import SessionRegistry

logger = logging.getLogger(__name__)


class PasswordRotationFlow:
    """Password change service."""

    def __init__(
        self,
        credentials: ICredentialStore,
        password_service: PasswordService,
        session_registry: SessionRegistry,
        locks: AccountLockManager | None = None,
        invalidate_other_sessions: bool = True,
    ):
        self.credentials = credentials
        self.password_service = password_service
        self.session_registry = session_registry
        self.locks = locks or AccountLockManager()
        self.invalidate_other_sessions = invalidate_other_sessions

    async def rotate_password(
        self,
        account_id: str,
        current_password: str,
        new_password: str,
        confirm_password: str,
        requesting_session_id: str | None = None,
    ) -> None:
        """
        Change an account's password.

        Args:
            account_id: Account whose password changes
            current_password: Password to re-authenticate with
            new_password: Replacement password
            confirm_password: Must equal ``new_password``
            requesting_session_id: Session performing the change; survives
                the revocation of other sessions. None revokes every
                session of the account, as for an administrative reset

        Raises:
            ValidationError: If a field is empty, the passwords differ, or
                the new password fails the policy
            NotFoundError: If the account does not exist
            AuthenticationError: If ``current_password`` is wrong
        """
        self._validate_input(current_password, new_password, confirm_password)

        async with self.locks.hold(account_id):
            account = await self.credentials.find_account(account_id)
            if account is None:
                # Same bcrypt cost as a mismatch so callers cannot time the difference
                self.password_service.verify_password(current_password, None)
                raise NotFoundError("Account", account_id)

            if not self.password_service.verify_password(current_password, account.password_hash):
                logger.warning(
                    f"Password rotation rejected for account {account_id}: invalid current password",
                    extra={"account_id": account_id},
                )
                raise AuthenticationError("Current password is incorrect")

            new_hash = self.password_service.hash_password(new_password)
            await self.credentials.update_password_hash(account_id, new_hash)

        logger.info(f"Password rotated for account {account_id}", extra={"account_id": account_id})

        if self.invalidate_other_sessions:
            await self.session_registry.terminate_all_other_sessions(account_id, requesting_session_id)

    def _validate_input(self, current_password: str, new_password: str, confirm_password: str) -> None:
        if not current_password or not new_password or not confirm_password:
            raise ValidationError("Please provide all required fields")

        if new_password != confirm_password:
            raise ValidationError("New passwords do not match", field="confirm_password")

        problems = self.password_service.validate_password(new_password)
        if problems:
            raise ValidationError("; ".join(problems), field="new_password")
