"""
Repository Interface Definitions

Defines the storage contracts the account security core depends on.
The infrastructure layer provides the implementations; every method raises
StorageError when the backend fails.
"""

# Standard library imports
from abc import abstractmethod
from datetime import datetime
from typing import Protocol

# Local imports
from src.domain.entities.account import Account, BackupCode, MfaMethod, MfaStatus
from src.domain.entities.enrollment import EnrollmentAttempt
from src.domain.entities.session import Session


class ICredentialStore(Protocol):
    """
    Credential store interface.

    Holds the hashed password and MFA fields per account.
    """

    @abstractmethod
    async def find_account(self, account_id: str) -> Account | None:
        """
        Retrieve an account by its ID.

        Returns:
            The account if found, None otherwise

        Raises:
            StorageError: If retrieval fails
        """
        ...

    @abstractmethod
    async def update_password_hash(self, account_id: str, password_hash: str) -> None:
        """
        Replace the stored password hash.

        Raises:
            NotFoundError: If the account does not exist
            StorageError: If the update fails
        """
        ...

    @abstractmethod
    async def update_mfa_fields(
        self,
        account_id: str,
        status: MfaStatus,
        method: MfaMethod,
        secret: str | None,
        backup_codes: list[BackupCode],
    ) -> None:
        """
        Replace all MFA fields of an account in one write.

        Raises:
            NotFoundError: If the account does not exist
            StorageError: If the update fails
        """
        ...

    @abstractmethod
    async def consume_backup_code(self, account_id: str, code_hash: str, used_at: datetime) -> bool:
        """
        Mark one unused backup code as used, as a single check-and-set.

        Returns:
            True if this call consumed the code; False if it was already
            used, replaced or never existed

        Raises:
            StorageError: If the update fails
        """
        ...


class ISessionStore(Protocol):
    """
    Session store interface.

    ``replace_for_account`` must swap the whole session set of an account
    atomically so readers never see a partially removed set.
    """

    @abstractmethod
    async def list_for_account(self, account_id: str) -> list[Session]:
        """Return every stored session of the account, in no particular order."""
        ...

    @abstractmethod
    async def get(self, session_id: str) -> Session | None:
        """Return a session by ID regardless of owner, or None."""
        ...

    @abstractmethod
    async def add(self, session: Session) -> None:
        """Persist a new session."""
        ...

    @abstractmethod
    async def update(self, session: Session) -> None:
        """Persist changes to an existing session."""
        ...

    @abstractmethod
    async def replace_for_account(self, account_id: str, sessions: list[Session]) -> None:
        """Atomically replace the account's session set with ``sessions``."""
        ...

    @abstractmethod
    async def list_account_ids(self) -> list[str]:
        """Return the IDs of all accounts that own at least one session."""
        ...


class IEnrollmentAttemptStore(Protocol):
    """
    Ephemeral enrollment attempt store, keyed by account ID.

    Never durable; losing attempts on restart is acceptable.
    """

    @abstractmethod
    async def get(self, account_id: str) -> EnrollmentAttempt | None:
        """Return the account's active attempt, or None."""
        ...

    @abstractmethod
    async def save(self, attempt: EnrollmentAttempt, expected_version: int | None) -> None:
        """
        Store ``attempt``.

        Args:
            attempt: Attempt to store
            expected_version: Version the caller read, or None when creating

        Raises:
            ConflictError: If the stored version differs from ``expected_version``
                (or an attempt already exists when creating)
        """
        ...

    @abstractmethod
    async def delete(self, account_id: str) -> None:
        """Discard the account's attempt; a missing attempt is not an error."""
        ...

    @abstractmethod
    async def list_all(self) -> list[EnrollmentAttempt]:
        """Return every stored attempt."""
        ...


class ISmsSender(Protocol):
    """Outbound SMS delivery of verification codes."""

    @abstractmethod
    async def send_code(self, phone_number: str, code: str) -> None:
        """Deliver ``code`` to ``phone_number``."""
        ...
