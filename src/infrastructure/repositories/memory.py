"""
In-Memory Repository Implementations

Process-local implementations of the storage interfaces, used in tests and
single-process deployments. Entities are copied on the way in and out so
callers never share mutable state with the store.
"""

# Standard library imports
import copy
import logging
from datetime import datetime

# Local imports
from src.application.interfaces.repositories import (
    ICredentialStore,
    IEnrollmentAttemptStore,
    ISessionStore,
)
from src.domain.entities.account import Account, BackupCode, MfaMethod, MfaStatus
from src.domain.entities.enrollment import EnrollmentAttempt
from src.domain.entities.session import Session
from src.domain.exceptions import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class InMemoryCredentialStore(ICredentialStore):
    """Dictionary-backed credential store."""

    def __init__(self, accounts: list[Account] | None = None) -> None:
        self._accounts: dict[str, Account] = {}
        for account in accounts or []:
            self.add_account(account)

    def add_account(self, account: Account) -> None:
        self._accounts[account.account_id] = copy.deepcopy(account)

    async def find_account(self, account_id: str) -> Account | None:
        account = self._accounts.get(account_id)
        return copy.deepcopy(account) if account else None

    async def update_password_hash(self, account_id: str, password_hash: str) -> None:
        self._require(account_id).password_hash = password_hash

    async def update_mfa_fields(
        self,
        account_id: str,
        status: MfaStatus,
        method: MfaMethod,
        secret: str | None,
        backup_codes: list[BackupCode],
    ) -> None:
        account = copy.deepcopy(self._require(account_id))
        account.mfa_status = status
        account.mfa_method = method
        account.mfa_secret = secret
        account.backup_codes = copy.deepcopy(backup_codes)
        account.check_invariants()
        self._accounts[account_id] = account

    async def consume_backup_code(self, account_id: str, code_hash: str, used_at: datetime) -> bool:
        account = self._accounts.get(account_id)
        if account is None:
            return False
        for code in account.backup_codes:
            if code.code_hash == code_hash and not code.used:
                code.mark_used(used_at)
                return True
        return False

    def _require(self, account_id: str) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        return account


class InMemorySessionStore(ISessionStore):
    """Dictionary-backed session store; each account's set is swapped as a whole."""

    def __init__(self) -> None:
        self._by_account: dict[str, dict[str, Session]] = {}
        self._owner: dict[str, str] = {}

    async def list_for_account(self, account_id: str) -> list[Session]:
        sessions = self._by_account.get(account_id, {})
        return [copy.copy(session) for session in sessions.values()]

    async def get(self, session_id: str) -> Session | None:
        account_id = self._owner.get(session_id)
        if account_id is None:
            return None
        session = self._by_account.get(account_id, {}).get(session_id)
        return copy.copy(session) if session else None

    async def add(self, session: Session) -> None:
        current = dict(self._by_account.get(session.account_id, {}))
        current[session.session_id] = copy.copy(session)
        self._by_account[session.account_id] = current
        self._owner[session.session_id] = session.account_id

    async def update(self, session: Session) -> None:
        if self._owner.get(session.session_id) != session.account_id:
            raise NotFoundError("Session", session.session_id)
        await self.add(session)

    async def replace_for_account(self, account_id: str, sessions: list[Session]) -> None:
        replacement = {session.session_id: copy.copy(session) for session in sessions}
        for session_id in self._by_account.get(account_id, {}):
            if session_id not in replacement:
                self._owner.pop(session_id, None)
        for session_id in replacement:
            self._owner[session_id] = account_id

        if replacement:
            self._by_account[account_id] = replacement
        else:
            self._by_account.pop(account_id, None)

    async def list_account_ids(self) -> list[str]:
        return list(self._by_account)


class InMemoryEnrollmentAttemptStore(IEnrollmentAttemptStore):
    """Dictionary-backed attempt store with version checks on save."""

    def __init__(self) -> None:
        self._attempts: dict[str, EnrollmentAttempt] = {}

    async def get(self, account_id: str) -> EnrollmentAttempt | None:
        attempt = self._attempts.get(account_id)
        return copy.copy(attempt) if attempt else None

    async def save(self, attempt: EnrollmentAttempt, expected_version: int | None) -> None:
        stored = self._attempts.get(attempt.account_id)
        stored_version = stored.version if stored else None
        if stored_version != expected_version:
            raise ConflictError(
                f"Enrollment attempt for account {attempt.account_id} was modified concurrently",
                details={"expected_version": expected_version, "actual_version": stored_version},
            )
        self._attempts[attempt.account_id] = copy.copy(attempt)

    async def delete(self, account_id: str) -> None:
        self._attempts.pop(account_id, None)

    async def list_all(self) -> list[EnrollmentAttempt]:
        return [copy.copy(attempt) for attempt in self._attempts.values()]
