"""
Session management service.

Tracks the live authenticated sessions of each account and handles
selective or bulk revocation. Every mutation for an account runs under that
account's lock and is written back as one atomic set replacement, so
concurrent listings never see a partially removed set.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from src.application.interfaces.repositories import ISessionStore
from src.domain.entities.session import DeviceType, Session
from src.domain.exceptions import ForbiddenOperationError, NotFoundError

from ...concurrency import AccountLockManager

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Session lifecycle service."""

    def __init__(
        self,
        store: ISessionStore,
        locks: AccountLockManager | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.locks = locks or AccountLockManager("session")
        self.clock = clock or (lambda: datetime.now(UTC))

    async def create_session(
        self,
        account_id: str,
        device_label: str = "",
        browser_label: str = "",
        device_type: DeviceType = DeviceType.UNKNOWN,
        source_ip: str | None = None,
        approximate_location: str | None = None,
    ) -> Session:
        """Record a new session after successful authentication."""
        now = self.clock()
        session = Session(
            account_id=account_id,
            device_label=device_label,
            browser_label=browser_label,
            device_type=device_type,
            source_ip=source_ip,
            approximate_location=approximate_location,
            created_at=now,
            last_active_at=now,
        )

        async with self.locks.hold(account_id):
            await self.store.add(session)

        logger.info(
            f"Session {session.session_id} created for account {account_id}",
            extra={"account_id": account_id, "source_ip": source_ip},
        )
        return session

    async def touch(self, account_id: str, session_id: str) -> Session:
        """Mark authenticated activity on a session."""
        async with self.locks.hold(account_id):
            session = await self._get_owned(account_id, session_id)
            session.last_active_at = self.clock()
            await self.store.update(session)
        return session

    async def list_sessions(self, account_id: str, requesting_session_id: str) -> list[Session]:
        """
        List an account's sessions, most recently active first.

        Each entry is annotated with ``is_current`` relative to the requester.
        """
        async with self.locks.hold(account_id):
            sessions = await self.store.list_for_account(account_id)

        owned = [session for session in sessions if session.account_id == account_id]
        owned.sort(key=lambda session: session.last_active_at, reverse=True)
        return [session.annotated_for(requesting_session_id) for session in owned]

    async def terminate_session(
        self, account_id: str, session_id: str, requesting_session_id: str
    ) -> None:
        """
        Revoke one of the account's other sessions.

        Raises:
            ForbiddenOperationError: If ``session_id`` is the requesting session
            NotFoundError: If the session does not belong to the account
        """
        if session_id == requesting_session_id:
            raise ForbiddenOperationError(
                "The current session cannot be terminated here; log out instead",
                details={"session_id": session_id},
            )

        async with self.locks.hold(account_id):
            sessions = await self.store.list_for_account(account_id)
            remaining = [session for session in sessions if session.session_id != session_id]
            if len(remaining) == len(sessions):
                raise NotFoundError("Session", session_id)
            await self.store.replace_for_account(account_id, remaining)

        logger.info(
            f"Session {session_id} terminated for account {account_id}",
            extra={"account_id": account_id, "session_id": session_id},
        )

    async def terminate_all_other_sessions(self, account_id: str, requesting_session_id: str | None) -> int:
        """
        Revoke every session of the account except the requesting one.

        Returns:
            Number of sessions removed
        """
        async with self.locks.hold(account_id):
            sessions = await self.store.list_for_account(account_id)
            kept = [session for session in sessions if session.session_id == requesting_session_id]
            removed = len(sessions) - len(kept)
            if removed:
                await self.store.replace_for_account(account_id, kept)

        logger.info(
            f"Terminated {removed} other sessions for account {account_id}",
            extra={"account_id": account_id, "removed": removed},
        )
        return removed

    async def logout(self, account_id: str, session_id: str) -> None:
        """End the caller's own session (explicit logout path)."""
        async with self.locks.hold(account_id):
            sessions = await self.store.list_for_account(account_id)
            remaining = [session for session in sessions if session.session_id != session_id]
            if len(remaining) == len(sessions):
                raise NotFoundError("Session", session_id)
            await self.store.replace_for_account(account_id, remaining)

        logger.info(f"Account {account_id} logged out of session {session_id}")

    async def reevaluate_mfa(
        self, account_id: str, mfa_enabled: bool, requesting_session_id: str | None = None
    ) -> int:
        """
        Re-evaluate sessions after the account's MFA status changed.

        Enabling MFA flags every other session as needing a second factor;
        disabling clears the flag everywhere.

        Returns:
            Number of sessions whose flag changed
        """
        changed = 0
        async with self.locks.hold(account_id):
            sessions = await self.store.list_for_account(account_id)
            for session in sessions:
                required = mfa_enabled and session.session_id != requesting_session_id
                if session.requires_second_factor != required:
                    session.requires_second_factor = required
                    changed += 1
            if changed:
                await self.store.replace_for_account(account_id, sessions)

        logger.info(
            f"MFA re-evaluation for account {account_id} updated {changed} sessions",
            extra={"account_id": account_id, "mfa_enabled": mfa_enabled},
        )
        return changed

    async def purge_expired(self, max_idle: timedelta) -> int:
        """Remove sessions idle for longer than ``max_idle``; returns the count removed."""
        now = self.clock()
        removed = 0
        for account_id in await self.store.list_account_ids():
            async with self.locks.hold(account_id):
                sessions = await self.store.list_for_account(account_id)
                alive = [session for session in sessions if session.idle_for(now) <= max_idle]
                if len(alive) != len(sessions):
                    await self.store.replace_for_account(account_id, alive)
                    removed += len(sessions) - len(alive)

        if removed:
            logger.info(f"Purged {removed} expired sessions")
        return removed

    async def _get_owned(self, account_id: str, session_id: str) -> Session:
        session = await self.store.get(session_id)
        if session is None or session.account_id != account_id:
            raise NotFoundError("Session", session_id)
        return session
