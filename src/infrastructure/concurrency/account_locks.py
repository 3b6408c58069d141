"""
Per-account lock manager.

Serializes mutations keyed by account ID within one event loop. Locks are
created on first use and dropped once no task holds or waits on them.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class AccountLockManager:
    """Keyed asyncio locks. Not reentrant: never nest ``hold`` for one key."""

    def __init__(self, name: str = "account") -> None:
        self.name = name
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, account_id: str) -> AsyncIterator[None]:
        """Hold the lock for ``account_id`` for the duration of the block."""
        lock = self._locks.get(account_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[account_id] = lock
        self._users[account_id] = self._users.get(account_id, 0) + 1

        try:
            async with lock:
                yield
        finally:
            self._users[account_id] -= 1
            if self._users[account_id] == 0:
                del self._users[account_id]
                del self._locks[account_id]

    def is_locked(self, account_id: str) -> bool:
        lock = self._locks.get(account_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
