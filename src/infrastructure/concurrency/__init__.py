"""
Infrastructure layer concurrency utilities.

Keyed locks used to serialize per-account mutations.
"""

from .account_locks import AccountLockManager

__all__ = ["AccountLockManager"]
