"""
Repository Infrastructure Module

Concrete implementations of the storage interfaces: in-memory, SQLAlchemy
(credentials and sessions) and Redis (enrollment attempts).
"""

from .memory import InMemoryCredentialStore, InMemoryEnrollmentAttemptStore, InMemorySessionStore
from .redis_store import RedisEnrollmentAttemptStore
from .sqlalchemy_store import SQLAlchemyCredentialStore, SQLAlchemySessionStore

__all__ = [
    "InMemoryCredentialStore",
    "InMemoryEnrollmentAttemptStore",
    "InMemorySessionStore",
    "RedisEnrollmentAttemptStore",
    "SQLAlchemyCredentialStore",
    "SQLAlchemySessionStore",
]
