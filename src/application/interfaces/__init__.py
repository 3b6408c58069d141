"""
Application Interfaces - Storage Contracts

The application layer defines what it needs; the infrastructure layer
provides in-memory, SQLAlchemy and Redis implementations.
"""

from .repositories import ICredentialStore, IEnrollmentAttemptStore, ISessionStore, ISmsSender

__all__ = [
    "ICredentialStore",
    "IEnrollmentAttemptStore",
    "ISessionStore",
    "ISmsSender",
]
