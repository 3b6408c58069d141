"""
Database models for account credentials and sessions.

SQLAlchemy models backing the credential and session stores. Enrollment
attempts are ephemeral and have no table.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import INET
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.types import String as SQLString
from sqlalchemy.types import TypeDecorator


class IPAddress(TypeDecorator[str]):
    """Database-agnostic IP address field."""

    impl = SQLString
    cache_ok = True

    def load_dialect_impl(self, dialect: Any) -> Any:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(INET())
        else:
            return dialect.type_descriptor(SQLString(45))  # IPv6 max length


Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AccountRecord(Base):  # type: ignore[valid-type, misc]
    """Account credentials and MFA settings."""

    __tablename__ = "accounts"

    id = Column(String(64), primary_key=True)
    password_hash = Column(String(255), nullable=False)
    email = Column(String(255), index=True)
    phone_number = Column(String(32))

    # MFA settings
    mfa_status = Column(String(16), nullable=False, default="disabled")
    mfa_method = Column(String(32), nullable=False, default="none")
    mfa_secret = Column(String(255))

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # Relationships
    backup_codes = relationship(
        "BackupCodeRecord",
        back_populates="account",
        cascade="all, delete-orphan",
        order_by="BackupCodeRecord.id",
    )
    sessions = relationship("SessionRecord", back_populates="account", cascade="all, delete-orphan")


class BackupCodeRecord(Base):  # type: ignore[valid-type, misc]
    """Hashed MFA backup code."""

    __tablename__ = "mfa_backup_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(String(64), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    code_hash = Column(String(255), nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    used_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    account = relationship("AccountRecord", back_populates="backup_codes")

    __table_args__ = (Index("idx_backup_codes_account", "account_id", "used"),)


class SessionRecord(Base):  # type: ignore[valid-type, misc]
    """Authenticated session of an account."""

    __tablename__ = "account_sessions"

    id = Column(String(64), primary_key=True)
    account_id = Column(String(64), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)

    # Client description
    device_label = Column(String(255), default="")
    browser_label = Column(String(255), default="")
    device_type = Column(String(16), default="unknown")
    source_ip = Column(IPAddress)
    approximate_location = Column(String(255))

    requires_second_factor = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    last_active_at = Column(DateTime(timezone=True), default=_utcnow)

    account = relationship("AccountRecord", back_populates="sessions")

    __table_args__ = (Index("idx_sessions_account_activity", "account_id", "last_active_at"),)
