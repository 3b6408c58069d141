"""
SQLAlchemy Repository Implementations

Credential and session stores backed by a relational database through the
SQLAlchemy ORM. Each operation runs in its own transaction; any
SQLAlchemyError is raised as StorageError.
"""

# Standard library imports
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime

# Third-party imports
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession
from sqlalchemy.orm import sessionmaker

# Local imports
from src.application.interfaces.repositories import ICredentialStore, ISessionStore
from src.domain.entities.account import Account, BackupCode, MfaMethod, MfaStatus
from src.domain.entities.session import DeviceType, Session
from src.domain.exceptions import NotFoundError, StorageError
from src.infrastructure.auth.models import AccountRecord, BackupCodeRecord, SessionRecord

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@contextmanager
def _storage_operation(factory: sessionmaker, operation: str) -> Iterator[DBSession]:
    """Open a transactional session and translate backend failures."""
    try:
        with factory() as db, db.begin():
            yield db
    except SQLAlchemyError as e:
        logger.error(f"Database error during {operation}: {e}")
        raise StorageError(operation, type(e).__name__) from e


class SQLAlchemyCredentialStore(ICredentialStore):
    """Credential store over the ``accounts`` and ``mfa_backup_codes`` tables."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    async def create_account(self, account: Account) -> None:
        """Insert a new account row (used by registration and fixtures)."""
        with _storage_operation(self.session_factory, "create_account") as db:
            record = AccountRecord(id=account.account_id)
            self._apply(record, account)
            db.add(record)

    async def find_account(self, account_id: str) -> Account | None:
        with _storage_operation(self.session_factory, "find_account") as db:
            record = db.get(AccountRecord, account_id)
            return self._to_entity(record) if record else None

    async def update_password_hash(self, account_id: str, password_hash: str) -> None:
        with _storage_operation(self.session_factory, "update_password_hash") as db:
            record = self._require(db, account_id)
            record.password_hash = password_hash

    async def update_mfa_fields(
        self,
        account_id: str,
        status: MfaStatus,
        method: MfaMethod,
        secret: str | None,
        backup_codes: list[BackupCode],
    ) -> None:
        with _storage_operation(self.session_factory, "update_mfa_fields") as db:
            record = self._require(db, account_id)
            account = self._to_entity(record)
            account.mfa_status = status
            account.mfa_method = method
            account.mfa_secret = secret
            account.backup_codes = backup_codes
            account.check_invariants()
            self._apply(record, account)

    async def consume_backup_code(self, account_id: str, code_hash: str, used_at: datetime) -> bool:
        """Conditional UPDATE; only one caller can see rowcount 1 for a given code."""
        with _storage_operation(self.session_factory, "consume_backup_code") as db:
            result = db.execute(
                update(BackupCodeRecord)
                .where(
                    BackupCodeRecord.account_id == account_id,
                    BackupCodeRecord.code_hash == code_hash,
                    BackupCodeRecord.used.is_(False),
                )
                .values(used=True, used_at=used_at)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    @staticmethod
    def _require(db: DBSession, account_id: str) -> AccountRecord:
        record = db.get(AccountRecord, account_id)
        if record is None:
            raise NotFoundError("Account", account_id)
        return record

    @staticmethod
    def _apply(record: AccountRecord, account: Account) -> None:
        record.password_hash = account.password_hash
        record.email = account.email
        record.phone_number = account.phone_number
        record.mfa_status = account.mfa_status.value
        record.mfa_method = account.mfa_method.value
        record.mfa_secret = account.mfa_secret
        record.backup_codes = [
            BackupCodeRecord(code_hash=code.code_hash, used=code.used, used_at=code.used_at)
            for code in account.backup_codes
        ]

    @staticmethod
    def _to_entity(record: AccountRecord) -> Account:
        return Account(
            account_id=record.id,
            password_hash=record.password_hash,
            email=record.email,
            phone_number=record.phone_number,
            mfa_status=MfaStatus(record.mfa_status),
            mfa_method=MfaMethod(record.mfa_method),
            mfa_secret=record.mfa_secret,
            backup_codes=[
                BackupCode(code_hash=code.code_hash, used=code.used, used_at=_as_utc(code.used_at))
                for code in record.backup_codes
            ],
        )


class SQLAlchemySessionStore(ISessionStore):
    """Session store over the ``account_sessions`` table."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    async def list_for_account(self, account_id: str) -> list[Session]:
        with _storage_operation(self.session_factory, "list_sessions") as db:
            records = db.scalars(select(SessionRecord).filter_by(account_id=account_id)).all()
            return [self._to_entity(record) for record in records]

    async def get(self, session_id: str) -> Session | None:
        with _storage_operation(self.session_factory, "get_session") as db:
            record = db.get(SessionRecord, session_id)
            return self._to_entity(record) if record else None

    async def add(self, session: Session) -> None:
        with _storage_operation(self.session_factory, "add_session") as db:
            record = SessionRecord(id=session.session_id, account_id=session.account_id)
            self._apply(record, session)
            db.add(record)

    async def update(self, session: Session) -> None:
        with _storage_operation(self.session_factory, "update_session") as db:
            record = db.get(SessionRecord, session.session_id)
            if record is None or record.account_id != session.account_id:
                raise NotFoundError("Session", session.session_id)
            self._apply(record, session)

    async def replace_for_account(self, account_id: str, sessions: list[Session]) -> None:
        with _storage_operation(self.session_factory, "replace_sessions") as db:
            wanted = {session.session_id: session for session in sessions}
            existing = db.scalars(select(SessionRecord).filter_by(account_id=account_id)).all()

            for record in existing:
                session = wanted.pop(record.id, None)
                if session is None:
                    db.delete(record)
                else:
                    self._apply(record, session)

            for session in wanted.values():
                record = SessionRecord(id=session.session_id, account_id=account_id)
                self._apply(record, session)
                db.add(record)

    async def list_account_ids(self) -> list[str]:
        with _storage_operation(self.session_factory, "list_session_accounts") as db:
            return list(db.scalars(select(SessionRecord.account_id).distinct()).all())

    @staticmethod
    def _apply(record: SessionRecord, session: Session) -> None:
        record.device_label = session.device_label
        record.browser_label = session.browser_label
        record.device_type = session.device_type.value
        record.source_ip = session.source_ip
        record.approximate_location = session.approximate_location
        record.requires_second_factor = session.requires_second_factor
        record.created_at = session.created_at
        record.last_active_at = session.last_active_at

    @staticmethod
    def _to_entity(record: SessionRecord) -> Session:
        return Session(
            account_id=record.account_id,
            session_id=record.id,
            device_label=record.device_label or "",
            browser_label=record.browser_label or "",
            device_type=DeviceType(record.device_type or DeviceType.UNKNOWN.value),
            source_ip=record.source_ip,
            approximate_location=record.approximate_location,
            created_at=_as_utc(record.created_at) or datetime.now(UTC),
            last_active_at=_as_utc(record.last_active_at) or datetime.now(UTC),
            requires_second_factor=bool(record.requires_second_factor),
        )
