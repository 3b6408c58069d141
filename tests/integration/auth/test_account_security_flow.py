"""
Integration tests for complete account security flows.

Everything is wired through the DI container on top of an in-memory SQLite
database, so enrollment, password rotation, session management and the
second factor gate all run against the SQLAlchemy stores.
"""

import asyncio
import copy

import pyotp
import pytest
import pytest_asyncio

from src.application.interfaces.repositories import ICredentialStore, ISessionStore
from src.application.services import AccountSecurityService
from src.domain.entities.account import Account
from src.domain.entities.session import DeviceType
from src.domain.exceptions import ErrorKind, InvalidCodeError
from src.infrastructure.auth.mfa_enforcement import MfaEnforcementGate, MFAVerificationMethod
from src.infrastructure.auth.services.otp import BackupCodeService, TotpService
from src.infrastructure.auth.services.password_service import PasswordService
from src.infrastructure.auth.services.session_manager import SessionRegistry
from src.infrastructure.concurrency import AccountLockManager
from src.infrastructure.config import Config
from src.infrastructure.container import DIContainer
from src.infrastructure.repositories import SQLAlchemyCredentialStore
from tests.helpers import ACCOUNT_ID, ACCOUNT_PASSWORD, AccountFactory

NEW_PASSWORD = "second-horse-battery"


class StaleReadCredentialStore(SQLAlchemyCredentialStore):
    """Answers reads from a fixed snapshot, like a worker behind a lagging replica."""

    def __init__(self, session_factory, snapshot: Account) -> None:
        super().__init__(session_factory)
        self.snapshot = snapshot

    async def find_account(self, account_id: str) -> Account | None:
        if account_id != self.snapshot.account_id:
            return None
        return copy.deepcopy(self.snapshot)


@pytest.fixture(scope="function")
def container():
    """Container backed by a private in-memory SQLite database."""
    config = Config.defaults()
    config.storage.database_url = "sqlite://"
    config.password.bcrypt_rounds = 4

    container = DIContainer(config)
    yield container
    container.cleanup()


@pytest_asyncio.fixture
async def account(container):
    credentials = container.get(ICredentialStore)
    assert isinstance(credentials, SQLAlchemyCredentialStore)

    password_hash = container.get(PasswordService).hash_password(ACCOUNT_PASSWORD)
    await credentials.create_account(
        AccountFactory.create(ACCOUNT_ID, password_hash=password_hash, email="owner@example.com")
    )
    return await credentials.find_account(ACCOUNT_ID)


@pytest_asyncio.fixture
async def devices(container, account):
    """Three logged in devices; the first one drives the requests."""
    registry = container.get(SessionRegistry)
    sessions = []
    for label, device_type in (
        ("MacBook Pro", DeviceType.DESKTOP),
        ("Pixel 8", DeviceType.MOBILE),
        ("iPad", DeviceType.TABLET),
    ):
        sessions.append(
            await registry.create_session(
                ACCOUNT_ID, device_label=label, device_type=device_type, source_ip="198.51.100.4"
            )
        )
    return [session.session_id for session in sessions]


@pytest.fixture
def service(container):
    return container.get(AccountSecurityService)


async def enroll(service, current_session_id=None):
    """Drive an authenticator-app enrollment to completion."""
    await service.start_enrollment(ACCOUNT_ID, "authenticator_app")
    material = await service.confirm_method(ACCOUNT_ID)
    await service.request_verification(ACCOUNT_ID)

    secret = material.data["manual_entry_key"]
    result = await service.submit_code(ACCOUNT_ID, pyotp.TOTP(secret).now(), current_session_id)
    assert result.ok, result.to_dict()
    return secret, result.data["backup_codes"]


class TestEnrollmentFlow:
    """Test MFA enrollment end to end."""

    @pytest.mark.asyncio
    async def test_enrollment_persists_secret_and_codes(self, container, service, account):
        secret, codes = await enroll(service)

        stored = await container.get(ICredentialStore).find_account(ACCOUNT_ID)
        assert stored.mfa_enabled
        assert stored.mfa_secret == secret
        assert len(stored.backup_codes) == len(codes) == 10
        assert all(code.code_hash not in codes for code in stored.backup_codes)

        status = await service.get_enrollment_status(ACCOUNT_ID)
        assert status.data["state"] == "enrolled"

    @pytest.mark.asyncio
    async def test_enrollment_flags_other_sessions(self, container, service, devices):
        current, *others = devices

        await enroll(service, current)

        listed = await service.list_sessions(ACCOUNT_ID, current)
        flags = {s["session_id"]: s["requires_second_factor"] for s in listed.data}
        assert flags[current] is False
        assert all(flags[session_id] for session_id in others)

    @pytest.mark.asyncio
    async def test_disable_clears_mfa(self, container, service, devices):
        current = devices[0]
        await enroll(service, current)

        wrong = await service.disable_mfa(ACCOUNT_ID, "not-my-password", current)
        assert wrong.error_kind is ErrorKind.AUTHENTICATION

        assert (await service.disable_mfa(ACCOUNT_ID, ACCOUNT_PASSWORD, current)).ok

        stored = await container.get(ICredentialStore).find_account(ACCOUNT_ID)
        assert not stored.mfa_enabled
        assert stored.mfa_secret is None
        assert stored.backup_codes == []
        sessions = await container.get(ISessionStore).list_for_account(ACCOUNT_ID)
        assert not any(session.requires_second_factor for session in sessions)


class TestSecondFactorGate:
    """Test login-time second factor checks against persisted state."""

    @pytest.mark.asyncio
    async def test_totp_and_backup_codes(self, container, service, account):
        secret, codes = await enroll(service)
        gate = container.get(MfaEnforcementGate)
        credentials = container.get(ICredentialStore)

        account = await credentials.find_account(ACCOUNT_ID)
        assert gate.requires_second_factor(account)
        assert await gate.verify_second_factor(account, pyotp.TOTP(secret).now()) is (
            MFAVerificationMethod.TOTP
        )
        assert await gate.verify_second_factor(account, codes[0]) is (
            MFAVerificationMethod.BACKUP_CODE
        )

        fresh = await credentials.find_account(ACCOUNT_ID)
        with pytest.raises(InvalidCodeError):
            await gate.verify_second_factor(fresh, codes[0])

        status = await service.get_backup_codes_status(ACCOUNT_ID)
        assert status.data == {
            "mfa_enabled": True,
            "total_codes": 10,
            "used_codes": 1,
            "remaining_codes": 9,
        }

    @pytest.mark.asyncio
    async def test_concurrent_backup_code_use(self, container, service, account):
        _, codes = await enroll(service)
        gate = container.get(MfaEnforcementGate)
        credentials = container.get(ICredentialStore)
        first = await credentials.find_account(ACCOUNT_ID)
        second = await credentials.find_account(ACCOUNT_ID)

        results = await asyncio.gather(
            gate.verify_second_factor(first, codes[5]),
            gate.verify_second_factor(second, codes[5]),
            return_exceptions=True,
        )

        assert sum(1 for r in results if r is MFAVerificationMethod.BACKUP_CODE) == 1
        assert sum(1 for r in results if isinstance(r, InvalidCodeError)) == 1

    @pytest.mark.asyncio
    async def test_backup_code_single_use_across_workers(self, container, service, account):
        """Two gates with their own locks and stale reads still spend a code once."""
        _, codes = await enroll(service)
        credentials = container.get(ICredentialStore)
        snapshot = await credentials.find_account(ACCOUNT_ID)

        def worker(name: str) -> MfaEnforcementGate:
            return MfaEnforcementGate(
                credentials=StaleReadCredentialStore(credentials.session_factory, snapshot),
                totp=container.get(TotpService),
                backup_codes=container.get(BackupCodeService),
                locks=AccountLockManager(name),
            )

        results = await asyncio.gather(
            worker("worker-a").verify_second_factor(copy.deepcopy(snapshot), codes[3]),
            worker("worker-b").verify_second_factor(copy.deepcopy(snapshot), codes[3]),
            return_exceptions=True,
        )

        assert sum(1 for r in results if r is MFAVerificationMethod.BACKUP_CODE) == 1
        assert sum(1 for r in results if isinstance(r, InvalidCodeError)) == 1
        stored = await credentials.find_account(ACCOUNT_ID)
        assert len(stored.unused_backup_codes()) == 9

    @pytest.mark.asyncio
    async def test_regenerated_codes_replace_old_ones(self, container, service, account):
        _, old_codes = await enroll(service)
        gate = container.get(MfaEnforcementGate)

        result = await service.regenerate_backup_codes(ACCOUNT_ID, ACCOUNT_PASSWORD)
        new_codes = result.data["backup_codes"]
        account = await container.get(ICredentialStore).find_account(ACCOUNT_ID)

        with pytest.raises(InvalidCodeError):
            await gate.verify_second_factor(account, old_codes[0])
        assert await gate.verify_second_factor(account, new_codes[0]) is (
            MFAVerificationMethod.BACKUP_CODE
        )


class TestPasswordAndSessionFlow:
    """Test password rotation together with session management."""

    @pytest.mark.asyncio
    async def test_rotation_keeps_only_current_session(self, container, service, devices):
        current = devices[0]

        result = await service.rotate_password(
            ACCOUNT_ID, ACCOUNT_PASSWORD, NEW_PASSWORD, NEW_PASSWORD, current
        )

        assert result.ok
        listed = await service.list_sessions(ACCOUNT_ID, current)
        assert [s["session_id"] for s in listed.data] == [current]
        assert listed.data[0]["is_current"] is True

        stored = await container.get(ICredentialStore).find_account(ACCOUNT_ID)
        assert container.get(PasswordService).verify_password(NEW_PASSWORD, stored.password_hash)

    @pytest.mark.asyncio
    async def test_failed_rotation_changes_nothing(self, container, service, devices):
        before = (await container.get(ICredentialStore).find_account(ACCOUNT_ID)).password_hash

        result = await service.rotate_password(
            ACCOUNT_ID, "wrong", NEW_PASSWORD, NEW_PASSWORD, devices[0]
        )

        assert result.error_kind is ErrorKind.AUTHENTICATION
        after = (await container.get(ICredentialStore).find_account(ACCOUNT_ID)).password_hash
        assert after == before
        assert len((await service.list_sessions(ACCOUNT_ID, devices[0])).data) == 3

    @pytest.mark.asyncio
    async def test_session_management(self, service, devices):
        current, laptop, tablet = devices

        listed = await service.list_sessions(ACCOUNT_ID, current)
        assert {s["device_type"] for s in listed.data} == {"desktop", "mobile", "tablet"}

        assert (await service.terminate_session(ACCOUNT_ID, laptop, current)).ok
        assert (await service.terminate_session(ACCOUNT_ID, laptop, current)).error_kind is (
            ErrorKind.NOT_FOUND
        )
        assert (await service.terminate_session(ACCOUNT_ID, current, current)).error_kind is (
            ErrorKind.FORBIDDEN
        )

        others = await service.terminate_all_other_sessions(ACCOUNT_ID, current)
        assert others.data == {"terminated": 1}
        remaining = await service.list_sessions(ACCOUNT_ID, current)
        assert [s["session_id"] for s in remaining.data] == [current]

    @pytest.mark.asyncio
    async def test_other_account_sessions_are_invisible(self, container, service, devices):
        await container.get(ICredentialStore).create_account(AccountFactory.create("acct-2002"))
        intruder = await container.get(SessionRegistry).create_session("acct-2002")

        result = await service.terminate_session(ACCOUNT_ID, intruder.session_id, devices[0])

        assert result.error_kind is ErrorKind.NOT_FOUND
        assert await container.get(ISessionStore).get(intruder.session_id) is not None
