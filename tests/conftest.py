"""Global pytest configuration and fixtures."""

# Standard library imports
from pathlib import Path

# Load test environment variables
from dotenv import load_dotenv

test_env_path = Path(__file__).parent.parent / ".env.test"
if test_env_path.exists():
    load_dotenv(test_env_path, override=True)

# Third-party imports
import pytest

# Local imports
from src.domain.entities.account import Account
from src.infrastructure.auth.mfa_enforcement import MfaEnforcementGate
from src.infrastructure.auth.services.mfa_service import MfaEnrollmentFlow
from src.infrastructure.auth.services.otp import BackupCodeService, TotpService
from src.infrastructure.auth.services.password_rotation import PasswordRotationFlow
from src.infrastructure.auth.services.password_service import (
    PasswordHasher,
    PasswordPolicy,
    PasswordService,
)
from src.infrastructure.auth.services.session_manager import SessionRegistry
from src.infrastructure.concurrency import AccountLockManager
from src.infrastructure.repositories import (
    InMemoryCredentialStore,
    InMemoryEnrollmentAttemptStore,
    InMemorySessionStore,
)
from tests.helpers import ACCOUNT_ID, ACCOUNT_PASSWORD, FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def hasher() -> PasswordHasher:
    """Minimum bcrypt cost keeps hashing fast in tests."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def password_service(hasher) -> PasswordService:
    return PasswordService(hasher=hasher, policy=PasswordPolicy(min_length=6))


@pytest.fixture
def totp_service() -> TotpService:
    return TotpService(issuer="Test Issuer", valid_window=1)


@pytest.fixture
def backup_code_service(hasher) -> BackupCodeService:
    return BackupCodeService(hasher, count=10)


@pytest.fixture
def credential_store(password_service) -> InMemoryCredentialStore:
    store = InMemoryCredentialStore()
    store.add_account(
        Account(
            account_id=ACCOUNT_ID,
            password_hash=password_service.hash_password(ACCOUNT_PASSWORD),
            email="owner@example.com",
            phone_number="+15551234567",
        )
    )
    return store


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def attempt_store() -> InMemoryEnrollmentAttemptStore:
    return InMemoryEnrollmentAttemptStore()


@pytest.fixture
def credential_locks() -> AccountLockManager:
    return AccountLockManager("credential")


@pytest.fixture
def session_registry(session_store, clock) -> SessionRegistry:
    return SessionRegistry(session_store, locks=AccountLockManager("session"), clock=clock)


@pytest.fixture
def rotation_flow(credential_store, password_service, session_registry, credential_locks):
    return PasswordRotationFlow(
        credentials=credential_store,
        password_service=password_service,
        session_registry=session_registry,
        locks=credential_locks,
    )


@pytest.fixture
def enrollment_flow(
    credential_store,
    attempt_store,
    password_service,
    totp_service,
    backup_code_service,
    session_registry,
    credential_locks,
    clock,
) -> MfaEnrollmentFlow:
    return MfaEnrollmentFlow(
        credentials=credential_store,
        attempts=attempt_store,
        password_service=password_service,
        totp=totp_service,
        backup_codes=backup_code_service,
        session_registry=session_registry,
        locks=credential_locks,
        clock=clock,
    )


@pytest.fixture
def enforcement_gate(credential_store, totp_service, backup_code_service, credential_locks, clock):
    return MfaEnforcementGate(
        credentials=credential_store,
        totp=totp_service,
        backup_codes=backup_code_service,
        locks=credential_locks,
        clock=clock,
    )
