"""
Dependency Injection Container - wiring of the account security subsystem.

Selects the backing stores from configuration (in-memory by default,
SQLAlchemy for credentials and sessions when DATABASE_URL is set, Redis for
enrollment attempts when REDIS_URL is set) and builds the flows on top of
them. The credential flows share one lock manager so that password
rotation, MFA enrollment and backup code consumption for one account are
serialized against each other; sessions use their own.
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar, cast

import redis
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.application.interfaces.repositories import (
    ICredentialStore,
    IEnrollmentAttemptStore,
    ISessionStore,
    ISmsSender,
)
from src.application.services.account_security_service import AccountSecurityService
from src.infrastructure.auth.mfa_enforcement import MfaEnforcementGate
from src.infrastructure.auth.models import Base
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
from src.infrastructure.config import Config
from src.infrastructure.monitoring.logging import configure_logging
from src.infrastructure.repositories import (
    InMemoryCredentialStore,
    InMemoryEnrollmentAttemptStore,
    InMemorySessionStore,
    RedisEnrollmentAttemptStore,
    SQLAlchemyCredentialStore,
    SQLAlchemySessionStore,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

CREDENTIAL_LOCKS = "credential_locks"
SESSION_LOCKS = "session_locks"


class DIContainer:
    """
    Dependency Injection Container for the account security subsystem.

    Components are created lazily on first ``get`` and cached; ``register``
    overrides a component with a pre-built instance (tests use it to inject
    stores, an SMS sender or a fixed clock).
    """

    def __init__(
        self,
        config: Config | None = None,
        clock: Callable[[], Any] | None = None,
    ) -> None:
        self.config = config or Config.defaults()
        self.clock = clock
        self._singletons: dict[Any, Any] = {}
        self._factories: dict[Any, Callable[[], Any]] = {}
        self._engine = None

        self._register_infrastructure()
        self._register_services()

        logger.info("Dependency injection container initialized")

    def _register_infrastructure(self) -> None:
        """Register stores and lock managers."""
        storage = self.config.storage

        if storage.database_url:
            self._register_singleton(
                ICredentialStore, lambda: SQLAlchemyCredentialStore(self._session_factory())
            )
            self._register_singleton(
                ISessionStore, lambda: SQLAlchemySessionStore(self._session_factory())
            )
        else:
            self._register_singleton(ICredentialStore, InMemoryCredentialStore)
            self._register_singleton(ISessionStore, InMemorySessionStore)

        if storage.redis_url:
            self._register_singleton(
                IEnrollmentAttemptStore,
                lambda: RedisEnrollmentAttemptStore(
                    redis.Redis.from_url(storage.redis_url),
                    ttl=self.config.mfa.enrollment_timeout,
                ),
            )
        else:
            self._register_singleton(IEnrollmentAttemptStore, InMemoryEnrollmentAttemptStore)

        self._register_singleton(CREDENTIAL_LOCKS, lambda: AccountLockManager("credential"))
        self._register_singleton(SESSION_LOCKS, lambda: AccountLockManager("session"))

    def _register_services(self) -> None:
        """Register auth services and flows."""
        password_config = self.config.password
        mfa_config = self.config.mfa

        self._register_singleton(
            PasswordHasher, lambda: PasswordHasher(rounds=password_config.bcrypt_rounds)
        )
        self._register_singleton(
            PasswordService,
            lambda: PasswordService(
                hasher=self.get(PasswordHasher),
                policy=PasswordPolicy(
                    min_length=password_config.min_length,
                    reject_common_passwords=password_config.reject_common_passwords,
                    require_complexity=password_config.require_complexity,
                ),
            ),
        )
        self._register_singleton(
            TotpService,
            lambda: TotpService(
                issuer=mfa_config.totp_issuer, valid_window=mfa_config.totp_valid_window
            ),
        )
        self._register_singleton(
            BackupCodeService,
            lambda: BackupCodeService(self.get(PasswordHasher), count=mfa_config.backup_code_count),
        )

        self._register_singleton(
            SessionRegistry,
            lambda: SessionRegistry(
                self.get(ISessionStore), locks=self.get(SESSION_LOCKS), clock=self.clock
            ),
        )
        self._register_singleton(
            PasswordRotationFlow,
            lambda: PasswordRotationFlow(
                credentials=self.get(ICredentialStore),
                password_service=self.get(PasswordService),
                session_registry=self.get(SessionRegistry),
                locks=self.get(CREDENTIAL_LOCKS),
                invalidate_other_sessions=password_config.invalidate_other_sessions,
            ),
        )
        self._register_singleton(
            MfaEnrollmentFlow,
            lambda: MfaEnrollmentFlow(
                credentials=self.get(ICredentialStore),
                attempts=self.get(IEnrollmentAttemptStore),
                password_service=self.get(PasswordService),
                totp=self.get(TotpService),
                backup_codes=self.get(BackupCodeService),
                session_registry=self.get(SessionRegistry),
                sms_sender=self.get(ISmsSender) if self.has(ISmsSender) else None,
                locks=self.get(CREDENTIAL_LOCKS),
                verification_attempts=mfa_config.verification_attempts,
                enrollment_timeout=mfa_config.enrollment_timeout,
                clock=self.clock,
            ),
        )
        self._register_singleton(
            MfaEnforcementGate,
            lambda: MfaEnforcementGate(
                credentials=self.get(ICredentialStore),
                totp=self.get(TotpService),
                backup_codes=self.get(BackupCodeService),
                sms_sender=self.get(ISmsSender) if self.has(ISmsSender) else None,
                locks=self.get(CREDENTIAL_LOCKS),
                clock=self.clock,
            ),
        )
        self._register_singleton(
            AccountSecurityService,
            lambda: AccountSecurityService(
                password_rotation=self.get(PasswordRotationFlow),
                enrollment=self.get(MfaEnrollmentFlow),
                sessions=self.get(SessionRegistry),
            ),
        )

    def _session_factory(self) -> sessionmaker:
        if self._engine is None:
            url = self.config.storage.database_url or "sqlite://"
            if url.startswith("sqlite"):
                # One shared connection keeps in-process sqlite databases visible to all sessions
                self._engine = create_engine(
                    url, connect_args={"check_same_thread": False}, poolclass=StaticPool
                )
            else:
                self._engine = create_engine(url, pool_pre_ping=True)
            Base.metadata.create_all(self._engine)
        return sessionmaker(bind=self._engine, expire_on_commit=False)

    def configure_logging(self) -> None:
        """Install the service log handler from ``config.logging``."""
        configure_logging(self.config.logging.level, json_format=self.config.logging.json_format)

    async def purge_expired_sessions(self) -> int:
        """Drop sessions idle longer than ``SESSION_MAX_IDLE_DAYS``; returns the count."""
        return await self.get(SessionRegistry).purge_expired(self.config.storage.session_max_idle)

    async def sweep_expired_enrollments(self) -> int:
        """Discard enrollment attempts past the enrollment timeout; returns the count."""
        return await self.get(MfaEnrollmentFlow).sweep_expired()

    def _register_singleton(self, key: Any, factory: Callable[[], Any]) -> None:
        """Register a lazily created singleton component."""
        self._factories[key] = factory

    def get(self, key: type[T] | str) -> T:
        """
        Get an instance of a registered component.

        Raises:
            KeyError: If the component is not registered
        """
        if key in self._singletons:
            return cast(T, self._singletons[key])

        if key not in self._factories:
            name = key if isinstance(key, str) else key.__name__
            raise KeyError(f"No registration found for {name}")

        instance = self._factories[key]()
        self._singletons[key] = instance
        return cast(T, instance)

    def has(self, key: Any) -> bool:
        """Check if a component is registered."""
        return key in self._factories

    def register(self, key: Any, instance: Any) -> None:
        """Register a pre-created instance."""
        self._singletons[key] = instance
        self._factories[key] = lambda: instance

    def cleanup(self) -> None:
        """Release database connections and drop cached components."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
        self._singletons.clear()

        logger.info("Container cleaned up successfully")


# Global container instance
_container: DIContainer | None = None


def get_container(config: Config | None = None) -> DIContainer:
    """Get the global container instance, creating it on first use."""
    global _container
    if _container is None:
        _container = DIContainer(config)
        _container.configure_logging()
    return _container


def reset_container() -> None:
    """Reset the global container instance."""
    global _container
    if _container is not None:
        _container.cleanup()
    _container = None
