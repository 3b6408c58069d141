"""
Configuration Management - account security settings from the environment
"""

import logging
import os
from dataclasses import dataclass
from datetime import timedelta

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class PasswordConfig:
    """Password rotation settings"""

    min_length: int = 6
    reject_common_passwords: bool = True
    require_complexity: bool = False
    invalidate_other_sessions: bool = True
    bcrypt_rounds: int = 12

    @classmethod
    def from_env(cls) -> "PasswordConfig":
        """Load password config from environment variables"""
        return cls(
            min_length=int(os.getenv("MIN_PASSWORD_LENGTH", "6")),
            reject_common_passwords=_env_bool("REJECT_COMMON_PASSWORDS", "true"),
            require_complexity=_env_bool("REQUIRE_PASSWORD_COMPLEXITY", "false"),
            invalidate_other_sessions=_env_bool("INVALIDATE_OTHER_SESSIONS", "true"),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "12")),
        )


@dataclass
class MfaConfig:
    """MFA enrollment and verification settings"""

    verification_attempts: int = 5
    enrollment_timeout_minutes: int = 10
    backup_code_count: int = 10
    totp_issuer: str = "Account Security"
    totp_valid_window: int = 1

    @property
    def enrollment_timeout(self) -> timedelta:
        return timedelta(minutes=self.enrollment_timeout_minutes)

    @classmethod
    def from_env(cls) -> "MfaConfig":
        """Load MFA config from environment variables"""
        return cls(
            verification_attempts=int(os.getenv("MFA_VERIFICATION_ATTEMPTS", "5")),
            enrollment_timeout_minutes=int(os.getenv("MFA_ENROLLMENT_TIMEOUT_MINUTES", "10")),
            backup_code_count=int(os.getenv("MFA_BACKUP_CODE_COUNT", "10")),
            totp_issuer=os.getenv("MFA_TOTP_ISSUER", "Account Security"),
            totp_valid_window=int(os.getenv("MFA_TOTP_VALID_WINDOW", "1")),
        )


@dataclass
class StorageConfig:
    """Backing store settings; unset URLs select the in-memory stores"""

    database_url: str | None = None
    redis_url: str | None = None
    session_max_idle_days: int = 30

    @property
    def session_max_idle(self) -> timedelta:
        return timedelta(days=self.session_max_idle_days)

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """Load storage config from environment variables"""
        return cls(
            database_url=os.getenv("DATABASE_URL") or None,
            redis_url=os.getenv("REDIS_URL") or None,
            session_max_idle_days=int(os.getenv("SESSION_MAX_IDLE_DAYS", "30")),
        )


@dataclass
class LoggingConfig:
    """Logging settings"""

    level: str = "INFO"
    json_format: bool = True

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        """Load logging config from environment variables"""
        return cls(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            json_format=os.getenv("LOG_FORMAT", "json").lower() == "json",
        )


@dataclass
class Config:
    """Account security configuration"""

    password: PasswordConfig
    mfa: MfaConfig
    storage: StorageConfig
    logging: LoggingConfig

    @classmethod
    def from_env(cls) -> "Config":
        """Load all configuration from environment variables"""
        config = cls(
            password=PasswordConfig.from_env(),
            mfa=MfaConfig.from_env(),
            storage=StorageConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )
        config.validate()
        return config

    @classmethod
    def defaults(cls) -> "Config":
        return cls(
            password=PasswordConfig(),
            mfa=MfaConfig(),
            storage=StorageConfig(),
            logging=LoggingConfig(),
        )

    def validate(self) -> None:
        """Raise ValueError for settings that cannot work."""
        errors = []
        if self.password.min_length < 1:
            errors.append("MIN_PASSWORD_LENGTH must be at least 1")
        if not 4 <= self.password.bcrypt_rounds <= 31:
            errors.append("BCRYPT_ROUNDS must be between 4 and 31")
        if self.mfa.verification_attempts < 1:
            errors.append("MFA_VERIFICATION_ATTEMPTS must be at least 1")
        if self.mfa.enrollment_timeout_minutes < 1:
            errors.append("MFA_ENROLLMENT_TIMEOUT_MINUTES must be at least 1")
        if self.mfa.backup_code_count < 1:
            errors.append("MFA_BACKUP_CODE_COUNT must be at least 1")
        if self.mfa.totp_valid_window < 0:
            errors.append("MFA_TOTP_VALID_WINDOW must not be negative")
        if self.storage.session_max_idle_days < 1:
            errors.append("SESSION_MAX_IDLE_DAYS must be at least 1")
        if self.logging.level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"LOG_LEVEL {self.logging.level} is not a logging level")

        if errors:
            for error in errors:
                logger.error(f"Invalid configuration: {error}")
            raise ValueError("; ".join(errors))


# Global configuration instance (lazy-loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get or create global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next call re-reads the environment."""
    global _config
    _config = None
