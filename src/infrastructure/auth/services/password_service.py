"""
Password management service.

Handles password hashing, verification and strength checking.
"""

import logging
import re

import bcrypt

logger = logging.getLogger(__name__)

# bcrypt only reads the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """Bcrypt password hashing utility."""

    def __init__(self, rounds: int = 12) -> None:
        """Initialize with bcrypt rounds (cost factor)."""
        self.rounds = rounds
        self._dummy_hash: bytes | None = None

    def hash(self, password: str) -> str:
        """Hash a password using bcrypt with a fresh salt."""
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against its hash in constant time."""
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError as e:
            logger.warning(f"Password verification rejected malformed input: {e}")
            return False

    def dummy_verify(self, password: str) -> None:
        """
        Spend the same work as ``verify`` against a throwaway hash.

        Used when there is no stored hash to compare against so the
        missing-account path costs the same as a mismatch.
        """
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(b"dummy-password", bcrypt.gensalt(rounds=self.rounds))
        bcrypt.checkpw(password.encode("utf-8")[:BCRYPT_MAX_BYTES], self._dummy_hash)

    def needs_rehash(self, password_hash: str) -> bool:
        """Check if password needs rehashing with updated rounds."""
        hash_parts = password_hash.split("$")
        if len(hash_parts) >= 3 and hash_parts[2].isdigit():
            return int(hash_parts[2]) < self.rounds
        return False


class PasswordPolicy:
    """Password strength policy."""

    COMMON_PASSWORDS = {
        "password",
        "123456",
        "1234567",
        "12345678",
        "password123",
        "admin",
        "admin123",
        "letmein",
        "qwerty",
        "monkey",
        "dragon",
        "baseball",
        "iloveyou",
        "trustno1",
        "welcome",
        "login",
    }

    def __init__(
        self,
        min_length: int = 6,
        reject_common_passwords: bool = True,
        require_complexity: bool = False,
    ) -> None:
        self.min_length = min_length
        self.reject_common_passwords = reject_common_passwords
        self.require_complexity = require_complexity

    def validate(self, password: str) -> list[str]:
        """
        Check password strength.

        Returns:
            List of problems, empty when the password is acceptable
        """
        errors = []

        if len(password) < self.min_length:
            errors.append(f"Password must be at least {self.min_length} characters long")
        if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
            errors.append(f"Password must not exceed {BCRYPT_MAX_BYTES} bytes")

        if self.require_complexity:
            if not re.search(r"[A-Z]", password):
                errors.append("Password must contain at least one uppercase letter")
            if not re.search(r"[a-z]", password):
                errors.append("Password must contain at least one lowercase letter")
            if not re.search(r"\d", password):
                errors.append("Password must contain at least one number")
            if not re.search(r"[!@#$%^&*()_+\-=\[\]{}|;:,.<>?]", password):
                errors.append("Password must contain at least one special character")

        if self.reject_common_passwords and password.lower() in self.COMMON_PASSWORDS:
            errors.append("Password is too common")

        return errors


class PasswordService:
    """Password management service."""

    def __init__(self, hasher: PasswordHasher | None = None, policy: PasswordPolicy | None = None) -> None:
        self.hasher = hasher or PasswordHasher()
        self.policy = policy or PasswordPolicy()

    def hash_password(self, password: str) -> str:
        """Hash a password."""
        return self.hasher.hash(password)

    def verify_password(self, password: str, password_hash: str | None) -> bool:
        """
        Verify a password against its hash.

        A missing hash still costs one bcrypt check and never matches.
        """
        if not password_hash:
            self.hasher.dummy_verify(password)
            return False
        return self.hasher.verify(password, password_hash)

    def needs_rehash(self, password_hash: str) -> bool:
        """True when the hash was made with a lower cost than the configured one."""
        return self.hasher.needs_rehash(password_hash)

    def validate_password(self, password: str) -> list[str]:
        """Validate password strength."""
        return self.policy.validate(password)
