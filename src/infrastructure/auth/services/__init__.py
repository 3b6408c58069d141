"""
Authentication service components.

Focused services for password handling, one-time codes, sessions, password
rotation and MFA enrollment.
"""

from .mfa_service import EnrollmentStatus, MfaEnrollmentFlow, ProvisioningMaterial
from .otp import BackupCodeService, TotpService
from .password_rotation import PasswordRotationFlow
from .password_service import PasswordHasher, PasswordPolicy, PasswordService
from .session_manager import SessionRegistry

__all__ = [
    "PasswordHasher",
    "PasswordPolicy",
    "PasswordService",
    "TotpService",
    "BackupCodeService",
    "SessionRegistry",
    "PasswordRotationFlow",
    "MfaEnrollmentFlow",
    "EnrollmentStatus",
    "ProvisioningMaterial",
]
