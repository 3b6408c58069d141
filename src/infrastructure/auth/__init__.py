"""
Account security authentication components.

Password rotation, MFA enrollment, session management and the MFA
enforcement gate consulted by the login flow.
"""

from .mfa_enforcement import MfaEnforcementGate, MFAVerificationMethod
from .models import AccountRecord, BackupCodeRecord, Base, SessionRecord

__all__ = [
    # MFA Enforcement
    "MfaEnforcementGate",
    "MFAVerificationMethod",
    # Models
    "AccountRecord",
    "BackupCodeRecord",
    "SessionRecord",
    "Base",
]
