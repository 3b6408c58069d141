"""
Application Services - management API surface

The AccountSecurityService facade exposes every account security operation
and guarantees that no exception crosses into the API layer.
"""

from .account_security_service import AccountSecurityService

__all__ = [
    "AccountSecurityService",
]
