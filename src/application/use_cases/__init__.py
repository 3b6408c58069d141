"""
Application Use Cases Layer

One use case per account security operation. Each validates its request,
delegates to the owning flow and converts failures into typed results.
"""

from .account_security import (
    CancelEnrollmentUseCase,
    ConfirmMethodUseCase,
    DisableMfaUseCase,
    GetBackupCodesStatusUseCase,
    GetEnrollmentStatusUseCase,
    ListSessionsUseCase,
    RegenerateBackupCodesUseCase,
    RequestVerificationUseCase,
    RotatePasswordUseCase,
    StartEnrollmentUseCase,
    SubmitCodeUseCase,
    TerminateOtherSessionsUseCase,
    TerminateSessionUseCase,
)
from .base import GENERIC_FAILURE_MESSAGE, OperationResult, UseCase
from .base_request import BaseRequestDTO

__all__ = [
    # Base
    "UseCase",
    "OperationResult",
    "BaseRequestDTO",
    "GENERIC_FAILURE_MESSAGE",
    # Password
    "RotatePasswordUseCase",
    # MFA enrollment
    "StartEnrollmentUseCase",
    "ConfirmMethodUseCase",
    "RequestVerificationUseCase",
    "SubmitCodeUseCase",
    "CancelEnrollmentUseCase",
    "DisableMfaUseCase",
    "GetEnrollmentStatusUseCase",
    "RegenerateBackupCodesUseCase",
    "GetBackupCodesStatusUseCase",
    # Sessions
    "ListSessionsUseCase",
    "TerminateSessionUseCase",
    "TerminateOtherSessionsUseCase",
]
