"""
AccountSecurityService - management API surface of the account security subsystem

Exposes password rotation, MFA enrollment and session administration to a
management UI/API layer. Every method returns an OperationResult; no
exception crosses this boundary.
"""

import logging
from typing import Any

from src.application.use_cases.account_security import (
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
from src.application.use_cases.base import OperationResult, UseCase
from src.application.use_cases.base_request import BaseRequestDTO
from src.application.use_cases.requests import (
    AccountRequest,
    ListSessionsRequest,
    PasswordConfirmedRequest,
    RotatePasswordRequest,
    StartEnrollmentRequest,
    SubmitCodeRequest,
    TerminateOtherSessionsRequest,
    TerminateSessionRequest,
)
from src.domain.exceptions import ErrorKind
from src.infrastructure.auth.services.mfa_service import MfaEnrollmentFlow
from src.infrastructure.auth.services.password_rotation import PasswordRotationFlow
from src.infrastructure.auth.services.session_manager import SessionRegistry

logger = logging.getLogger(__name__)


class AccountSecurityService:
    """Result-returning facade over the password, MFA and session flows."""

    def __init__(
        self,
        password_rotation: PasswordRotationFlow,
        enrollment: MfaEnrollmentFlow,
        sessions: SessionRegistry,
    ) -> None:
        self.enrollment = enrollment

        # operation name -> (request type, use case)
        self._operations: dict[str, tuple[type[BaseRequestDTO], UseCase[Any]]] = {
            "rotate_password": (RotatePasswordRequest, RotatePasswordUseCase(password_rotation)),
            "start_enrollment": (StartEnrollmentRequest, StartEnrollmentUseCase(enrollment)),
            "confirm_method": (AccountRequest, ConfirmMethodUseCase(enrollment)),
            "request_verification": (AccountRequest, RequestVerificationUseCase(enrollment)),
            "submit_code": (SubmitCodeRequest, SubmitCodeUseCase(enrollment)),
            "cancel_enrollment": (AccountRequest, CancelEnrollmentUseCase(enrollment)),
            "disable_mfa": (PasswordConfirmedRequest, DisableMfaUseCase(enrollment)),
            "get_enrollment_status": (AccountRequest, GetEnrollmentStatusUseCase(enrollment)),
            "regenerate_backup_codes": (
                PasswordConfirmedRequest,
                RegenerateBackupCodesUseCase(enrollment),
            ),
            "get_backup_codes_status": (AccountRequest, GetBackupCodesStatusUseCase(enrollment)),
            "list_sessions": (ListSessionsRequest, ListSessionsUseCase(sessions)),
            "terminate_session": (TerminateSessionRequest, TerminateSessionUseCase(sessions)),
            "terminate_all_other_sessions": (
                TerminateOtherSessionsRequest,
                TerminateOtherSessionsUseCase(sessions),
            ),
        }

    @property
    def operations(self) -> list[str]:
        return sorted(self._operations)

    async def handle(self, operation: str, body: dict[str, Any]) -> OperationResult:
        """
        Dispatch a loosely typed request body to a named operation.

        The body is mapped onto the operation's request type and validated
        before the operation runs.
        """
        entry = self._operations.get(operation)
        if entry is None:
            return OperationResult.error_response(
                ErrorKind.VALIDATION, f"Unknown operation: {operation}"
            )
        if not isinstance(body, dict):
            return OperationResult.error_response(
                ErrorKind.VALIDATION, "Request body must be an object"
            )

        request_type, use_case = entry
        try:
            request = request_type.from_mapping(body)
        except TypeError as e:
            logger.info(f"Malformed request body for {operation}: {e}")
            return OperationResult.error_response(ErrorKind.VALIDATION, "Malformed request body")
        return await use_case.execute(request)

    def list_available_methods(self) -> OperationResult:
        return OperationResult.success_response(self.enrollment.list_available_methods())

    # Password

    async def rotate_password(
        self,
        account_id: str,
        current_password: str,
        new_password: str,
        confirm_password: str,
        requesting_session_id: str,
    ) -> OperationResult:
        return await self._run(
            "rotate_password",
            RotatePasswordRequest(
                account_id=account_id,
                current_password=current_password,
                new_password=new_password,
                confirm_password=confirm_password,
                requesting_session_id=requesting_session_id,
            ),
        )

    # MFA enrollment

    async def start_enrollment(self, account_id: str, method: str) -> OperationResult:
        return await self._run(
            "start_enrollment", StartEnrollmentRequest(account_id=account_id, method=method)
        )

    async def confirm_method(self, account_id: str) -> OperationResult:
        return await self._run("confirm_method", AccountRequest(account_id=account_id))

    async def request_verification(self, account_id: str) -> OperationResult:
        return await self._run("request_verification", AccountRequest(account_id=account_id))

    async def submit_code(
        self, account_id: str, code: str, requesting_session_id: str | None = None
    ) -> OperationResult:
        return await self._run(
            "submit_code",
            SubmitCodeRequest(
                account_id=account_id, code=code, requesting_session_id=requesting_session_id
            ),
        )

    async def cancel_enrollment(self, account_id: str) -> OperationResult:
        return await self._run("cancel_enrollment", AccountRequest(account_id=account_id))

    async def disable_mfa(
        self, account_id: str, current_password: str, requesting_session_id: str | None = None
    ) -> OperationResult:
        return await self._run(
            "disable_mfa",
            PasswordConfirmedRequest(
                account_id=account_id,
                current_password=current_password,
                requesting_session_id=requesting_session_id,
            ),
        )

    async def get_enrollment_status(self, account_id: str) -> OperationResult:
        return await self._run("get_enrollment_status", AccountRequest(account_id=account_id))

    async def regenerate_backup_codes(self, account_id: str, current_password: str) -> OperationResult:
        return await self._run(
            "regenerate_backup_codes",
            PasswordConfirmedRequest(account_id=account_id, current_password=current_password),
        )

    async def get_backup_codes_status(self, account_id: str) -> OperationResult:
        return await self._run("get_backup_codes_status", AccountRequest(account_id=account_id))

    # Sessions

    async def list_sessions(self, account_id: str, requesting_session_id: str) -> OperationResult:
        return await self._run(
            "list_sessions",
            ListSessionsRequest(account_id=account_id, requesting_session_id=requesting_session_id),
        )

    async def terminate_session(
        self, account_id: str, session_id: str, requesting_session_id: str
    ) -> OperationResult:
        return await self._run(
            "terminate_session",
            TerminateSessionRequest(
                account_id=account_id,
                session_id=session_id,
                requesting_session_id=requesting_session_id,
            ),
        )

    async def terminate_all_other_sessions(
        self, account_id: str, requesting_session_id: str
    ) -> OperationResult:
        return await self._run(
            "terminate_all_other_sessions",
            TerminateOtherSessionsRequest(
                account_id=account_id, requesting_session_id=requesting_session_id
            ),
        )

    async def _run(self, operation: str, request: BaseRequestDTO) -> OperationResult:
        _, use_case = self._operations[operation]
        return await use_case.execute(request)
