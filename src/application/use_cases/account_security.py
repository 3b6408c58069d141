"""
Account Security Use Cases

One use case per management operation. Each delegates to the flow that
owns the behavior and shapes the success payload; failures are converted to
typed results by the UseCase base.
"""

from typing import Any

from src.infrastructure.auth.services.mfa_service import MfaEnrollmentFlow
from src.infrastructure.auth.services.password_rotation import PasswordRotationFlow
from src.infrastructure.auth.services.session_manager import SessionRegistry

from .base import UseCase
from .requests import (
    AccountRequest,
    ListSessionsRequest,
    PasswordConfirmedRequest,
    RotatePasswordRequest,
    StartEnrollmentRequest,
    SubmitCodeRequest,
    TerminateOtherSessionsRequest,
    TerminateSessionRequest,
)


class RotatePasswordUseCase(UseCase[RotatePasswordRequest]):
    def __init__(self, flow: PasswordRotationFlow) -> None:
        super().__init__()
        self.flow = flow

    async def process(self, request: RotatePasswordRequest) -> None:
        await self.flow.rotate_password(
            request.account_id,
            request.current_password,
            request.new_password,
            request.confirm_password,
            requesting_session_id=request.requesting_session_id,
        )


class StartEnrollmentUseCase(UseCase[StartEnrollmentRequest]):
    def __init__(self, flow: MfaEnrollmentFlow) -> None:
        super().__init__()
        self.flow = flow

    async def process(self, request: StartEnrollmentRequest) -> dict[str, Any]:
        status = await self.flow.start_enrollment(request.account_id, request.method)
        return status.to_dict()


class ConfirmMethodUseCase(UseCase[AccountRequest]):
    def __init__(self, flow: MfaEnrollmentFlow) -> None:
        super().__init__()
        self.flow = flow

    async def process(self, request: AccountRequest) -> dict[str, Any]:
        material = await self.flow.confirm_method(request.account_id)
        return material.to_dict()


class RequestVerificationUseCase(UseCase[AccountRequest]):
    def __init__(self, flow: MfaEnrollmentFlow) -> None:
        super().__init__()
        self.flow = flow

    async def process(self, request: AccountRequest) -> dict[str, Any]:
        status = await self.flow.request_verification(request.account_id)
        return status.to_dict()


class SubmitCodeUseCase(UseCase[SubmitCodeRequest]):
    def __init__(self, flow: MfaEnrollmentFlow) -> None:
        super().__init__()
        self.flow = flow

    async def process(self, request: SubmitCodeRequest) -> dict[str, Any]:
        backup_codes = await self.flow.submit_code(
            request.account_id, request.code, requesting_session_id=request.requesting_session_id
        )
        return {"state": "enrolled", "mfa_status": "enabled", "backup_codes": backup_codes}


class CancelEnrollmentUseCase(UseCase[AccountRequest]):
    def __init__(self, flow: MfaEnrollmentFlow) -> None:
        super().__init__()
        self.flow = flow

    async def process(self, request: AccountRequest) -> dict[str, Any]:
        status = await self.flow.cancel(request.account_id)
        return status.to_dict()


class DisableMfaUseCase(UseCase[PasswordConfirmedRequest]):
    def __init__(self, flow: MfaEnrollmentFlow) -> None:
        super().__init__()
        self.flow = flow

    async def process(self, request: PasswordConfirmedRequest) -> None:
        await self.flow.disable(
            request.account_id,
            request.current_password,
            requesting_session_id=request.requesting_session_id,
        )


class GetEnrollmentStatusUseCase(UseCase[AccountRequest]):
    def __init__(self, flow: MfaEnrollmentFlow) -> None:
        super().__init__()
        self.flow = flow

    async def process(self, request: AccountRequest) -> dict[str, Any]:
        status = await self.flow.get_enrollment_status(request.account_id)
        return status.to_dict()


class RegenerateBackupCodesUseCase(UseCase[PasswordConfirmedRequest]):
    def __init__(self, flow: MfaEnrollmentFlow) -> None:
        super().__init__()
        self.flow = flow

    async def process(self, request: PasswordConfirmedRequest) -> dict[str, Any]:
        codes = await self.flow.regenerate_backup_codes(request.account_id, request.current_password)
        return {"backup_codes": codes}


class GetBackupCodesStatusUseCase(UseCase[AccountRequest]):
    def __init__(self, flow: MfaEnrollmentFlow) -> None:
        super().__init__()
        self.flow = flow

    async def process(self, request: AccountRequest) -> dict[str, Any]:
        return await self.flow.get_backup_codes_status(request.account_id)


class ListSessionsUseCase(UseCase[ListSessionsRequest]):
    def __init__(self, registry: SessionRegistry) -> None:
        super().__init__()
        self.registry = registry

    async def process(self, request: ListSessionsRequest) -> list[dict[str, Any]]:
        sessions = await self.registry.list_sessions(request.account_id, request.requesting_session_id)
        return [session.to_dict() for session in sessions]


class TerminateSessionUseCase(UseCase[TerminateSessionRequest]):
    def __init__(self, registry: SessionRegistry) -> None:
        super().__init__()
        self.registry = registry

    async def process(self, request: TerminateSessionRequest) -> None:
        await self.registry.terminate_session(
            request.account_id, request.session_id, request.requesting_session_id
        )


class TerminateOtherSessionsUseCase(UseCase[TerminateOtherSessionsRequest]):
    def __init__(self, registry: SessionRegistry) -> None:
        super().__init__()
        self.registry = registry

    async def process(self, request: TerminateOtherSessionsRequest) -> dict[str, int]:
        removed = await self.registry.terminate_all_other_sessions(
            request.account_id, request.requesting_session_id
        )
        return {"terminated": removed}
