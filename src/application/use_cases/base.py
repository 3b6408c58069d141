"""
Base Use Case

Provides the boundary every management operation goes through: request
validation, logging, and conversion of failures into typed results. No
exception crosses this boundary.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, TypeVar
from uuid import UUID, uuid4

from src.domain.exceptions import AccountSecurityError, ErrorKind

logger = logging.getLogger(__name__)

TRequest = TypeVar("TRequest")

GENERIC_FAILURE_MESSAGE = "The operation could not be completed. Please try again later."


@dataclass
class OperationResult:
    """Typed result of a management operation."""

    ok: bool
    data: Any | None = None
    error_kind: ErrorKind | None = None
    message: str | None = None
    request_id: UUID | None = None

    @classmethod
    def success_response(cls, data: Any, request_id: UUID | None = None) -> "OperationResult":
        """Create a successful result."""
        return cls(ok=True, data=data, request_id=request_id)

    @classmethod
    def error_response(
        cls, error_kind: ErrorKind, message: str, request_id: UUID | None = None
    ) -> "OperationResult":
        """Create a failed result."""
        return cls(ok=False, error_kind=error_kind, message=message, request_id=request_id)

    def to_dict(self) -> dict[str, Any]:
        """Wire shape: ``{ok, data}`` or ``{ok, error_kind, message}``."""
        if self.ok:
            return {"ok": True, "data": self.data}
        return {
            "ok": False,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "message": self.message,
        }


class UseCase(ABC, Generic[TRequest]):
    """
    Abstract base class for account security operations.

    Subclasses implement ``process`` and may rely on the request's own
    ``validate`` for field checks.
    """

    def __init__(self, name: str | None = None) -> None:
        self.name = name or self.__class__.__name__
        self.logger = logging.getLogger(f"{__name__}.{self.name}")

    async def execute(self, request: TRequest) -> OperationResult:
        """
        Execute the operation.

        Args:
            request: The operation request

        Returns:
            OperationResult carrying either the payload or a typed error
        """
        request_id = getattr(request, "request_id", None) or uuid4()

        self.logger.debug(
            f"Executing {self.name}",
            extra={"request_id": str(request_id), "use_case": self.name},
        )

        validation_error = self.validate(request)
        if validation_error:
            self.logger.info(
                f"Validation failed for {self.name}: {validation_error}",
                extra={"request_id": str(request_id)},
            )
            return OperationResult.error_response(ErrorKind.VALIDATION, validation_error, request_id)

        try:
            data = await self.process(request)
        except AccountSecurityError as e:
            return self._error_result(e, request_id)
        except Exception as e:
            self.logger.error(
                f"Unexpected error executing {self.name}: {e}",
                extra={"request_id": str(request_id)},
                exc_info=True,
            )
            return OperationResult.error_response(
                ErrorKind.INTERNAL, GENERIC_FAILURE_MESSAGE, request_id
            )

        return OperationResult.success_response(data, request_id)

    def validate(self, request: TRequest) -> str | None:
        """
        Validate the request.

        Returns:
            Error message if validation fails, None otherwise
        """
        validator = getattr(request, "validate", None)
        return validator() if validator else None

    @abstractmethod
    async def process(self, request: TRequest) -> Any:
        """
        Run the operation.

        Returns:
            The success payload (may be None)

        Raises:
            AccountSecurityError: Converted to a typed error result
        """
        pass

    def _error_result(self, error: AccountSecurityError, request_id: UUID) -> OperationResult:
        if error.kind is ErrorKind.STORAGE:
            # Backend details stay in the log
            self.logger.error(
                f"Storage failure in {self.name}: {error.message}",
                extra={"request_id": str(request_id)},
                exc_info=error,
            )
            return OperationResult.error_response(
                ErrorKind.STORAGE, GENERIC_FAILURE_MESSAGE, request_id
            )

        self.logger.info(
            f"{self.name} rejected: {error.kind.value}",
            extra={"request_id": str(request_id), "error_kind": error.kind.value},
        )
        return OperationResult.error_response(error.kind, error.message, request_id)
