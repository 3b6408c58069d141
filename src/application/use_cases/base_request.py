"""
Base Request DTO for Use Cases

Every management operation takes a statically declared request object with
an enumerated set of required fields. Requests are checked at the boundary,
before any operation logic runs.
"""

from dataclasses import dataclass, field, fields
from typing import Any, ClassVar
from uuid import UUID, uuid4


@dataclass(kw_only=True)
class BaseRequestDTO:
    """
    Base class for all request DTOs.

    Subclasses list the fields that must be non-empty strings in
    ``required_fields``; ``validate`` reports the first one missing.

    Uses kw_only=True to allow derived classes to have required fields
    before optional ones from the base class.
    """

    required_fields: ClassVar[tuple[str, ...]] = ()

    request_id: UUID = field(default_factory=uuid4)
    correlation_id: UUID | None = field(default=None)
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, body: dict[str, Any]) -> "BaseRequestDTO":
        """
        Build a request from a loosely typed body.

        Unknown keys are dropped; missing required fields become empty
        strings so ``validate`` can report them.
        """
        known = {f.name for f in fields(cls) if f.init}
        values = {key: value for key, value in body.items() if key in known}
        for name in cls.required_fields:
            values.setdefault(name, "")
        return cls(**values)

    def validate(self) -> str | None:
        """Return an error message for the first invalid field, or None."""
        for name in self.required_fields:
            value = getattr(self, name, None)
            if not isinstance(value, str):
                return f"Field '{name}' must be a string"
            if not value.strip():
                return f"Field '{name}' is required"
        return None

    def with_correlation_id(self, correlation_id: UUID) -> "BaseRequestDTO":
        """Set the correlation ID and return self for chaining."""
        self.correlation_id = correlation_id
        return self
