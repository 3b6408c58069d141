"""
Structured Logging for the account security subsystem

JSON structured logs with correlation IDs, OpenTelemetry trace context and
masking of credentials, one-time codes and MFA secrets.
"""

import json
import logging
import re
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from opentelemetry import trace

# Context variables for correlation tracking
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


@dataclass
class SensitiveDataConfig:
    """Configuration for sensitive data masking."""

    # key=value / key: value pairs in messages
    message_patterns: list[str] = field(
        default_factory=lambda: [
            r"password",
            r"secret",
            r"token",
            r"otp",
            r"backup[_-]?code",
            r"code",
        ]
    )

    # Extra fields whose values are always masked
    sensitive_fields: set[str] = field(
        default_factory=lambda: {
            "code",
            "backup_code",
            "backup_codes",
            "secret",
            "mfa_secret",
            "pending_secret",
            "manual_entry_key",
            "provisioning_uri",
            "token",
        }
    )

    # Extra fields dropped entirely
    excluded_fields: set[str] = field(
        default_factory=lambda: {"password", "current_password", "new_password", "confirm_password"}
    )

    mask_replacement: str = "***MASKED***"


class SensitiveDataMasker:
    """Masks sensitive data in log messages and extra fields."""

    def __init__(self, config: SensitiveDataConfig) -> None:
        self.config = config
        self._compiled_patterns = [
            re.compile(rf'("{pattern}":\s*"[^"]*"|\b{pattern}=\S+|\b{pattern}:\s*\S+)', re.IGNORECASE)
            for pattern in config.message_patterns
        ]

    def mask_message(self, message: str) -> str:
        """Mask sensitive data in log message."""
        for pattern in self._compiled_patterns:
            message = pattern.sub(lambda m: self._replace_value(m.group(0)), message)
        return message

    def mask_extra_fields(self, extra: dict[str, Any]) -> dict[str, Any]:
        """Mask sensitive data in extra log fields."""
        masked: dict[str, Any] = {}
        for key, value in extra.items():
            lowered = key.lower()
            if lowered in self.config.excluded_fields:
                continue
            if lowered in self.config.sensitive_fields:
                masked[key] = self.config.mask_replacement
            elif isinstance(value, str):
                masked[key] = self.mask_message(value)
            elif isinstance(value, dict):
                masked[key] = self.mask_extra_fields(value)
            else:
                masked[key] = value
        return masked

    def _replace_value(self, match: str) -> str:
        if "=" in match and (":" not in match or match.index("=") < match.index(":")):
            return f"{match.split('=', 1)[0]}={self.config.mask_replacement}"
        return f'{match.split(":", 1)[0]}: "{self.config.mask_replacement}"'


class SecurityContextFilter(logging.Filter):
    """Attach correlation ID and OpenTelemetry trace context to records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()

        span = trace.get_current_span()
        if span.is_recording():
            span_context = span.get_span_context()
            record.trace_id = format(span_context.trace_id, "032x") if span_context.trace_id else None
            record.span_id = format(span_context.span_id, "016x") if span_context.span_id else None
        else:
            record.trace_id = None
            record.span_id = None
        return True


_STANDARD_FIELDS = set(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "correlation_id",
    "trace_id",
    "span_id",
}


class SecurityJSONFormatter(logging.Formatter):
    """JSON formatter for structured security logs."""

    def __init__(
        self,
        sensitive_data_config: SensitiveDataConfig | None = None,
        include_extra: bool = True,
        sort_keys: bool = True,
    ):
        super().__init__()
        self.include_extra = include_extra
        self.sort_keys = sort_keys
        self.masker = SensitiveDataMasker(sensitive_data_config or SensitiveDataConfig())

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": self.masker.mask_message(record.getMessage()),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name in ("correlation_id", "trace_id", "span_id"):
            value = getattr(record, name, None)
            if value:
                log_entry[name] = value

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        if self.include_extra:
            extra = {
                key: self._serialize_value(value)
                for key, value in record.__dict__.items()
                if key not in _STANDARD_FIELDS and not key.startswith("_")
            }
            if extra:
                log_entry["extra"] = self.masker.mask_extra_fields(extra)

        return json.dumps(log_entry, sort_keys=self.sort_keys, default=self._serialize_value)

    def _serialize_value(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, uuid.UUID):
            return str(value)
        if isinstance(value, (str, int, float, bool, type(None), dict, list)):
            return value
        return str(value)


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Install the root handler used by the service."""
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(SecurityContextFilter())
    if json_format:
        handler.setFormatter(SecurityJSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] [%(correlation_id)s] %(message)s")
        )

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)


@contextmanager
def correlation_context(correlation_id: str | None = None) -> Generator[str, None, None]:
    """Bind a correlation ID to every log record emitted inside the block."""
    value = correlation_id or uuid.uuid4().hex
    token = correlation_id_var.set(value)
    try:
        yield value
    finally:
        correlation_id_var.reset(token)
