"""
Infrastructure Monitoring Module

Structured logging with correlation IDs, trace context and masking of
credentials and one-time codes.
"""

from .logging import (
    SecurityJSONFormatter,
    SensitiveDataMasker,
    configure_logging,
    correlation_context,
    correlation_id_var,
)

__all__ = [
    "SecurityJSONFormatter",
    "SensitiveDataMasker",
    "configure_logging",
    "correlation_context",
    "correlation_id_var",
]
