"""
Session Entity - one authenticated device/browser context of an account
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any
from uuid import uuid4


class DeviceType(Enum):
    """Device type enumeration"""

    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"
    UNKNOWN = "unknown"


@dataclass
class Session:
    """
    Session entity.

    ``is_current`` is never stored; it is computed per request relative to
    the requesting session.
    """

    account_id: str
    session_id: str = field(default_factory=lambda: uuid4().hex)

    # Client description
    device_label: str = ""
    browser_label: str = ""
    device_type: DeviceType = DeviceType.UNKNOWN
    source_ip: str | None = None
    approximate_location: str | None = None

    # Timestamps
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_active_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    # Set when MFA was enabled after this session authenticated
    requires_second_factor: bool = False

    is_current: bool = False

    def annotated_for(self, requesting_session_id: str | None) -> Session:
        """Return a copy with ``is_current`` computed for the requester."""
        return replace(self, is_current=self.session_id == requesting_session_id)

    def idle_for(self, now: datetime) -> timedelta:
        return now - self.last_active_at

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "session_id": self.session_id,
            "device_label": self.device_label,
            "browser_label": self.browser_label,
            "device_type": self.device_type.value,
            "source_ip": self.source_ip,
            "approximate_location": self.approximate_location,
            "created_at": self.created_at.isoformat(),
            "last_active_at": self.last_active_at.isoformat(),
            "requires_second_factor": self.requires_second_factor,
            "is_current": self.is_current,
        }
