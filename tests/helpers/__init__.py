"""Test helper utilities for the account security test suite."""

from tests.helpers.factories import (
    ACCOUNT_ID,
    ACCOUNT_PASSWORD,
    AccountFactory,
    FakeClock,
    create_test_session,
    wrong_totp_code,
)

__all__ = [
    "ACCOUNT_ID",
    "ACCOUNT_PASSWORD",
    "AccountFactory",
    "FakeClock",
    "create_test_session",
    "wrong_totp_code",
]
