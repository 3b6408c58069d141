"""
Unit tests for the EnrollmentAttempt state machine.
"""

from datetime import UTC, datetime, timedelta

import pytest

from src.domain.entities.account import MfaMethod
from src.domain.entities.enrollment import (
    DEFAULT_VERIFICATION_ATTEMPTS,
    EnrollmentAttempt,
    EnrollmentEvent,
    EnrollmentState,
)
from src.domain.exceptions import ErrorKind, InvalidStateError


@pytest.fixture
def now():
    return datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def attempt(now):
    return EnrollmentAttempt(
        account_id="acct-1",
        chosen_method=MfaMethod.AUTHENTICATOR_APP,
        started_at=now,
        last_activity_at=now,
    )


def advance_to_pending(attempt: EnrollmentAttempt, now: datetime) -> None:
    attempt.apply(EnrollmentEvent.CONFIRM_METHOD, now)
    attempt.apply(EnrollmentEvent.REQUEST_VERIFICATION, now)


class TestTransitions:
    """Test the allowed and rejected transitions."""

    def test_new_attempt_starts_in_method_selection(self, attempt):
        assert attempt.state is EnrollmentState.METHOD_SELECTION
        assert attempt.verification_attempts_remaining == DEFAULT_VERIFICATION_ATTEMPTS
        assert attempt.version == 0

    def test_happy_path_reaches_enrolled(self, attempt, now):
        assert attempt.apply(EnrollmentEvent.CONFIRM_METHOD, now) is EnrollmentState.SECRET_ISSUED
        assert (
            attempt.apply(EnrollmentEvent.REQUEST_VERIFICATION, now)
            is EnrollmentState.PENDING_VERIFICATION
        )
        assert attempt.apply(EnrollmentEvent.VERIFY, now) is EnrollmentState.ENROLLED
        assert attempt.state.is_terminal

    @pytest.mark.parametrize(
        "steps",
        [
            [],
            [EnrollmentEvent.CONFIRM_METHOD],
            [EnrollmentEvent.CONFIRM_METHOD, EnrollmentEvent.REQUEST_VERIFICATION],
        ],
    )
    def test_cancel_allowed_from_every_non_terminal_state(self, attempt, now, steps):
        for event in steps:
            attempt.apply(event, now)

        assert attempt.apply(EnrollmentEvent.CANCEL, now) is EnrollmentState.CANCELLED

    def test_submit_before_verification_requested_is_rejected(self, attempt, now):
        attempt.apply(EnrollmentEvent.CONFIRM_METHOD, now)

        with pytest.raises(InvalidStateError) as exc_info:
            attempt.apply(EnrollmentEvent.VERIFY, now)

        assert exc_info.value.kind is ErrorKind.INVALID_STATE
        assert exc_info.value.details == {"event": "submit_code", "state": "secret_issued"}
        assert attempt.state is EnrollmentState.SECRET_ISSUED

    def test_terminal_states_reject_every_event(self, attempt, now):
        attempt.apply(EnrollmentEvent.CANCEL, now)

        for event in EnrollmentEvent:
            with pytest.raises(InvalidStateError):
                attempt.apply(event, now)

    def test_confirm_method_twice_is_rejected(self, attempt, now):
        attempt.apply(EnrollmentEvent.CONFIRM_METHOD, now)

        with pytest.raises(InvalidStateError):
            attempt.ensure_state(EnrollmentEvent.CONFIRM_METHOD)

    def test_each_transition_bumps_version_and_activity(self, attempt, now):
        later = now + timedelta(minutes=2)

        attempt.apply(EnrollmentEvent.CONFIRM_METHOD, later)

        assert attempt.version == 1
        assert attempt.last_activity_at == later
        assert attempt.started_at == now


class TestFailedVerification:
    """Test the attempt counter."""

    def test_failure_decrements_remaining(self, attempt, now):
        advance_to_pending(attempt, now)

        assert attempt.record_failed_verification(now) == 4
        assert attempt.state is EnrollmentState.PENDING_VERIFICATION

    def test_last_failure_cancels_attempt(self, attempt, now):
        advance_to_pending(attempt, now)

        for _ in range(DEFAULT_VERIFICATION_ATTEMPTS - 1):
            attempt.record_failed_verification(now)
        remaining = attempt.record_failed_verification(now)

        assert remaining == 0
        assert attempt.state is EnrollmentState.CANCELLED

    def test_failure_outside_pending_verification_is_rejected(self, attempt, now):
        with pytest.raises(InvalidStateError):
            attempt.record_failed_verification(now)

        assert attempt.verification_attempts_remaining == DEFAULT_VERIFICATION_ATTEMPTS


class TestExpiryAndSerialization:
    """Test inactivity expiry and dict conversion."""

    def test_expiry_measured_from_last_activity(self, attempt, now):
        timeout = timedelta(minutes=10)
        attempt.apply(EnrollmentEvent.CONFIRM_METHOD, now + timedelta(minutes=8))

        assert not attempt.is_expired(now + timedelta(minutes=15), timeout)
        assert attempt.is_expired(now + timedelta(minutes=18), timeout)

    def test_from_dict_restores_attempt(self, attempt, now):
        attempt.pending_secret = "JBSWY3DPEHPK3PXP"
        advance_to_pending(attempt, now)

        restored = EnrollmentAttempt.from_dict(attempt.to_dict())

        assert restored == attempt
