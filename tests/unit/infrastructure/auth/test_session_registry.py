"""
Unit tests for the session registry.
"""

import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio

from src.domain.entities.session import DeviceType
from src.domain.exceptions import ErrorKind, ForbiddenOperationError, NotFoundError
from tests.helpers import create_test_session

ACCOUNT = "acct-1"
OTHER_ACCOUNT = "acct-2"


@pytest_asyncio.fixture
async def seeded(session_store, clock):
    """Three sessions for ACCOUNT (s1 newest) and one for OTHER_ACCOUNT."""
    for index, session_id in enumerate(["s1", "s2", "s3"]):
        await session_store.add(
            create_test_session(ACCOUNT, session_id, last_active_at=clock.now - timedelta(hours=index))
        )
    await session_store.add(create_test_session(OTHER_ACCOUNT, "x1"))
    return session_store


class TestCreateAndTouch:
    @pytest.mark.asyncio
    async def test_create_session_records_client(self, session_registry, session_store, clock):
        session = await session_registry.create_session(
            ACCOUNT,
            device_label="iPhone 15",
            browser_label="Safari",
            device_type=DeviceType.MOBILE,
            source_ip="198.51.100.4",
        )

        stored = await session_store.get(session.session_id)
        assert stored.device_type is DeviceType.MOBILE
        assert stored.created_at == clock.now
        assert stored.last_active_at == clock.now

    @pytest.mark.asyncio
    async def test_touch_updates_last_active(self, session_registry, clock):
        session = await session_registry.create_session(ACCOUNT)
        later = clock.advance(minutes=5)

        touched = await session_registry.touch(ACCOUNT, session.session_id)

        assert touched.last_active_at == later

    @pytest.mark.asyncio
    async def test_touch_rejects_foreign_session(self, session_registry):
        session = await session_registry.create_session(OTHER_ACCOUNT)

        with pytest.raises(NotFoundError):
            await session_registry.touch(ACCOUNT, session.session_id)


class TestListSessions:
    @pytest.mark.asyncio
    async def test_most_recent_first_with_current_marked(self, session_registry, seeded):
        sessions = await session_registry.list_sessions(ACCOUNT, "s2")

        assert [s.session_id for s in sessions] == ["s1", "s2", "s3"]
        assert [s.is_current for s in sessions] == [False, True, False]

    @pytest.mark.asyncio
    async def test_only_own_sessions_listed(self, session_registry, seeded):
        sessions = await session_registry.list_sessions(OTHER_ACCOUNT, "x1")

        assert [s.session_id for s in sessions] == ["x1"]

    @pytest.mark.asyncio
    async def test_unknown_account_has_no_sessions(self, session_registry):
        assert await session_registry.list_sessions("nobody", "s1") == []


class TestTerminateSession:
    @pytest.mark.asyncio
    async def test_terminate_other_session(self, session_registry, seeded):
        await session_registry.terminate_session(ACCOUNT, "s3", "s1")

        remaining = await session_registry.list_sessions(ACCOUNT, "s1")
        assert [s.session_id for s in remaining] == ["s1", "s2"]

    @pytest.mark.asyncio
    async def test_terminating_twice_reports_not_found(self, session_registry, seeded):
        await session_registry.terminate_session(ACCOUNT, "s3", "s1")

        with pytest.raises(NotFoundError):
            await session_registry.terminate_session(ACCOUNT, "s3", "s1")

    @pytest.mark.asyncio
    async def test_cannot_terminate_own_session(self, session_registry, seeded):
        with pytest.raises(ForbiddenOperationError) as exc_info:
            await session_registry.terminate_session(ACCOUNT, "s1", "s1")

        assert exc_info.value.kind is ErrorKind.FORBIDDEN
        assert len(await session_registry.list_sessions(ACCOUNT, "s1")) == 3

    @pytest.mark.asyncio
    async def test_self_termination_forbidden_even_without_sessions(self, session_registry):
        with pytest.raises(ForbiddenOperationError):
            await session_registry.terminate_session("nobody", "s1", "s1")

    @pytest.mark.asyncio
    async def test_cannot_terminate_another_accounts_session(self, session_registry, seeded):
        with pytest.raises(NotFoundError):
            await session_registry.terminate_session(ACCOUNT, "x1", "s1")

        assert len(await session_registry.list_sessions(OTHER_ACCOUNT, "x1")) == 1


class TestTerminateAllOthers:
    @pytest.mark.asyncio
    async def test_keeps_only_requester(self, session_registry, seeded):
        removed = await session_registry.terminate_all_other_sessions(ACCOUNT, "s2")

        assert removed == 2
        sessions = await session_registry.list_sessions(ACCOUNT, "s2")
        assert [s.session_id for s in sessions] == ["s2"]

    @pytest.mark.asyncio
    async def test_sole_session_removes_nothing(self, session_registry, seeded):
        await session_registry.terminate_all_other_sessions(ACCOUNT, "s1")

        assert await session_registry.terminate_all_other_sessions(ACCOUNT, "s1") == 0

    @pytest.mark.asyncio
    async def test_without_requester_removes_everything(self, session_registry, seeded):
        assert await session_registry.terminate_all_other_sessions(ACCOUNT, None) == 3
        assert await session_registry.list_sessions(ACCOUNT, "s1") == []

    @pytest.mark.asyncio
    async def test_other_accounts_untouched(self, session_registry, seeded):
        await session_registry.terminate_all_other_sessions(ACCOUNT, "s1")

        assert len(await session_registry.list_sessions(OTHER_ACCOUNT, "x1")) == 1

    @pytest.mark.asyncio
    async def test_concurrent_listing_sees_before_or_after(self, session_registry, seeded):
        results = await asyncio.gather(
            session_registry.list_sessions(ACCOUNT, "s1"),
            session_registry.terminate_all_other_sessions(ACCOUNT, "s1"),
            session_registry.list_sessions(ACCOUNT, "s1"),
        )

        for listing in (results[0], results[2]):
            assert len(listing) in (1, 3)


class TestLogoutAndMaintenance:
    @pytest.mark.asyncio
    async def test_logout_removes_own_session(self, session_registry, seeded):
        await session_registry.logout(ACCOUNT, "s1")

        sessions = await session_registry.list_sessions(ACCOUNT, "s2")
        assert "s1" not in [s.session_id for s in sessions]

    @pytest.mark.asyncio
    async def test_logout_unknown_session(self, session_registry, seeded):
        with pytest.raises(NotFoundError):
            await session_registry.logout(ACCOUNT, "missing")

    @pytest.mark.asyncio
    async def test_reevaluate_flags_other_sessions_when_enabled(self, session_registry, seeded):
        changed = await session_registry.reevaluate_mfa(ACCOUNT, True, "s1")

        assert changed == 2
        sessions = {s.session_id: s for s in await session_registry.list_sessions(ACCOUNT, "s1")}
        assert not sessions["s1"].requires_second_factor
        assert sessions["s2"].requires_second_factor
        assert sessions["s3"].requires_second_factor

    @pytest.mark.asyncio
    async def test_reevaluate_clears_flags_when_disabled(self, session_registry, seeded):
        await session_registry.reevaluate_mfa(ACCOUNT, True, "s1")

        changed = await session_registry.reevaluate_mfa(ACCOUNT, False, "s1")

        assert changed == 2
        sessions = await session_registry.list_sessions(ACCOUNT, "s1")
        assert not any(s.requires_second_factor for s in sessions)

    @pytest.mark.asyncio
    async def test_purge_expired_removes_idle_sessions(self, session_registry, seeded, clock):
        clock.advance(hours=1, minutes=30)

        removed = await session_registry.purge_expired(timedelta(hours=3))

        assert removed == 1
        sessions = await session_registry.list_sessions(ACCOUNT, "s1")
        assert [s.session_id for s in sessions] == ["s1", "s2"]
