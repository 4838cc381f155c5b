"""
test_realtime_service.py — Tests for the admin realtime service.

Subscription lifecycle over the change feed, refetch on change,
exponential-backoff reconnects with an injected sleep, terminal failure
and idempotent cleanup.

Called by: pytest
Depends on: app/services/realtime_service.py, app/change_feed.py, conftest.py
"""

import asyncio

import pytest

from app.change_feed import CHANNEL_ERROR, change_feed
from app.database import SessionLocal
from app.models import AdminActivityLog, SystemNotification
from app.services.realtime_service import (
    ACTIVITY_CHANNEL,
    NOTIFICATION_CHANNEL,
    AdminRealtimeService,
    RealtimeCallbacks,
    RealtimeFailure,
)


class _Recorder:
    def __init__(self):
        self.activity = []
        self.notifications = []
        self.connection = []
        self.errors = []

    def callbacks(self) -> RealtimeCallbacks:
        return RealtimeCallbacks(
            on_activity_update=self.activity.append,
            on_notification_update=self.notifications.append,
            on_connection_change=self.connection.append,
            on_error=self.errors.append,
        )


async def _until(condition, rounds: int = 200):
    for _ in range(rounds):
        if condition():
            return True
        await asyncio.sleep(0.01)
    return condition()


def _service(delays=None) -> AdminRealtimeService:
    async def fake_sleep(seconds):
        if delays is not None:
            delays.append(seconds)

    return AdminRealtimeService(session_factory=SessionLocal, sleep=fake_sleep)


class TestConnect:
    @pytest.mark.asyncio
    async def test_connected_after_both_channels_subscribe(self, admin_user):
        rec = _Recorder()
        service = _service()
        await service.initialize(admin_user.id, rec.callbacks())

        assert await _until(lambda: rec.connection == [True])
        assert service.get_connection_status() is True
        assert service.state == "connected"
        assert service.reconnect_attempts == 0
        names = {c.name for c in change_feed.channels}
        assert names == {ACTIVITY_CHANNEL, NOTIFICATION_CHANNEL}
        service.cleanup()

    @pytest.mark.asyncio
    async def test_activity_insert_triggers_refetch(self, db_session, admin_user):
        rec = _Recorder()
        service = _service()
        await service.initialize(admin_user.id, rec.callbacks())
        assert await _until(lambda: service.is_connected)

        db_session.add(AdminActivityLog(admin_id=admin_user.id, action_type="approve",
                                        target_type="property", target_id="p1"))
        db_session.commit()

        assert await _until(lambda: len(rec.activity) >= 1)
        latest = rec.activity[-1]
        assert latest[0].target_id == "p1"
        assert latest[0].admin_name == "Test Admin"
        service.cleanup()

    @pytest.mark.asyncio
    async def test_notification_filter_own_or_global(self, db_session, admin_user):
        rec = _Recorder()
        service = _service()
        await service.initialize(admin_user.id, rec.callbacks())
        assert await _until(lambda: service.is_connected)

        db_session.add(SystemNotification(admin_id="someone-else", type="x", title="t", message="m"))
        db_session.commit()
        await asyncio.sleep(0.05)
        assert rec.notifications == []

        db_session.add(SystemNotification(admin_id=None, type="provider_registration",
                                          title="New provider", message="m"))
        db_session.commit()
        assert await _until(lambda: len(rec.notifications) >= 1)
        assert [n.title for n in rec.notifications[-1]] == ["New provider"]
        service.cleanup()


class TestReconnect:
    @pytest.mark.asyncio
    async def test_backoff_then_terminal_failure(self, admin_user):
        change_feed.available = False
        delays = []
        rec = _Recorder()
        service = _service(delays)
        await service.initialize(admin_user.id, rec.callbacks())

        assert await _until(lambda: service.failed)
        assert delays == [1.0, 2.0, 4.0, 8.0, 16.0]
        assert service.state == "failed"
        assert service.is_connected is False
        assert isinstance(rec.errors[-1], RealtimeFailure)
        assert sum(isinstance(e, RealtimeFailure) for e in rec.errors) == 1
        assert True not in rec.connection

        # No further automatic attempts
        await asyncio.sleep(0.05)
        assert len(delays) == 5
        service.cleanup()

    @pytest.mark.asyncio
    async def test_terminal_failure_reported_once(self, admin_user):
        change_feed.available = False
        rec = _Recorder()
        service = _service([])
        await service.initialize(admin_user.id, rec.callbacks())
        assert await _until(lambda: service.failed)

        await asyncio.sleep(0.05)
        errors_before = len(rec.errors)
        drops_before = rec.connection.count(False)
        service._on_status(service._generation, ACTIVITY_CHANNEL, CHANNEL_ERROR, ConnectionError("late"))

        assert len(rec.errors) == errors_before
        assert rec.connection.count(False) == drops_before
        assert [e for e in rec.errors if isinstance(e, RealtimeFailure)] == [rec.errors[-1]]
        # one drop per attempt: the initial subscribe plus five reconnects
        assert rec.connection.count(False) == 6
        service.cleanup()

    @pytest.mark.asyncio
    async def test_recovers_when_feed_returns(self, admin_user):
        change_feed.available = False
        delays = []
        rec = _Recorder()
        service = _service(delays)

        async def flaky_sleep(seconds):
            delays.append(seconds)
            change_feed.available = True

        service._sleep = flaky_sleep
        await service.initialize(admin_user.id, rec.callbacks())

        assert await _until(lambda: service.is_connected)
        assert delays == [1.0]
        assert rec.connection == [False, True]
        assert service.reconnect_attempts == 0
        service.cleanup()

    @pytest.mark.asyncio
    async def test_channel_error_after_connect(self, admin_user):
        rec = _Recorder()
        delays = []
        service = _service(delays)
        await service.initialize(admin_user.id, rec.callbacks())
        assert await _until(lambda: service.is_connected)

        change_feed.fail(ConnectionError("socket closed"))

        assert await _until(lambda: rec.connection[-1] is True and len(rec.connection) == 3)
        assert rec.connection == [True, False, True]
        assert delays == [1.0]
        service.cleanup()


class TestCleanup:
    @pytest.mark.asyncio
    async def test_cleanup_is_idempotent(self, admin_user):
        service = _service()
        await service.initialize(admin_user.id, _Recorder().callbacks())
        assert await _until(lambda: service.is_connected)

        service.cleanup()
        service.cleanup()

        assert change_feed.channels == []
        assert service.is_connected is False
        assert service.reconnect_attempts == 0
        assert service.state == "disconnected"

    @pytest.mark.asyncio
    async def test_no_callbacks_after_cleanup(self, db_session, admin_user):
        rec = _Recorder()
        service = _service()
        await service.initialize(admin_user.id, rec.callbacks())
        assert await _until(lambda: service.is_connected)
        service.cleanup()

        db_session.add(AdminActivityLog(admin_id=admin_user.id, action_type="suspend", target_type="user"))
        db_session.commit()
        await asyncio.sleep(0.05)
        assert rec.activity == []


class TestSnapshots:
    @pytest.mark.asyncio
    async def test_refresh_activity_feed(self, db_session, admin_user):
        db_session.add(AdminActivityLog(admin_id=admin_user.id, action_type="reject",
                                        target_type="plan", target_id="pl1"))
        db_session.commit()
        items = await _service().refresh_activity_feed()
        assert [i.action_type for i in items] == ["reject"]

    @pytest.mark.asyncio
    async def test_refresh_failure_returns_empty(self):
        def broken_factory():
            raise ConnectionError("db down")

        service = AdminRealtimeService(session_factory=broken_factory)
        assert await service.refresh_activity_feed() == []
        assert await service.refresh_notifications("a1") == []

    @pytest.mark.asyncio
    async def test_connection_probe(self):
        assert await _service().test_connection() is True
