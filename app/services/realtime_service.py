"""
realtime_service.py — Live admin activity feed + notifications over the change feed

One AdminRealtimeService per connected admin (the websocket endpoint in
routers/admin.py creates one per socket). It subscribes two channels:

  admin-activity-logs          table admin_activity_logs
  admin-system-notifications   table system_notifications (own + global rows)

Every change event triggers a full refetch of the snapshot, never a diff.

Business Rules:
- Connected once both channels report SUBSCRIBED; attempts reset to 0
- Any CHANNEL_ERROR: disconnected, on_connection_change(False), on_error,
  then one reconnect after base_delay_ms * 2**(attempt-1); errors arriving
  while a reconnect is already scheduled are folded into it, and errors
  after the terminal failure are dropped
- A reconnect runs cleanup() first, then initialize() again, keeping the
  attempt count
- After max_attempts failed reconnects: state failed, terminal error
  reported, no more automatic attempts (caller must initialize again)
- Rapid changes coalesce: at most one refetch in flight per stream, one
  more queued; callbacks see the latest snapshot (last-fetch-wins)
- cleanup() is idempotent and safe from inside the reconnect task

Called by: routers/admin.py (websocket), tests
Depends on: change_feed.py, services/admin_service.py, database.py
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from ..change_feed import CHANNEL_ERROR, SUBSCRIBED, ChangeEvent, change_feed
from ..config import settings
from ..database import SessionLocal
from ..models import AdminActivityLog
from ..schemas.moderation import ActivityItem, AdminNotification
from . import admin_service

log = logging.getLogger(__name__)

ACTIVITY_CHANNEL = "admin-activity-logs"
NOTIFICATION_CHANNEL = "admin-system-notifications"


class RealtimeFailure(Exception):
    """Reconnect attempts exhausted."""


@dataclass
class RealtimeCallbacks:
    on_activity_update: Callable[[list[ActivityItem]], None] | None = None
    on_notification_update: Callable[[list[AdminNotification]], None] | None = None
    on_connection_change: Callable[[bool], None] | None = None
    on_error: Callable[[Exception], None] | None = None


class AdminRealtimeService:
    def __init__(self, session_factory=SessionLocal, feed=change_feed, sleep=asyncio.sleep,
                 base_delay_ms: int | None = None, max_attempts: int | None = None,
                 feed_limit: int | None = None):
        self._session_factory = session_factory
        self._feed = feed
        self._sleep = sleep
        self.base_delay_ms = base_delay_ms or settings.realtime_base_delay_ms
        self.max_attempts = max_attempts or settings.realtime_max_attempts
        self.feed_limit = feed_limit or settings.realtime_feed_limit

        self.admin_id: str | None = None
        self.callbacks = RealtimeCallbacks()
        self.is_connected = False
        self.failed = False
        self.reconnect_attempts = 0

        self._channels = {}
        self._subscribed: set[str] = set()
        self._generation = 0
        self._reconnect_pending = False
        self._reconnect_task: asyncio.Task | None = None
        self._refresh_tasks: dict[str, asyncio.Task] = {}
        self._dirty = {"activity": False, "notifications": False}

    # ── Lifecycle ────────────────────────────────────────────────────

    async def initialize(self, admin_id: str, callbacks: RealtimeCallbacks | None = None) -> None:
        log.info(f"Realtime: subscribing admin {admin_id}")
        self.admin_id = admin_id
        self.callbacks = callbacks or RealtimeCallbacks()
        self.failed = False
        generation = self._generation

        def on_status(name):
            return lambda status, error=None: self._on_status(generation, name, status, error)

        try:
            self._channels[ACTIVITY_CHANNEL] = (
                self._feed.channel(ACTIVITY_CHANNEL)
                .on("admin_activity_logs", self._on_activity_change)
                .subscribe(on_status(ACTIVITY_CHANNEL))
            )
            self._channels[NOTIFICATION_CHANNEL] = (
                self._feed.channel(NOTIFICATION_CHANNEL)
                .on(
                    "system_notifications",
                    self._on_notification_change,
                    predicate=lambda row: row.get("admin_id") in (admin_id, None),
                )
                .subscribe(on_status(NOTIFICATION_CHANNEL))
            )
        except Exception as e:
            log.error(f"Realtime: subscribe failed: {e}")
            self._handle_error(e)

    def cleanup(self) -> None:
        """Unsubscribe both channels and reset all state. Safe to call repeatedly."""
        self._generation += 1
        for channel in self._channels.values():
            channel.unsubscribe()
        self._channels.clear()
        self._subscribed.clear()

        current = _current_task()
        if self._reconnect_task is not None and self._reconnect_task is not current:
            self._reconnect_task.cancel()
        self._reconnect_task = None
        for task in self._refresh_tasks.values():
            if task is not current:
                task.cancel()
        self._refresh_tasks.clear()
        self._dirty = {"activity": False, "notifications": False}

        self._reconnect_pending = False
        self.is_connected = False
        self.failed = False
        self.reconnect_attempts = 0
        self.callbacks = RealtimeCallbacks()

    def get_connection_status(self) -> bool:
        return self.is_connected

    @property
    def state(self) -> str:
        if self.is_connected:
            return "connected"
        if self.failed:
            return "failed"
        if self._reconnect_pending:
            return "reconnecting"
        return "disconnected"

    # ── Subscription status & reconnect ──────────────────────────────

    def _on_status(self, generation: int, name: str, status: str, error: Exception | None) -> None:
        if generation != self._generation:
            return  # a channel from before the last cleanup()
        if status == SUBSCRIBED:
            self._subscribed.add(name)
            if len(self._subscribed) == 2 and not self.is_connected:
                self.is_connected = True
                self.reconnect_attempts = 0
                log.info(f"Realtime: connected for admin {self.admin_id}")
                self._emit(self.callbacks.on_connection_change, True)
        elif status == CHANNEL_ERROR:
            log.warning(f"Realtime: {name} channel error: {error}")
            self._handle_error(error or ConnectionError(f"{name} channel error"))

    def _handle_error(self, error: Exception) -> None:
        if self._reconnect_pending or self.failed:
            return
        self.is_connected = False
        self._emit(self.callbacks.on_connection_change, False)
        self._emit(self.callbacks.on_error, error)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self.reconnect_attempts >= self.max_attempts:
            self.failed = True
            log.error(f"Realtime: max reconnection attempts ({self.max_attempts}) reached")
            self._emit(self.callbacks.on_error, RealtimeFailure("Max reconnection attempts reached"))
            return

        self.reconnect_attempts += 1
        delay_ms = self.base_delay_ms * 2 ** (self.reconnect_attempts - 1)
        log.info(
            f"Realtime: reconnect {self.reconnect_attempts}/{self.max_attempts} in {delay_ms}ms"
        )
        self._reconnect_pending = True
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect(delay_ms))

    async def _reconnect(self, delay_ms: int) -> None:
        await self._sleep(delay_ms / 1000)
        self._reconnect_pending = False
        admin_id, callbacks, attempts = self.admin_id, self.callbacks, self.reconnect_attempts
        self.cleanup()
        self.reconnect_attempts = attempts
        await self.initialize(admin_id, callbacks)

    # ── Change handling ──────────────────────────────────────────────

    def _on_activity_change(self, change: ChangeEvent) -> None:
        self._request_refresh("activity")

    def _on_notification_change(self, change: ChangeEvent) -> None:
        self._request_refresh("notifications")

    def _request_refresh(self, kind: str) -> None:
        self._dirty[kind] = True
        task = self._refresh_tasks.get(kind)
        if task is None or task.done():
            self._refresh_tasks[kind] = asyncio.get_running_loop().create_task(self._refresh_loop(kind))

    async def _refresh_loop(self, kind: str) -> None:
        while self._dirty.get(kind):
            self._dirty[kind] = False
            if kind == "activity":
                items = await self.refresh_activity_feed()
                self._emit(self.callbacks.on_activity_update, items)
            else:
                items = await self.refresh_notifications(self.admin_id)
                self._emit(self.callbacks.on_notification_update, items)

    # ── Snapshots ────────────────────────────────────────────────────

    def _fetch_activity(self) -> list[ActivityItem]:
        db = self._session_factory()
        try:
            return admin_service.get_activity_feed(db, limit=self.feed_limit)
        finally:
            db.close()

    def _fetch_notifications(self, admin_id: str | None) -> list[AdminNotification]:
        db = self._session_factory()
        try:
            return admin_service.get_notifications(db, admin_id=admin_id)
        finally:
            db.close()

    async def refresh_activity_feed(self) -> list[ActivityItem]:
        """The latest activity entries with admin names. [] on failure."""
        try:
            return await asyncio.to_thread(self._fetch_activity)
        except Exception as e:
            log.error(f"Realtime: activity refresh failed: {e}")
            return []

    async def refresh_notifications(self, admin_id: str | None) -> list[AdminNotification]:
        """Notifications visible to admin_id (own + global). [] on failure."""
        try:
            return await asyncio.to_thread(self._fetch_notifications, admin_id)
        except Exception as e:
            log.error(f"Realtime: notification refresh failed: {e}")
            return []

    def _probe(self) -> bool:
        db = self._session_factory()
        try:
            db.query(AdminActivityLog.id).limit(1).all()
            return True
        finally:
            db.close()

    async def test_connection(self, timeout: float | None = None) -> bool:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._probe), timeout or settings.connectivity_timeout_s
            )
        except Exception as e:
            log.warning(f"Realtime: connection test failed: {e}")
            return False

    @staticmethod
    def _emit(callback, *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            log.exception("Realtime: callback %r failed", callback)


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
