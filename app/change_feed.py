"""
change_feed.py — In-process per-table change events (realtime substitute)

SQLAlchemy session events capture every committed INSERT/UPDATE/DELETE and
publish a ChangeEvent per row to subscribed channels. A channel groups
table bindings; subscribing reports SUBSCRIBED or CHANNEL_ERROR through a
status callback, mirroring a hosted realtime service.

Business Rules:
- Events are published only after COMMIT (rolled-back writes never leak)
- A binding matches on table, event ("*" = any) and an optional predicate
- Channels bound to an asyncio loop receive events via call_soon_threadsafe
  (sync endpoints run in the threadpool, subscribers live on the loop)
- A failing subscriber is logged and never breaks delivery to the others
- Consumers treat the payload as "something changed" and refetch

Called by: services/realtime_service.py, rpc.py, every Session commit
Depends on: sqlalchemy (session events)
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

log = logging.getLogger(__name__)

SUBSCRIBED = "SUBSCRIBED"
CHANNEL_ERROR = "CHANNEL_ERROR"
CLOSED = "CLOSED"


@dataclass
class ChangeEvent:
    table: str
    event: str  # INSERT | UPDATE | DELETE
    record: dict = field(default_factory=dict)


@dataclass
class _Binding:
    table: str
    callback: Callable[[ChangeEvent], None]
    event: str = "*"
    predicate: Callable[[dict], bool] | None = None

    def matches(self, change: ChangeEvent) -> bool:
        if change.table != self.table:
            return False
        if self.event != "*" and self.event != change.event:
            return False
        if self.predicate is not None and change.record:
            return bool(self.predicate(change.record))
        return True


class Channel:
    """A named group of table bindings, subscribed as one unit."""

    def __init__(self, feed: "ChangeFeed", name: str):
        self.feed = feed
        self.name = name
        self.state = CLOSED
        self._bindings: list[_Binding] = []
        self._status_callback: Callable | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def on(self, table: str, callback: Callable[[ChangeEvent], None], *, event: str = "*",
           predicate: Callable[[dict], bool] | None = None) -> "Channel":
        self._bindings.append(_Binding(table=table, callback=callback, event=event, predicate=predicate))
        return self

    def subscribe(self, status_callback: Callable[[str, Exception | None], None] | None = None) -> "Channel":
        self._status_callback = status_callback
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None
        self.feed._join(self)
        return self

    def unsubscribe(self) -> None:
        if self.state == CLOSED:
            return
        self.feed._leave(self)
        self.state = CLOSED

    def _report(self, status: str, error: Exception | None = None) -> None:
        self.state = status
        if self._status_callback is not None:
            self._dispatch(self._status_callback, status, error)

    def _deliver(self, change: ChangeEvent) -> None:
        for binding in self._bindings:
            if binding.matches(change):
                self._dispatch(binding.callback, change)

    def _dispatch(self, callback, *args) -> None:
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(_safe_call, callback, *args)
        else:
            _safe_call(callback, *args)


def _safe_call(callback, *args) -> None:
    try:
        callback(*args)
    except Exception:
        log.exception("Change feed subscriber %r failed", callback)


class ChangeFeed:
    """Registry of subscribed channels plus the publish fan-out."""

    def __init__(self):
        self._channels: list[Channel] = []
        self._lock = threading.Lock()
        self.available = True

    def channel(self, name: str) -> Channel:
        return Channel(self, name)

    @property
    def channels(self) -> list[Channel]:
        with self._lock:
            return list(self._channels)

    def _join(self, channel: Channel) -> None:
        if not self.available:
            channel._report(CHANNEL_ERROR, ConnectionError("change feed unavailable"))
            return
        with self._lock:
            if channel not in self._channels:
                self._channels.append(channel)
        log.debug("Channel %s subscribed", channel.name)
        channel._report(SUBSCRIBED)

    def _leave(self, channel: Channel) -> None:
        with self._lock:
            if channel in self._channels:
                self._channels.remove(channel)
        log.debug("Channel %s unsubscribed", channel.name)

    def publish(self, changes: list[ChangeEvent]) -> None:
        if not changes:
            return
        for channel in self.channels:
            for change in changes:
                channel._deliver(change)

    def fail(self, error: Exception) -> None:
        """Drop every channel with CHANNEL_ERROR (connection lost)."""
        for channel in self.channels:
            self._leave(channel)
            channel._report(CHANNEL_ERROR, error)

    def clear(self) -> None:
        with self._lock:
            self._channels.clear()


# ── SQLAlchemy integration ───────────────────────────────────────────

_PENDING_KEY = "change_feed.pending"


def _row_dict(obj) -> dict:
    state = inspect(obj)
    columns = {attr.key for attr in state.mapper.column_attrs}
    return {k: v for k, v in state.dict.items() if k in columns}


def _collect(session: Session, flush_context) -> None:
    pending = session.info.setdefault(_PENDING_KEY, [])
    for kind, objs in (("INSERT", session.new), ("UPDATE", session.dirty), ("DELETE", session.deleted)):
        for obj in objs:
            table = getattr(obj, "__tablename__", None)
            if table is None:
                continue
            if kind == "UPDATE" and not session.is_modified(obj, include_collections=False):
                continue
            pending.append(ChangeEvent(table=table, event=kind, record=_row_dict(obj)))


def install(feed: "ChangeFeed", session_class=Session) -> None:
    """Wire a feed to SQLAlchemy session events. Idempotent per session class."""
    if getattr(session_class, "_change_feed_installed", False):
        return

    @event.listens_for(session_class, "before_flush")
    def _before_flush(session, flush_context, instances):
        _collect(session, flush_context)

    @event.listens_for(session_class, "after_commit")
    def _after_commit(session):
        changes = session.info.pop(_PENDING_KEY, [])
        feed.publish(changes)

    @event.listens_for(session_class, "after_soft_rollback")
    def _after_rollback(session, previous_transaction):
        if not previous_transaction.nested:
            session.info.pop(_PENDING_KEY, None)

    session_class._change_feed_installed = True


change_feed = ChangeFeed()
install(change_feed)
