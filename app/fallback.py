"""
fallback.py — Two-tier "enhanced path, then simple path" combinator

Every moderation and tracking operation first tries an atomic server-side
procedure and, when that procedure is not available, runs an equivalent
sequence of plain ORM writes. The policy lives here once instead of in a
try/except inside every service function.

Usage:
    suspend_user = with_fallback(_suspend_via_rpc, _suspend_client_side)
    result = suspend_user(db, user_id, admin_id, reason)

Business Rules:
- Only RpcUnavailable (or the exceptions passed as fallback_on) trigger the
  secondary path; any other exception propagates unchanged
- Both tiers receive the same arguments and must return the same shape
- Sync and async callables are both supported (never mixed in one pair)

Called by: services/moderation_service.py, services/analytics_service.py,
           services/land_service.py, services/commercial_service.py
Depends on: nothing
"""

import functools
import inspect
import logging

log = logging.getLogger(__name__)


class RpcUnavailable(Exception):
    """The enhanced server-side path cannot run (not deployed, wrong dialect, DB error)."""


def with_fallback(primary, secondary, *, fallback_on: tuple = (RpcUnavailable,), name: str | None = None):
    """Return a callable that runs primary and falls back to secondary.

    The returned callable carries .primary and .secondary so tests can
    exercise either tier directly.
    """
    if inspect.iscoroutinefunction(primary) != inspect.iscoroutinefunction(secondary):
        raise TypeError("with_fallback: primary and secondary must both be sync or both async")

    label = name or getattr(secondary, "__name__", "operation").lstrip("_")

    if inspect.iscoroutinefunction(primary):

        @functools.wraps(secondary)
        async def async_wrapper(*args, **kwargs):
            try:
                return await primary(*args, **kwargs)
            except fallback_on as e:
                log.info("%s: enhanced path unavailable (%s), using fallback", label, e)
                return await secondary(*args, **kwargs)

        wrapper = async_wrapper
    else:

        @functools.wraps(secondary)
        def sync_wrapper(*args, **kwargs):
            try:
                return primary(*args, **kwargs)
            except fallback_on as e:
                log.info("%s: enhanced path unavailable (%s), using fallback", label, e)
                return secondary(*args, **kwargs)

        wrapper = sync_wrapper

    wrapper.primary = primary
    wrapper.secondary = secondary
    wrapper.__name__ = label
    return wrapper
