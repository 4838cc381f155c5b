"""
rpc.py — Calls to named PostgreSQL functions (atomic server-side operations)

The moderation functions (installed by alembic revision 002) bundle a state
change, its audit-log row and its notification row in one transaction.
call_rpc() runs one of them and raises RpcUnavailable whenever it cannot:
non-PostgreSQL dialect, function not deployed, or any database error. The
caller is expected to sit behind with_fallback().

Business Rules:
- Only procedures listed in PROCEDURES may be called (names are interpolated)
- Arguments are passed in named notation (p_user_id => :p_user_id)
- dict/list arguments are sent as jsonb
- The call runs in a SAVEPOINT so a failure leaves the outer session usable
- After commit, change events are published for the tables the procedure
  touches so realtime subscribers see RPC writes the same as ORM writes

Called by: services/moderation_service.py, services/analytics_service.py,
           services/land_service.py, services/commercial_service.py,
           services/plan_service.py
Depends on: fallback.py (RpcUnavailable), change_feed.py
"""

import json
import logging

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from .change_feed import ChangeEvent, change_feed
from .fallback import RpcUnavailable

log = logging.getLogger(__name__)

# Procedure name → tables it writes (for change-feed fan-out)
PROCEDURES: dict[str, tuple[str, ...]] = {
    "suspend_user_with_logging": ("profiles", "admin_activity_logs", "provider_notifications"),
    "activate_user_with_logging": ("profiles", "admin_activity_logs", "provider_notifications"),
    "soft_delete_user_with_logging": ("profiles", "admin_activity_logs"),
    "approve_provider_with_notification": (
        "profiles", "providers", "admin_activity_logs", "provider_notifications",
    ),
    "reject_provider_with_notification": (
        "profiles", "providers", "admin_activity_logs", "provider_notifications",
    ),
    "approve_property_with_logging": ("properties", "admin_activity_logs", "provider_notifications"),
    "reject_property_with_reason": ("properties", "admin_activity_logs", "provider_notifications"),
    "approve_architectural_plan": ("architectural_plans", "admin_activity_logs", "provider_notifications"),
    "reject_architectural_plan": ("architectural_plans", "admin_activity_logs", "provider_notifications"),
    "update_property_analytics": ("property_analytics",),
    "track_user_activity": ("user_activities",),
    "create_land_property": ("properties", "land_details"),
    "search_commercial_properties": (),
    "track_plan_view": ("architectural_plans",),
    "process_plan_purchase": ("plan_purchases", "architectural_plans"),
}


def rpc_available(db: Session) -> bool:
    return db.get_bind().dialect.name == "postgresql"


def _placeholder(key: str, value) -> str:
    if isinstance(value, (dict, list)):
        return f"{key} => CAST(:{key} AS jsonb)"
    return f"{key} => :{key}"


def call_rpc(db: Session, name: str, *, returns_rows: bool = False, **params):
    """Run a named database function and return its scalar result (or rows).

    Raises RpcUnavailable when the function cannot be executed.
    """
    if name not in PROCEDURES:
        raise ValueError(f"Unknown procedure: {name}")
    if not rpc_available(db):
        raise RpcUnavailable(f"{name}: remote procedures require PostgreSQL")

    args = ", ".join(_placeholder(k, v) for k, v in params.items())
    bound = {k: json.dumps(v) if isinstance(v, (dict, list)) else v for k, v in params.items()}
    sql = text(f"SELECT * FROM {name}({args})") if returns_rows else text(f"SELECT {name}({args})")

    try:
        with db.begin_nested():
            result = db.execute(sql, bound)
            value = [dict(r._mapping) for r in result] if returns_rows else result.scalar()
        db.commit()
    except DBAPIError as e:
        db.rollback()
        raise RpcUnavailable(f"{name}: {e.orig}") from e

    tables = PROCEDURES[name]
    if tables:
        change_feed.publish(
            [ChangeEvent(table=t, event="UPDATE", record={}) for t in tables]
        )
    log.debug("rpc %s ok", name)
    return value
