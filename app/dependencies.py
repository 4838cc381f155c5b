"""
dependencies.py — Shared FastAPI Dependencies

Reusable dependency functions for authentication, authorization and
object storage. All routers import from here instead of defining their
own auth logic.

Business Rules:
- get_user returns None if not logged in (non-throwing)
- require_user raises 401 if not logged in or the account was soft-deleted,
  403 if the account is suspended or rejected
- require_provider allows providers and admins
- require_admin raises 403 if user.role != "admin"
- get_storage_backend is overridable in tests (local temp dir)

Called by: all routers
Depends on: models, database, storage
"""

import logging

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from .database import get_db
from .models import Profile
from .storage import get_storage

log = logging.getLogger(__name__)

BLOCKED_STATUSES = {"suspended": "Account suspended, contact support", "rejected": "Account rejected"}


# ── Authentication ────────────────────────────────────────────────────


def get_user(request: Request, db: Session) -> Profile | None:
    """Return current user from session, or None if not logged in."""
    uid = request.session.get("user_id")
    if not uid:
        return None
    user = db.get(Profile, uid)
    if user is None or user.deleted_at is not None:
        request.session.clear()
        return None
    return user


def require_user(request: Request, db: Session = Depends(get_db)) -> Profile:
    """Dependency: raises 401 if no authenticated user, 403 if suspended/rejected."""
    user = get_user(request, db)
    if not user:
        raise HTTPException(401, "Not authenticated")
    if user.status in BLOCKED_STATUSES:
        request.session.clear()
        raise HTTPException(403, BLOCKED_STATUSES[user.status])
    return user


def is_admin(user: Profile) -> bool:
    return user.role == "admin"


def require_admin(request: Request, db: Session = Depends(get_db)) -> Profile:
    """Dependency: raises 403 if user is not an admin."""
    user = require_user(request, db)
    if user.role != "admin":
        raise HTTPException(403, "Admin access required")
    return user


def require_provider(request: Request, db: Session = Depends(get_db)) -> Profile:
    """Dependency: providers (any approval state) and admins."""
    user = require_user(request, db)
    if user.role not in ("provider", "admin"):
        raise HTTPException(403, "Provider account required")
    return user


# ── Storage ───────────────────────────────────────────────────────────


def get_storage_backend():
    return get_storage()
