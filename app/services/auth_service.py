"""
auth_service.py — Password accounts, sign-in/out, current-user resolution

Business Rules:
- Passwords are bcrypt-hashed (cost 12); emails are lowercase
- Sign-up: role user starts approved, role provider starts pending; a
  provider sign-up with business details also creates the provider row
- Sign-in is bounded by settings.sign_in_timeout_s; suspended and rejected
  accounts are refused, soft-deleted accounts look like bad credentials
- A successful sign-in stamps last_login_at and increments login_count
- The session cookie carries the identity claims (user_id, email, name,
  role, status); get_current_user() prefers the fresh profile but falls
  back to those claims when the fetch fails or exceeds
  settings.profile_fetch_timeout_s
- Auth state listeners receive SIGNED_IN / SIGNED_OUT / USER_UPDATED

Called by: routers/auth.py, dependencies.py
Depends on: bcrypt, models, services/provider_service.py
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable

import bcrypt
from sqlalchemy.orm import Session

from ..config import settings
from ..database import SessionLocal
from ..models import Profile
from ..schemas.accounts import ProfileUpdate, ProviderRegistration, ProviderSignUpRequest, SignUpRequest
from .admin_service import user_to_dict
from .provider_service import register_provider

log = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
USER_UPDATED = "USER_UPDATED"

SESSION_CLAIMS = ("user_id", "email", "name", "role", "status")

_listeners: list[Callable[[str, dict | None], None]] = []


# ── Passwords ────────────────────────────────────────────────────────


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Invalid hash format
        return False


# ── Auth state events ────────────────────────────────────────────────


def on_auth_state_change(listener: Callable[[str, dict | None], None]) -> Callable[[], None]:
    """Register a listener; returns a callable that unregisters it."""
    _listeners.append(listener)

    def unsubscribe() -> None:
        if listener in _listeners:
            _listeners.remove(listener)

    return unsubscribe


def emit_auth_event(event: str, user: dict | None) -> None:
    for listener in list(_listeners):
        try:
            listener(event, user)
        except Exception:
            log.exception("Auth listener %r failed on %s", listener, event)


def session_claims(user: Profile) -> dict:
    return {
        "user_id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "status": user.status,
    }


# ── Sign up / in / out ───────────────────────────────────────────────


def sign_up(db: Session, body: SignUpRequest) -> dict:
    if db.query(Profile).filter(Profile.email == body.email).first():
        return {"error": "An account with this email already exists", "status": 409}

    user = Profile(
        email=body.email,
        name=body.name.strip() or body.email.split("@")[0],
        phone=body.phone,
        role=body.role,
        status="approved" if body.role == "user" else "pending",
        password_hash=hash_password(body.password),
    )
    db.add(user)
    db.commit()
    log.info(f"Account created: {user.email} (role={user.role}, status={user.status})")

    if isinstance(body, ProviderSignUpRequest):
        registration = ProviderRegistration(
            business_name=body.business_name,
            business_email=body.business_email,
            business_phone=body.business_phone,
            city=body.city,
        )
        result = register_provider(db, user, registration)
        if "error" in result:
            log.warning(f"Provider row not created for {user.email}: {result['error']}")

    return user_to_dict(user)


def authenticate(db: Session, email: str, password: str) -> Profile | dict:
    """Check credentials and account state. Returns the profile or an error dict."""
    user = db.query(Profile).filter(Profile.email == email.strip().lower()).first()
    if not user or user.deleted_at is not None or not verify_password(password, user.password_hash):
        return {"error": "Invalid email or password", "status": 401}
    if user.status == "suspended":
        reason = f": {user.suspension_reason}" if user.suspension_reason else ""
        return {"error": f"Account suspended{reason}", "status": 403}
    if user.status == "rejected":
        return {"error": "Account has been rejected", "status": 403}

    user.last_login_at = datetime.now(timezone.utc)
    user.login_count = (user.login_count or 0) + 1
    db.commit()
    return user


def _sign_in_sync(session_factory, email: str, password: str) -> dict:
    db = session_factory()
    try:
        result = authenticate(db, email, password)
        if isinstance(result, dict):
            return result
        return {"user": user_to_dict(result), "claims": session_claims(result)}
    finally:
        db.close()


async def sign_in(email: str, password: str, session_factory=SessionLocal,
                  timeout: float | None = None) -> dict:
    """Authenticate within the sign-in timeout. Returns {"user", "claims"} or an error dict."""
    try:
        result = await asyncio.wait_for(
            asyncio.to_thread(_sign_in_sync, session_factory, email, password),
            timeout or settings.sign_in_timeout_s,
        )
    except asyncio.TimeoutError:
        log.error(f"Sign-in timed out for {email}")
        return {"error": "Sign in timed out, please try again", "status": 504}

    if "error" in result:
        log.info(f"Sign-in refused for {email}: {result['error']}")
        return result
    log.info(f"Signed in: {email}")
    emit_auth_event(SIGNED_IN, result["user"])
    return result


def sign_out(session: dict) -> None:
    user_id = session.get("user_id")
    session.clear()
    if user_id:
        emit_auth_event(SIGNED_OUT, {"id": user_id})


# ── Current user ─────────────────────────────────────────────────────


def user_from_claims(claims: dict) -> dict:
    """Identity embedded in the session, used when the profile fetch fails."""
    email = claims.get("email") or ""
    return {
        "id": claims["user_id"],
        "email": email,
        "name": claims.get("name") or email.split("@")[0],
        "role": claims.get("role") or "user",
        "status": claims.get("status") or "approved",
        "from_session": True,
    }


def _load_profile(session_factory, user_id: str) -> dict | None:
    db = session_factory()
    try:
        user = db.get(Profile, user_id)
        if user is None or user.deleted_at is not None:
            return None
        return user_to_dict(user)
    finally:
        db.close()


async def get_current_user(claims: dict, session_factory=SessionLocal,
                           timeout: float | None = None) -> dict | None:
    """Fresh profile for the session, or the session's own claims on timeout/failure.

    Returns None when there is no session or the account no longer exists.
    """
    if not claims or not claims.get("user_id"):
        return None
    try:
        profile = await asyncio.wait_for(
            asyncio.to_thread(_load_profile, session_factory, claims["user_id"]),
            timeout or settings.profile_fetch_timeout_s,
        )
    except asyncio.TimeoutError:
        log.warning(f"Profile fetch timed out for {claims['user_id']}, using session identity")
        return user_from_claims(claims)
    except Exception as e:
        log.warning(f"Profile fetch failed for {claims['user_id']} ({e}), using session identity")
        return user_from_claims(claims)
    return profile


def update_profile(db: Session, user: Profile, body: ProfileUpdate) -> dict:
    for key, value in body.model_dump(exclude_unset=True).items():
        setattr(user, key, value)
    db.commit()
    data = user_to_dict(user)
    emit_auth_event(USER_UPDATED, data)
    return data
