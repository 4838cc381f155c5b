"""
routers/auth.py — Authentication & Session Routes

Password sign-up/sign-in, sign-out, current-user resolution and profile
edits. The session cookie (starlette SessionMiddleware) carries the
identity claims written at sign-in.

Business Rules:
- Sign-up and sign-in are rate limited (settings.rate_limit_auth)
- A regular account is usable immediately; a provider account waits for
  admin approval (status pending) but may sign in to see its state
- /api/auth/me never fails because the profile fetch is slow: it falls
  back to the identity stored in the session
- Email normalized to lowercase on sign-up and sign-in

Called by: main.py (router mount)
Depends on: services/auth_service.py, dependencies.py
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..dependencies import require_user
from ..models import Profile
from ..rate_limit import limiter
from ..schemas.accounts import ProfileUpdate, ProviderSignUpRequest, SignInRequest, SignUpRequest
from ..services import auth_service

log = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


def _claims(request: Request) -> dict:
    return {k: request.session.get(k) for k in auth_service.SESSION_CLAIMS}


@router.post("/api/auth/signup")
@limiter.limit(settings.rate_limit_auth)
def api_sign_up(body: SignUpRequest, request: Request, db: Session = Depends(get_db)):
    result = auth_service.sign_up(db, body)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return {"user": result}


@router.post("/api/auth/signup/provider")
@limiter.limit(settings.rate_limit_auth)
def api_sign_up_provider(body: ProviderSignUpRequest, request: Request, db: Session = Depends(get_db)):
    result = auth_service.sign_up(db, body)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return {"user": result}


@router.post("/api/auth/signin")
@limiter.limit(settings.rate_limit_auth)
async def api_sign_in(body: SignInRequest, request: Request):
    result = await auth_service.sign_in(body.email, body.password)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    request.session.clear()
    request.session.update(result["claims"])
    return {"user": result["user"]}


@router.post("/api/auth/signout")
def api_sign_out(request: Request):
    auth_service.sign_out(request.session)
    return {"ok": True}


@router.get("/api/auth/me")
async def api_me(request: Request):
    user = await auth_service.get_current_user(_claims(request))
    if user is None:
        request.session.clear()
    return {"authenticated": user is not None, "user": user}


@router.put("/api/auth/profile")
def api_update_profile(
    body: ProfileUpdate,
    request: Request,
    user: Profile = Depends(require_user),
    db: Session = Depends(get_db),
):
    data = auth_service.update_profile(db, user, body)
    request.session["name"] = data["name"]
    return {"user": data}
