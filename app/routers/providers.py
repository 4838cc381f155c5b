"""
routers/providers.py — Provider self-registration and status

Business Rules:
- Any signed-in account can register as a provider; the account moves to
  role provider, status pending, and admins are notified
- /api/providers/me reports the caller's provider row and approval label

Called by: main.py (router mount)
Depends on: services/provider_service.py
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_user
from ..models import Profile
from ..schemas.accounts import ProviderRegistration
from ..services import provider_service

router = APIRouter(tags=["providers"])


@router.post("/api/providers/register")
def api_register_provider(
    body: ProviderRegistration,
    user: Profile = Depends(require_user),
    db: Session = Depends(get_db),
):
    result = provider_service.register_provider(db, user, body)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result


@router.get("/api/providers/me")
def api_my_provider(user: Profile = Depends(require_user), db: Session = Depends(get_db)):
    provider = provider_service.get_provider_by_user(db, user.id)
    if not provider:
        raise HTTPException(404, "No provider profile for this account")
    return provider_service.provider_to_dict(provider)
