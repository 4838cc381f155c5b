"""
routers/gamification.py — XP, levels and achievements for the signed-in user

Called by: main.py (router mount)
Depends on: services/gamification_service.py
"""

from fastapi import APIRouter, Depends

from ..dependencies import require_user
from ..models import Profile
from ..schemas.gamification import PropertyViewEvent, XpAward
from ..services.gamification_service import GamificationService, get_gamification_service

router = APIRouter(tags=["gamification"])


@router.get("/api/gamification/progress")
def api_progress(
    user: Profile = Depends(require_user),
    svc: GamificationService = Depends(get_gamification_service),
):
    return svc.view(svc.get_progress(user.id))


@router.post("/api/gamification/property-view")
def api_property_view(
    body: PropertyViewEvent,
    user: Profile = Depends(require_user),
    svc: GamificationService = Depends(get_gamification_service),
):
    return svc.view_property(user.id, price=body.price)


@router.post("/api/gamification/search")
def api_search(
    user: Profile = Depends(require_user),
    svc: GamificationService = Depends(get_gamification_service),
):
    return svc.perform_search(user.id)


@router.post("/api/gamification/favorite")
def api_favorite(
    user: Profile = Depends(require_user),
    svc: GamificationService = Depends(get_gamification_service),
):
    return svc.save_favorite(user.id)


@router.post("/api/gamification/xp")
def api_award_xp(
    body: XpAward,
    user: Profile = Depends(require_user),
    svc: GamificationService = Depends(get_gamification_service),
):
    return svc.add_xp(svc.get_progress(user.id), body.amount, body.reason)
