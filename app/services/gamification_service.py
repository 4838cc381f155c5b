"""
gamification_service.py — Per-user XP, levels and achievements

An explicit service object (one per request, injected with
Depends(get_gamification_service)) over the user_progress table.

Business Rules:
- level = xp // 100 + 1; xp_to_next = level * 100 - xp
- Achievement progress is capped at its maximum; reaching the maximum
  unlocks it once and awards XP by rarity: common 10, rare 25, epic 50,
  legendary 100
- New users start with first-visit already unlocked (no XP for it)
- A property priced at or above LUXURY_PRICE also counts toward
  luxury-seeker

Called by: routers/gamification.py
Depends on: models (UserProgress), schemas/gamification.py
"""

import logging
from dataclasses import dataclass

from fastapi import Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import UserProgress
from ..schemas.gamification import AchievementResult, AchievementState, ProgressView, XpResult

log = logging.getLogger(__name__)

XP_PER_LEVEL = 100
LUXURY_PRICE = 1_000_000

RARITY_XP = {"common": 10, "rare": 25, "epic": 50, "legendary": 100}


@dataclass(frozen=True)
class Achievement:
    id: str
    title: str
    description: str
    max_progress: int
    rarity: str


ACHIEVEMENTS = {
    a.id: a
    for a in [
        Achievement("first-visit", "Welcome Explorer", "Visit for the first time", 1, "common"),
        Achievement("property-viewer", "Property Enthusiast", "View 10 different properties", 10, "common"),
        Achievement("search-master", "Search Master", "Perform 25 property searches", 25, "rare"),
        Achievement("luxury-seeker", "Luxury Connoisseur", "View 5 luxury properties", 5, "epic"),
        Achievement("property-collector", "Property Collector", "Save 20 properties to favorites", 20, "legendary"),
    ]
}


def level_for(xp: int) -> int:
    return xp // XP_PER_LEVEL + 1


def xp_to_next(xp: int) -> int:
    return level_for(xp) * XP_PER_LEVEL - xp


class GamificationService:
    def __init__(self, db: Session):
        self.db = db

    def get_progress(self, user_id: str) -> UserProgress:
        progress = self.db.get(UserProgress, user_id)
        if progress is None:
            progress = UserProgress(user_id=user_id, xp=0, level=1, achievements={"first-visit": 1})
            self.db.add(progress)
            self.db.commit()
        return progress

    def _state(self, progress: UserProgress, achievement: Achievement) -> AchievementState:
        count = (progress.achievements or {}).get(achievement.id, 0)
        return AchievementState(
            id=achievement.id,
            title=achievement.title,
            description=achievement.description,
            rarity=achievement.rarity,
            progress=count,
            max_progress=achievement.max_progress,
            unlocked=count >= achievement.max_progress,
        )

    def view(self, progress: UserProgress) -> ProgressView:
        return ProgressView(
            user_id=progress.user_id,
            level=progress.level,
            xp=progress.xp,
            xp_to_next=xp_to_next(progress.xp),
            achievements=[self._state(progress, a) for a in ACHIEVEMENTS.values()],
        )

    def add_xp(self, progress: UserProgress, amount: int, reason: str = "") -> XpResult:
        previous_level = progress.level or 1
        progress.xp = (progress.xp or 0) + amount
        progress.level = level_for(progress.xp)
        self.db.commit()

        leveled_up = progress.level > previous_level
        if leveled_up:
            log.info(f"User {progress.user_id} reached level {progress.level} ({reason})")
        return XpResult(
            xp=progress.xp,
            level=progress.level,
            xp_to_next=xp_to_next(progress.xp),
            leveled_up=leveled_up,
            reason=reason,
        )

    def record_achievement_progress(self, progress: UserProgress, achievement_id: str,
                                    increment: int = 1) -> AchievementResult:
        achievement = ACHIEVEMENTS.get(achievement_id)
        if achievement is None:
            raise KeyError(f"Unknown achievement: {achievement_id}")

        counts = dict(progress.achievements or {})
        before = counts.get(achievement_id, 0)
        after = min(before + increment, achievement.max_progress)
        counts[achievement_id] = after
        progress.achievements = counts  # reassign so the JSON column is flagged dirty

        just_unlocked = before < achievement.max_progress <= after
        if not just_unlocked:
            self.db.commit()
            return AchievementResult(achievement=self._state(progress, achievement))

        xp = self.add_xp(progress, RARITY_XP[achievement.rarity], f"Achievement: {achievement.title}")
        log.info(f"User {progress.user_id} unlocked {achievement_id}")
        return AchievementResult(
            achievement=self._state(progress, achievement),
            just_unlocked=True,
            xp_awarded=RARITY_XP[achievement.rarity],
            leveled_up=xp.leveled_up,
        )

    # ── Actions ──────────────────────────────────────────────────────

    def view_property(self, user_id: str, price: float | None = None) -> list[AchievementResult]:
        progress = self.get_progress(user_id)
        results = [self.record_achievement_progress(progress, "property-viewer")]
        if price is not None and price >= LUXURY_PRICE:
            results.append(self.record_achievement_progress(progress, "luxury-seeker"))
        return results

    def view_luxury(self, user_id: str) -> AchievementResult:
        return self.record_achievement_progress(self.get_progress(user_id), "luxury-seeker")

    def perform_search(self, user_id: str) -> AchievementResult:
        return self.record_achievement_progress(self.get_progress(user_id), "search-master")

    def save_favorite(self, user_id: str) -> AchievementResult:
        return self.record_achievement_progress(self.get_progress(user_id), "property-collector")


def get_gamification_service(db: Session = Depends(get_db)) -> GamificationService:
    return GamificationService(db)
