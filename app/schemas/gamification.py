"""
schemas/gamification.py — XP, levels and achievement progress

Called by: services/gamification_service.py, routers/gamification.py
Depends on: pydantic
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

Rarity = Literal["common", "rare", "epic", "legendary"]


class AchievementState(BaseModel):
    id: str
    title: str
    description: str
    rarity: Rarity
    progress: int = 0
    max_progress: int
    unlocked: bool = False


class ProgressView(BaseModel):
    user_id: str
    level: int = 1
    xp: int = 0
    xp_to_next: int = 100
    achievements: list[AchievementState] = Field(default_factory=list)


class XpResult(BaseModel):
    xp: int
    level: int
    xp_to_next: int
    leveled_up: bool = False
    reason: str = ""


class AchievementResult(BaseModel):
    achievement: AchievementState
    just_unlocked: bool = False
    xp_awarded: int = 0
    leveled_up: bool = False


class XpAward(BaseModel):
    amount: int = Field(..., ge=1, le=1000)
    reason: str = ""


class PropertyViewEvent(BaseModel):
    price: float | None = None
