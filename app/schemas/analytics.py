"""
schemas/analytics.py — Dashboard analytics, growth metrics and tracking bodies

DashboardAnalytics.default() is the all-zero / empty-series shape returned
whenever the aggregation fails, so dashboards always render.

Called by: services/analytics_service.py, routers/admin.py, routers/properties.py
Depends on: pydantic
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class Overview(BaseModel):
    total_users: int = 0
    active_users: int = 0
    suspended_users: int = 0
    new_users_30_days: int = 0
    total_providers: int = 0
    pending_providers: int = 0
    active_providers: int = 0
    total_properties: int = 0
    pending_properties: int = 0
    active_properties: int = 0
    new_properties_30_days: int = 0
    daily_activities: int = 0
    daily_logins: int = 0
    # Placeholder revenue: listing count x flat listing fee, not billing data
    total_revenue: int = 0
    revenue_30_days: int = 0
    revenue_is_estimate: bool = True


class UserGrowthPoint(BaseModel):
    date: str
    new_users: int = 0


class PerformancePoint(BaseModel):
    date: str
    total_views: int = 0
    total_inquiries: int = 0


class ActivityPoint(BaseModel):
    date: str
    activity_count: int = 0


class DashboardAnalytics(BaseModel):
    overview: Overview = Field(default_factory=Overview)
    user_growth: list[UserGrowthPoint] = Field(default_factory=list)
    property_performance: list[PerformancePoint] = Field(default_factory=list)
    activity_trends: list[ActivityPoint] = Field(default_factory=list)

    @classmethod
    def default(cls) -> "DashboardAnalytics":
        return cls()


class GrowthFormat(BaseModel):
    value: int
    text: str
    is_positive: bool
    is_neutral: bool


class GrowthMetric(BaseModel):
    current: float = 0
    previous: float = 0
    growth: int = 0
    formatted: GrowthFormat | None = None


class AnalyticsMetricUpdate(BaseModel):
    """Client-reported engagement. Views and inquiries have their own endpoints."""

    metric: Literal["favorite", "share"]


class TrackActivityRequest(BaseModel):
    activity_type: str
    entity_type: str | None = None
    entity_id: str | None = None
    metadata: dict = Field(default_factory=dict)
