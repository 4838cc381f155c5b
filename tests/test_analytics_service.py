"""
test_analytics_service.py — Tests for dashboard analytics and tracking.

Growth percentage rule, growth text, dense per-day series, the all-zero
fallback when aggregation fails, and view/inquiry tracking.

Called by: pytest
Depends on: app/services/analytics_service.py, conftest.py
"""

from collections import Counter
from datetime import date, datetime, timedelta, timezone

import pytest

from app.models import AdminActivityLog, PropertyAnalytics, PropertyView, UserActivity
from app.schemas.analytics import DashboardAnalytics
from app.services import analytics_service
from app.services.analytics_service import (
    calculate_growth_percentage,
    count_by_day,
    dense_series,
    estimated_daily_logins,
    format_growth_percentage,
    window_dates,
)


# ── Growth ──────────────────────────────────────────────────────────


class TestGrowthPercentage:
    def test_zero_to_zero(self):
        assert calculate_growth_percentage(0, 0) == 0

    def test_zero_to_positive_is_hundred(self):
        assert calculate_growth_percentage(0, 1) == 100
        assert calculate_growth_percentage(0, 250) == 100

    @pytest.mark.parametrize(
        "previous, current, expected",
        [(10, 15, 50), (10, 5, -50), (3, 4, 33), (8, 9, 13), (4, 4, 0), (5, 0, -100)],
    )
    def test_rounded_percentage(self, previous, current, expected):
        assert calculate_growth_percentage(previous, current) == expected


class TestFormatGrowth:
    def test_positive(self):
        f = format_growth_percentage(12)
        assert f.text == "+12% from last month"
        assert f.is_positive is True
        assert f.is_neutral is False

    def test_negative(self):
        f = format_growth_percentage(-7)
        assert f.text == "-7% from last month"
        assert f.is_positive is False
        assert f.is_neutral is False

    def test_neutral(self):
        f = format_growth_percentage(0)
        assert f.text == "0% from last month"
        assert f.is_neutral is True


# ── Series helpers ──────────────────────────────────────────────────


class TestSeries:
    def test_window_is_oldest_first(self):
        today = date(2026, 3, 10)
        days = window_dates(3, today)
        assert days == [date(2026, 3, 8), date(2026, 3, 9), date(2026, 3, 10)]

    def test_dense_series_fills_gaps(self):
        today = date(2026, 3, 10)
        counts = Counter({date(2026, 3, 9): 4})
        assert dense_series(counts, 3, today) == [
            (date(2026, 3, 8), 0),
            (date(2026, 3, 9), 4),
            (date(2026, 3, 10), 0),
        ]

    def test_count_by_day_uses_utc_dates(self):
        stamps = [
            datetime(2026, 3, 9, 23, 30, tzinfo=timezone.utc),
            datetime(2026, 3, 10, 1, 0, tzinfo=timezone(timedelta(hours=3))),  # 22:00 UTC on the 9th
            None,
        ]
        assert count_by_day(stamps) == Counter({date(2026, 3, 9): 2})

    def test_daily_logins_floor(self):
        assert estimated_daily_logins(0) == 1
        assert estimated_daily_logins(10) == 3


# ── Dashboard ───────────────────────────────────────────────────────


class TestDashboardAnalytics:
    def test_counts_and_dense_series(self, db_session, admin_user, test_user, provider_user,
                                     test_property, published_property):
        db_session.add(AdminActivityLog(admin_id=admin_user.id, action_type="approve",
                                        target_type="property", target_id=test_property.id))
        db_session.commit()

        result = analytics_service.get_dashboard_analytics(db_session, days=7)

        o = result.overview
        assert o.total_users == 3
        assert o.total_providers == 1
        assert o.active_providers == 1
        assert o.total_properties == 2
        assert o.pending_properties == 1
        assert o.active_properties == 1
        assert o.daily_activities == 1
        assert o.total_revenue == 2 * 5000
        assert o.revenue_is_estimate is True
        assert len(result.user_growth) == 7
        assert len(result.property_performance) == 7
        assert len(result.activity_trends) == 7
        assert result.user_growth[-1].new_users == 3

    def test_soft_deleted_users_excluded(self, db_session, test_user, admin_user):
        test_user.deleted_at = datetime.now(timezone.utc)
        db_session.commit()
        result = analytics_service.get_dashboard_analytics(db_session, days=7)
        assert result.overview.total_users == 1

    def test_failure_returns_zero_defaults(self, db_session, test_user, monkeypatch):
        def broken(db, days):
            raise ConnectionError("network unreachable")

        monkeypatch.setattr(analytics_service, "_user_growth", broken)
        result = analytics_service.get_dashboard_analytics(db_session)

        overview = result.overview.model_dump()
        overview.pop("revenue_is_estimate")
        assert all(v == 0 for v in overview.values())
        assert result.user_growth == []
        assert result.property_performance == []
        assert result.activity_trends == []

    def test_default_shape(self):
        d = DashboardAnalytics.default()
        assert d.overview.total_users == 0
        assert d.activity_trends == []


class TestGrowthMetrics:
    def test_new_month_growth(self, db_session, test_user, admin_user):
        metrics = analytics_service.get_growth_metrics(db_session)
        assert metrics["users"].current == 2
        assert metrics["users"].growth == 100
        assert metrics["users"].formatted.text == "+100% from last month"
        assert metrics["inquiries"].growth == 0
        assert set(metrics) == {"users", "providers", "properties", "revenue", "inquiries", "views"}

    def test_soft_deleted_provider_not_counted(self, db_session, provider_user, test_provider):
        assert analytics_service.get_total_stats(db_session)["providers"] == 1

        provider_user.deleted_at = datetime.now(timezone.utc)
        db_session.commit()

        assert analytics_service.get_total_stats(db_session)["providers"] == 0
        assert analytics_service.get_growth_metrics(db_session)["providers"].current == 0
        dashboard = analytics_service.get_dashboard_analytics(db_session, days=7)
        assert dashboard.overview.total_providers == 0


# ── Tracking ────────────────────────────────────────────────────────


class TestTracking:
    def test_record_view_updates_counters(self, db_session, published_property, test_provider):
        assert analytics_service.record_property_view(db_session, published_property.id, source="search") is True

        db_session.refresh(published_property)
        db_session.refresh(test_provider)
        assert published_property.views == 1
        assert test_provider.total_views == 1
        assert db_session.query(PropertyView).count() == 1

        daily = db_session.query(PropertyAnalytics).one()
        assert daily.views == 1
        assert daily.date == datetime.now(timezone.utc).date()

    def test_record_view_missing_property(self, db_session):
        assert analytics_service.record_property_view(db_session, "missing") is False

    def test_daily_upsert_accumulates(self, db_session, published_property):
        analytics_service.update_property_analytics(db_session, published_property.id, "inquiry", 1)
        analytics_service.update_property_analytics(db_session, published_property.id, "inquiry", 2)
        analytics_service.update_property_analytics(db_session, published_property.id, "share", 1)
        row = db_session.query(PropertyAnalytics).one()
        assert row.inquiries == 3
        assert row.shares == 1

    def test_get_property_analytics(self, db_session, published_property):
        analytics_service.update_property_analytics(db_session, published_property.id, "view", 5)
        rows = analytics_service.get_property_analytics(db_session, property_id=published_property.id)
        assert rows[0]["views"] == 5

    def test_backfill_rebuilds_views(self, db_session, published_property):
        for _ in range(3):
            db_session.add(PropertyView(property_id=published_property.id))
        db_session.commit()

        assert analytics_service.backfill_analytics(db_session) == 1
        assert db_session.query(PropertyAnalytics).one().views == 3

    def test_backfill_without_views(self, db_session):
        assert analytics_service.backfill_analytics(db_session) == 0

    def test_track_user_activity(self, db_session, test_user):
        analytics_service.track_user_activity(
            db_session, test_user.id, "search", metadata={"query": "Karen"}
        )
        row = db_session.query(UserActivity).one()
        assert row.activity_type == "search"
        assert row.metadata_ == {"query": "Karen"}
