"""
analytics_service.py — Dashboard aggregation, growth metrics, view/activity tracking

Fetches point-in-time rows (status + timestamps) and aggregates them in
memory: totals, status subtotals, "new in window" counts and per-day
series over the window.

Business Rules:
- Growth: previous == 0 → 100 if current > 0 else 0; otherwise
  round((current - previous) / previous * 100), halves rounded up
- Every per-day series has exactly `days` entries, oldest first, one per
  calendar day (UTC) ending today; days without data are explicit zeros
- Revenue is a placeholder: listing count x settings.listing_fee_ksh
  (flagged revenue_is_estimate), not billing data
- daily_logins is an estimate: max(1, floor(daily_activities * 0.3))
- Dashboard aggregation never raises: any failure returns the all-zero,
  empty-series default
- Tracking writes try the database function first, then a direct upsert;
  tracking failures are logged, never surfaced

Called by: routers/admin.py, routers/properties.py, services/property_service.py
Depends on: models, rpc.py, fallback.py, schemas/analytics.py
"""

import logging
import math
from collections import Counter
from datetime import date, datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..fallback import with_fallback
from ..models import (
    AdminActivityLog,
    Inquiry,
    Profile,
    Property,
    PropertyAnalytics,
    PropertyView,
    Provider,
    RevenueRecord,
    UserActivity,
)
from ..rpc import call_rpc
from ..schemas.analytics import (
    ActivityPoint,
    DashboardAnalytics,
    GrowthFormat,
    GrowthMetric,
    Overview,
    PerformancePoint,
    UserGrowthPoint,
)

log = logging.getLogger(__name__)

METRIC_COLUMNS = {
    "view": "views",
    "inquiry": "inquiries",
    "favorite": "favorites",
    "share": "shares",
}


# ── Pure helpers ─────────────────────────────────────────────────────


def calculate_growth_percentage(previous: float, current: float) -> int:
    """Period-over-period growth in whole percent. 0 → n is +100%, 0 → 0 is 0%."""
    if previous == 0:
        return 100 if current > 0 else 0
    return math.floor((current - previous) / previous * 100 + 0.5)


def format_growth_percentage(growth: int) -> GrowthFormat:
    is_positive = growth > 0
    sign = "+" if is_positive else ""
    return GrowthFormat(
        value=growth,
        text=f"{sign}{growth}% from last month",
        is_positive=is_positive,
        is_neutral=growth == 0,
    )


def _today() -> date:
    return datetime.now(timezone.utc).date()


def window_dates(days: int, today: date | None = None) -> list[date]:
    """The `days` calendar days ending today, oldest first."""
    today = today or _today()
    return [today - timedelta(days=i) for i in range(days - 1, -1, -1)]


def _day(value) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def count_by_day(timestamps) -> Counter:
    return Counter(d for d in (_day(t) for t in timestamps) if d is not None)


def dense_series(counts: Counter, days: int, today: date | None = None) -> list[tuple[date, int]]:
    """(day, count) for every day in the window; missing days are 0."""
    return [(d, counts.get(d, 0)) for d in window_dates(days, today)]


def estimated_revenue(listing_count: int) -> int:
    return listing_count * settings.listing_fee_ksh


def estimated_daily_logins(daily_activities: int) -> int:
    return max(1, math.floor(daily_activities * 0.3))


# ── Dashboard ────────────────────────────────────────────────────────


def _start_of_today() -> datetime:
    return datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def _window_start(days: int) -> datetime:
    return _start_of_today() - timedelta(days=days - 1)


def _user_growth(db: Session, days: int) -> list[UserGrowthPoint]:
    rows = (
        db.query(Profile.created_at)
        .filter(Profile.deleted_at.is_(None), Profile.created_at >= _window_start(days))
        .all()
    )
    counts = count_by_day(r[0] for r in rows)
    return [UserGrowthPoint(date=d.isoformat(), new_users=n) for d, n in dense_series(counts, days)]


def _property_performance(db: Session, days: int) -> list[PerformancePoint]:
    start = _window_start(days)
    daily = (
        db.query(PropertyAnalytics.date, PropertyAnalytics.views, PropertyAnalytics.inquiries)
        .filter(PropertyAnalytics.date >= start.date())
        .all()
    )
    views, inquiries = Counter(), Counter()
    if daily:
        for day, v, i in daily:
            views[day] += v or 0
            inquiries[day] += i or 0
    else:
        # No daily rows yet: derive from raw views and inquiries
        views = count_by_day(
            r[0] for r in db.query(PropertyView.viewed_at).filter(PropertyView.viewed_at >= start).all()
        )
        inquiries = count_by_day(
            r[0] for r in db.query(Inquiry.created_at).filter(Inquiry.created_at >= start).all()
        )
    return [
        PerformancePoint(date=d.isoformat(), total_views=views.get(d, 0), total_inquiries=inquiries.get(d, 0))
        for d in window_dates(days)
    ]


def _activity_trends(db: Session, days: int) -> list[ActivityPoint]:
    start = _window_start(days)
    stamps = [r[0] for r in db.query(AdminActivityLog.created_at).filter(AdminActivityLog.created_at >= start)]
    stamps += [
        r[0]
        for r in db.query(Profile.created_at).filter(
            Profile.created_at >= start, Profile.deleted_at.is_(None)
        )
    ]
    stamps += [r[0] for r in db.query(Property.created_at).filter(Property.created_at >= start)]
    counts = count_by_day(stamps)
    return [ActivityPoint(date=d.isoformat(), activity_count=n) for d, n in dense_series(counts, days)]


def _daily_activities(db: Session) -> int:
    return (
        db.query(AdminActivityLog)
        .filter(AdminActivityLog.created_at >= _start_of_today())
        .count()
    )


def get_dashboard_analytics(db: Session, days: int | None = None) -> DashboardAnalytics:
    """Overview numbers plus three dense per-day series. Zeros on any failure."""
    days = days or settings.analytics_window_days
    try:
        since = datetime.now(timezone.utc) - timedelta(days=days)

        users = (
            db.query(Profile.role, Profile.status, Profile.created_at)
            .filter(Profile.deleted_at.is_(None))
            .all()
        )
        properties = db.query(Property.status, Property.created_at).all()
        providers = [u for u in users if u.role == "provider"]
        new_properties = sum(1 for p in properties if p.created_at and p.created_at >= since)
        daily_activities = _daily_activities(db)

        overview = Overview(
            total_users=len(users),
            active_users=sum(1 for u in users if u.status == "approved"),
            suspended_users=sum(1 for u in users if u.status == "suspended"),
            new_users_30_days=sum(1 for u in users if u.created_at and u.created_at >= since),
            total_providers=len(providers),
            pending_providers=sum(1 for p in providers if p.status == "pending"),
            active_providers=sum(1 for p in providers if p.status == "approved"),
            total_properties=len(properties),
            pending_properties=sum(1 for p in properties if p.status == "pending"),
            active_properties=sum(1 for p in properties if p.status == "published"),
            new_properties_30_days=new_properties,
            daily_activities=daily_activities,
            daily_logins=estimated_daily_logins(daily_activities),
            total_revenue=estimated_revenue(len(properties)),
            revenue_30_days=estimated_revenue(new_properties),
        )
        return DashboardAnalytics(
            overview=overview,
            user_growth=_user_growth(db, days),
            property_performance=_property_performance(db, days),
            activity_trends=_activity_trends(db, days),
        )
    except Exception as e:
        log.error(f"Dashboard analytics failed, returning defaults: {e}")
        try:
            db.rollback()
        except SQLAlchemyError:
            pass
        return DashboardAnalytics.default()


# ── Monthly Stats & Growth ───────────────────────────────────────────


def _month_start(dt: datetime) -> datetime:
    return dt.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _period_stats(db: Session, start: datetime | None = None, end: datetime | None = None) -> dict:
    def bounded(q, column):
        if start is not None:
            q = q.filter(column >= start)
        if end is not None:
            q = q.filter(column < end)
        return q.count()

    properties = bounded(db.query(Property.id), Property.created_at)
    return {
        "users": bounded(db.query(Profile.id).filter(Profile.deleted_at.is_(None)), Profile.created_at),
        "providers": bounded(
            db.query(Provider.id)
            .join(Profile, Provider.user_id == Profile.id)
            .filter(Profile.deleted_at.is_(None)),
            Provider.created_at,
        ),
        "properties": properties,
        "revenue": estimated_revenue(properties),
        "inquiries": bounded(db.query(Inquiry.id), Inquiry.created_at),
        "views": bounded(db.query(PropertyView.id), PropertyView.viewed_at),
    }


def _zero_stats() -> dict:
    return {"users": 0, "providers": 0, "properties": 0, "revenue": 0, "inquiries": 0, "views": 0}


def get_current_month_stats(db: Session) -> dict:
    try:
        return _period_stats(db, start=_month_start(datetime.now(timezone.utc)))
    except SQLAlchemyError as e:
        log.error(f"Current month stats failed: {e}")
        return _zero_stats()


def get_previous_month_stats(db: Session) -> dict:
    this_month = _month_start(datetime.now(timezone.utc))
    last_month = _month_start(this_month - timedelta(days=1))
    try:
        return _period_stats(db, start=last_month, end=this_month)
    except SQLAlchemyError as e:
        log.error(f"Previous month stats failed: {e}")
        return _zero_stats()


def get_growth_metrics(db: Session) -> dict[str, GrowthMetric]:
    """Current vs previous calendar month for each headline metric."""
    current = get_current_month_stats(db)
    previous = get_previous_month_stats(db)
    out = {}
    for key in current:
        growth = calculate_growth_percentage(previous[key], current[key])
        out[key] = GrowthMetric(
            current=current[key],
            previous=previous[key],
            growth=growth,
            formatted=format_growth_percentage(growth),
        )
    return out


def get_total_stats(db: Session) -> dict:
    try:
        return _period_stats(db)
    except SQLAlchemyError as e:
        log.error(f"Total stats failed: {e}")
        return _zero_stats()


# ── Property Analytics ───────────────────────────────────────────────


def _update_analytics_rpc(db: Session, property_id: str, metric: str, increment: int = 1) -> None:
    call_rpc(
        db, "update_property_analytics",
        p_property_id=property_id, p_metric_type=metric, p_increment=increment,
    )


def _update_analytics_direct(db: Session, property_id: str, metric: str, increment: int = 1) -> None:
    column = METRIC_COLUMNS[metric]
    today = _today()
    try:
        row = (
            db.query(PropertyAnalytics)
            .filter(PropertyAnalytics.property_id == property_id, PropertyAnalytics.date == today)
            .first()
        )
        if row is None:
            row = PropertyAnalytics(
                property_id=property_id, date=today, views=0, inquiries=0, favorites=0, shares=0
            )
            db.add(row)
        setattr(row, column, (getattr(row, column) or 0) + increment)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning(f"Daily analytics not updated for {property_id} ({metric}): {e}")


update_property_analytics = with_fallback(_update_analytics_rpc, _update_analytics_direct)


def record_property_view(db: Session, property_id: str, viewer_id: str | None = None,
                         viewer_ip: str | None = None, source: str = "direct") -> bool:
    """Insert a view row, bump counters, update the daily aggregate."""
    prop = db.get(Property, property_id)
    if not prop:
        return False
    try:
        db.add(PropertyView(property_id=property_id, viewer_id=viewer_id, viewer_ip=viewer_ip, source=source))
        prop.views = (prop.views or 0) + 1
        if prop.provider:
            prop.provider.total_views = (prop.provider.total_views or 0) + 1
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning(f"Property view not recorded for {property_id}: {e}")
        return False

    update_property_analytics(db, property_id, "view", 1)
    return True


def analytics_row_to_dict(r: PropertyAnalytics) -> dict:
    return {
        "property_id": r.property_id,
        "date": r.date.isoformat(),
        "views": r.views or 0,
        "inquiries": r.inquiries or 0,
        "favorites": r.favorites or 0,
        "shares": r.shares or 0,
    }


def get_property_analytics(db: Session, property_id: str | None = None, days: int = 30) -> list[dict]:
    q = db.query(PropertyAnalytics).filter(PropertyAnalytics.date >= _today() - timedelta(days=days))
    if property_id:
        q = q.filter(PropertyAnalytics.property_id == property_id)
    try:
        rows = q.order_by(PropertyAnalytics.date.desc()).all()
    except SQLAlchemyError as e:
        log.error(f"Property analytics fetch failed: {e}")
        return []
    return [analytics_row_to_dict(r) for r in rows]


def backfill_analytics(db: Session) -> int:
    """Rebuild daily view counts from raw property_views. Returns rows written."""
    per_day = Counter(
        (pid, _day(viewed_at))
        for pid, viewed_at in db.query(PropertyView.property_id, PropertyView.viewed_at).all()
    )
    if not per_day:
        log.info("Analytics backfill: no property views")
        return 0

    existing = {
        (r.property_id, r.date): r
        for r in db.query(PropertyAnalytics).filter(
            PropertyAnalytics.property_id.in_({pid for pid, _ in per_day})
        )
    }
    for (pid, day), count in per_day.items():
        row = existing.get((pid, day))
        if row is None:
            db.add(PropertyAnalytics(
                property_id=pid, date=day, views=count, inquiries=0, favorites=0, shares=0
            ))
        else:
            row.views = count
    db.commit()
    log.info(f"Analytics backfill completed: {len(per_day)} records")
    return len(per_day)


# ── User Activity & Revenue ──────────────────────────────────────────


def _track_activity_rpc(db: Session, user_id: str | None, activity_type: str,
                        entity_type: str | None = None, entity_id: str | None = None,
                        metadata: dict | None = None) -> None:
    call_rpc(
        db, "track_user_activity",
        p_user_id=user_id, p_activity_type=activity_type,
        p_entity_type=entity_type, p_entity_id=entity_id, p_metadata=metadata or {},
    )


def _track_activity_direct(db: Session, user_id: str | None, activity_type: str,
                           entity_type: str | None = None, entity_id: str | None = None,
                           metadata: dict | None = None) -> None:
    try:
        db.add(UserActivity(
            user_id=user_id,
            activity_type=activity_type,
            entity_type=entity_type,
            entity_id=entity_id,
            metadata_=metadata or {},
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning(f"User activity not tracked ({activity_type}): {e}")


track_user_activity = with_fallback(_track_activity_rpc, _track_activity_direct)


def get_revenue_records(db: Session, provider_id: str | None = None) -> list[dict]:
    q = db.query(RevenueRecord)
    if provider_id:
        q = q.filter(RevenueRecord.provider_id == provider_id)
    return [
        {
            "id": r.id,
            "provider_id": r.provider_id,
            "amount": float(r.amount or 0),
            "currency": r.currency,
            "transaction_type": r.transaction_type,
            "description": r.description,
            "status": r.status,
            "created_at": r.created_at.isoformat() if r.created_at else None,
        }
        for r in q.order_by(RevenueRecord.created_at.desc()).all()
    ]
