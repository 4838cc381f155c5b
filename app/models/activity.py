"""Audit, notification, tracking and revenue models."""

from sqlalchemy import JSON, Boolean, Column, Numeric, String, Text

from ..database import UTCDateTime
from .base import Base, created_at_column, id_column


class AdminActivityLog(Base):
    """Append-only audit trail of moderation actions."""

    __tablename__ = "admin_activity_logs"
    id = id_column()
    admin_id = Column(String(36), index=True)
    action_type = Column(String(50), nullable=False)  # approve, reject, suspend, activate, delete
    target_type = Column(String(30), nullable=False)  # user, provider, property, plan
    target_id = Column(String(36), index=True)
    target_email = Column(String(255))
    details = Column(JSON, default=dict)
    created_at = created_at_column()


class SystemNotification(Base):
    """Admin-facing notification. admin_id null = visible to every admin."""

    __tablename__ = "system_notifications"
    id = id_column()
    admin_id = Column(String(36), index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    severity = Column(String(10), default="info")  # info | warning | error | success
    is_read = Column(Boolean, default=False)
    related_entity_type = Column(String(30))
    related_entity_id = Column(String(36))
    created_at = created_at_column()
    read_at = Column(UTCDateTime)


class ProviderNotification(Base):
    """Owner-facing notification (providers and regular users)."""

    __tablename__ = "provider_notifications"
    id = id_column()
    user_id = Column(String(36), index=True, nullable=False)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    severity = Column(String(10), default="info")
    is_read = Column(Boolean, default=False)
    related_entity_type = Column(String(30))
    related_entity_id = Column(String(36))
    created_at = created_at_column()
    read_at = Column(UTCDateTime)


class UserActivity(Base):
    __tablename__ = "user_activities"
    id = id_column()
    user_id = Column(String(36), index=True)
    activity_type = Column(String(50), nullable=False)
    entity_type = Column(String(30))
    entity_id = Column(String(36))
    metadata_ = Column("metadata", JSON, default=dict)
    created_at = created_at_column()


class RevenueRecord(Base):
    __tablename__ = "revenue_records"
    id = id_column()
    provider_id = Column(String(36), index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    currency = Column(String(10), default="KSH")
    transaction_type = Column(String(30))  # listing_fee, subscription, featured
    description = Column(Text)
    status = Column(String(20), default="completed")
    created_at = created_at_column()
