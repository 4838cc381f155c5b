"""Account & provider models."""

from sqlalchemy import JSON, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import UTCDateTime
from .base import Base, created_at_column, id_column, updated_at_column


class Profile(Base):
    __tablename__ = "profiles"
    id = id_column()
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(50))
    avatar_url = Column(String(1000))
    role = Column(String(20), default="user", nullable=False)  # admin | provider | user
    status = Column(
        String(30), default="pending", nullable=False
    )  # email_unconfirmed | pending | approved | rejected | suspended
    password_hash = Column(String(255))
    notes = Column(Text)

    # Moderation
    suspension_reason = Column(Text)
    suspended_at = Column(UTCDateTime)
    deleted_at = Column(UTCDateTime, index=True)
    deletion_reason = Column(Text)

    last_login_at = Column(UTCDateTime)
    login_count = Column(Integer, default=0)
    created_at = created_at_column()
    updated_at = updated_at_column()

    provider = relationship("Provider", back_populates="user", uselist=False)


class Provider(Base):
    __tablename__ = "providers"
    id = id_column()
    user_id = Column(String(36), ForeignKey("profiles.id"), unique=True, nullable=False)
    business_name = Column(String(255), nullable=False)
    business_email = Column(String(255), nullable=False)
    business_phone = Column(String(50), default="")
    city = Column(String(255), default="")
    subscription_status = Column(
        String(20), default="inactive"
    )  # active | inactive | expired | cancelled
    subscription_plan = Column(String(20), default="basic")  # basic | premium | enterprise
    total_listings = Column(Integer, default=0)
    total_views = Column(Integer, default=0)
    total_inquiries = Column(Integer, default=0)
    approved_at = Column(UTCDateTime)
    approved_by = Column(String(36))
    created_at = created_at_column()
    updated_at = updated_at_column()

    user = relationship("Profile", back_populates="provider")
    properties = relationship("Property", back_populates="provider")


class UserProgress(Base):
    __tablename__ = "user_progress"
    user_id = Column(String(36), ForeignKey("profiles.id"), primary_key=True)
    xp = Column(Integer, default=0, nullable=False)
    level = Column(Integer, default=1, nullable=False)
    achievements = Column(JSON, default=dict)  # {achievement_id: progress}
    updated_at = updated_at_column()
