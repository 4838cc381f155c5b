"""Declarative base and shared column helpers."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String
from sqlalchemy.orm import DeclarativeBase

from ..database import UTCDateTime


class Base(DeclarativeBase):
    pass


def new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def id_column() -> Column:
    return Column(String(36), primary_key=True, default=new_id)


def created_at_column() -> Column:
    return Column(UTCDateTime, default=_now, nullable=False, index=True)


def updated_at_column() -> Column:
    return Column(UTCDateTime, default=_now, onupdate=_now)
