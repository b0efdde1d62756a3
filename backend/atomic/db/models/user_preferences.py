"""Onboarding preferences ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Text, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from atomic.db.base import Base
from atomic.db.types import JSONBCompat


class UserPreferences(Base):
    __tablename__ = "user_preferences"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users_data.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    commitments = Column(JSONBCompat, nullable=False, default=list)
    natural_language_commitments = Column(Text, nullable=True)
    goals = Column(JSONBCompat, nullable=False, default=list)
    custom_goals = Column(Text, nullable=True)
    sleep_schedule = Column(JSONBCompat, nullable=False, default=dict)
    work_preferences = Column(JSONBCompat, nullable=False, default=dict)
    meal_times = Column(JSONBCompat, nullable=False, default=dict)
    onboarding_completed = Column(Boolean, nullable=False, server_default=sa_text("false"))
    onboarding_completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
