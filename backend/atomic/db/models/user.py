"""User ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from atomic.db.base import Base


class User(Base):
    __tablename__ = "users_data"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    onboarding_completed = Column(Boolean, nullable=False, server_default=sa_text("false"))
    onboarding_completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
