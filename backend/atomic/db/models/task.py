"""Task ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text as sa_text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from atomic.db.base import Base
from atomic.services.time_utils import TimeRange


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint("duration > 0", name="ck_tasks_duration_positive"),
        CheckConstraint("end_minute > start_minute", name="ck_tasks_range_ordered"),
        Index("ix_tasks_user_id", "user_id"),
        Index("ix_tasks_user_id_scheduled_date", "user_id", "scheduled_date"),
        Index("ix_tasks_category_id", "category_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users_data.id", ondelete="CASCADE"), nullable=False)
    name = Column(Text, nullable=False)
    # Minutes since midnight; an overnight task carries end_minute > 1440.
    start_minute = Column(Integer, nullable=False)
    end_minute = Column(Integer, nullable=False)
    category_id = Column(
        UUID(as_uuid=True),
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
    )
    category_name = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False)
    time_block = Column(String(length=20), nullable=False)
    position = Column(Integer, nullable=False, server_default=sa_text("0"))
    scheduled_date = Column(Date, nullable=True)
    priority = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    category = relationship("Category", lazy="joined")

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(self.start_minute, self.end_minute)

    @property
    def time(self) -> str:
        return self.time_range.display()

    @property
    def category_label(self) -> str:
        if self.category is not None and self.category.name:
            return self.category.name
        return self.category_name or "Personal"
