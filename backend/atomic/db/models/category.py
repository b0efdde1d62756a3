"""Category ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from atomic.db.base import Base


class Category(Base):
    __tablename__ = "categories"
    __table_args__ = (Index("ix_categories_user_id", "user_id"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users_data.id", ondelete="CASCADE"), nullable=False)
    name = Column(Text, nullable=False)
    color = Column(String(length=100), nullable=False)
    bg_color = Column(String(length=100), nullable=False)
    text_color = Column(String(length=100), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


# Names are matched case-insensitively, so uniqueness is enforced on lower(name).
Index(
    "uq_categories_user_id_lower_name",
    Category.user_id,
    func.lower(Category.name),
    unique=True,
)
