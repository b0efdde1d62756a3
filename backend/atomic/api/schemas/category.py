"""Schemas for category CRUD."""
from __future__ import annotations

from typing import Optional
from uuid import UUID

from atomic.api.schemas.common import CamelModel


class CategoryResponse(CamelModel):
    id: UUID
    name: str
    color: str
    bg_color: str
    text_color: str


class CategoryCreateRequest(CamelModel):
    user_id: UUID
    name: str
    color: Optional[str] = None
    bg_color: Optional[str] = None
    text_color: Optional[str] = None


class CategoryUpdateRequest(CamelModel):
    user_id: UUID
    name: Optional[str] = None
    color: Optional[str] = None
    bg_color: Optional[str] = None
    text_color: Optional[str] = None


class CategoryDeleteResponse(CamelModel):
    id: UUID
    reassigned_tasks: int
