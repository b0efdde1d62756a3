"""Category CRUD and label resolution."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from atomic.core.config import settings
from atomic.db.models.category import Category
from atomic.db.models.task import Task
from atomic.services.user_service import ensure_owner, get_or_create_user

logger = logging.getLogger(__name__)

DEFAULT_STYLE = {
    "color": "bg-gray-500",
    "bg_color": "bg-gray-100 dark:bg-gray-900",
    "text_color": "text-gray-800 dark:text-gray-200",
}

_PALETTE = {
    "Work": "blue",
    "Personal": "purple",
    "Personal Development": "green",
    "Health & Fitness": "orange",
    "Study": "indigo",
    "Commitments": "red",
    "Exercise": "emerald",
    "Travel": "sky",
    "Meals": "amber",
    "Break": "slate",
}


@dataclass
class CategoryResolution:
    name: str
    category_id: Optional[UUID]
    created: bool = False
    fell_back: bool = False


def category_style(name: str) -> Dict[str, str]:
    """Tailwind classes for a category name; unknown names get the gray style."""
    hue = _PALETTE.get(name)
    if not hue:
        return dict(DEFAULT_STYLE)
    return {
        "color": f"bg-{hue}-500",
        "bg_color": f"bg-{hue}-100 dark:bg-{hue}-900",
        "text_color": f"text-{hue}-800 dark:text-{hue}-200",
    }


def list_categories(db: Session, user_id: UUID) -> List[Category]:
    return (
        db.query(Category)
        .filter(Category.user_id == user_id)
        .order_by(Category.created_at.asc(), Category.name.asc())
        .all()
    )


def find_by_name(db: Session, user_id: UUID, name: str) -> Optional[Category]:
    """Case-insensitive lookup of a user's category."""
    return (
        db.query(Category)
        .filter(Category.user_id == user_id, func.lower(Category.name) == name.strip().lower())
        .first()
    )


def get_category(db: Session, category_id: UUID, user_id: UUID) -> Category:
    category = db.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    ensure_owner(category.user_id, user_id, "Category")
    return category


def _clean_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Category name is required")
    return cleaned


def create_category(
    db: Session,
    user_id: UUID,
    name: str,
    color: Optional[str] = None,
    bg_color: Optional[str] = None,
    text_color: Optional[str] = None,
) -> Category:
    """Insert a category; 409 when the user already has one with that name."""
    cleaned = _clean_name(name)
    get_or_create_user(db, user_id)
    if find_by_name(db, user_id, cleaned):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A category with this name already exists",
        )

    style = category_style(cleaned)
    category = Category(
        user_id=user_id,
        name=cleaned,
        color=color or style["color"],
        bg_color=bg_color or style["bg_color"],
        text_color=text_color or style["text_color"],
    )
    db.add(category)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A category with this name already exists",
        ) from exc
    db.refresh(category)
    return category


def update_category(
    db: Session,
    category_id: UUID,
    user_id: UUID,
    name: Optional[str] = None,
    color: Optional[str] = None,
    bg_color: Optional[str] = None,
    text_color: Optional[str] = None,
) -> Category:
    category = get_category(db, category_id, user_id)

    if name is not None:
        cleaned = _clean_name(name)
        clash = find_by_name(db, user_id, cleaned)
        if clash and clash.id != category.id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A category with this name already exists",
            )
        if cleaned != category.name:
            # Keep the label fallback on tasks in step with the renamed row.
            db.query(Task).filter(Task.category_id == category.id).update(
                {Task.category_name: cleaned}, synchronize_session=False
            )
            category.name = cleaned
    if color:
        category.color = color
    if bg_color:
        category.bg_color = bg_color
    if text_color:
        category.text_color = text_color

    db.add(category)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A category with this name already exists",
        ) from exc
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: UUID, user_id: UUID) -> int:
    """Delete a category and move its tasks to the default label.

    Returns the number of reassigned tasks.
    """
    category = get_category(db, category_id, user_id)
    default_name = settings.default_category_name
    try:
        reassigned = (
            db.query(Task)
            .filter(Task.category_id == category.id)
            .update(
                {Task.category_id: None, Task.category_name: default_name},
                synchronize_session=False,
            )
        )
        db.delete(category)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info("Deleted category %s; reassigned %s tasks to %s", category_id, reassigned, default_name)
    return reassigned


def _fallback_resolution(db: Session, user_id: UUID) -> CategoryResolution:
    default_name = settings.default_category_name
    default = find_by_name(db, user_id, default_name)
    return CategoryResolution(
        name=default.name if default else default_name,
        category_id=default.id if default else None,
        fell_back=True,
    )


def resolve_categories(
    db: Session,
    user_id: UUID,
    names: Iterable[str],
    create_missing: bool = True,
) -> Dict[str, CategoryResolution]:
    """Resolve display names to category rows, creating missing ones when asked.

    Keys of the returned mapping are lower-cased names. A failed insert is
    retried as a lookup (another writer may have created the row) before the
    entry falls back to the default category.
    """
    get_or_create_user(db, user_id)
    existing = {category.name.lower(): category for category in list_categories(db, user_id)}
    resolved: Dict[str, CategoryResolution] = {}

    for raw_name in names:
        name = (raw_name or "").strip() or settings.default_category_name
        key = name.lower()
        if key in resolved:
            continue

        found = existing.get(key)
        if found:
            resolved[key] = CategoryResolution(name=found.name, category_id=found.id)
            continue
        if not create_missing:
            resolved[key] = CategoryResolution(name=name, category_id=None)
            continue

        style = category_style(name)
        category = Category(user_id=user_id, name=name, **style)
        db.add(category)
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Failed to create category %r: %s", name, exc)
            retry = find_by_name(db, user_id, name)
            if retry:
                resolved[key] = CategoryResolution(name=retry.name, category_id=retry.id)
            else:
                resolved[key] = _fallback_resolution(db, user_id)
            continue

        db.refresh(category)
        existing[key] = category
        resolved[key] = CategoryResolution(name=category.name, category_id=category.id, created=True)

    return resolved
