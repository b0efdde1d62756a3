"""Helpers for the per-user row every other table hangs off."""
from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from atomic.db.models.user import User


def get_or_create_user(db: Session, user_id: UUID) -> User:
    """Return the user row, inserting it on first use."""
    user = db.get(User, user_id)
    if user:
        return user

    user = User(id=user_id)
    db.add(user)
    try:
        db.flush()
        return user
    except IntegrityError:
        db.rollback()
        existing = db.get(User, user_id)
        if existing:
            return existing
        raise


def ensure_owner(owner_id: UUID, user_id: UUID, label: str) -> None:
    """Raise 403 when a row does not belong to the calling user."""
    if owner_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"{label} does not belong to user",
        )
