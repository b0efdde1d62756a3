"""Onboarding preferences storage and completion state."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from atomic.api.schemas.onboarding import OnboardingStatusPayload, UserPreferencesPayload
from atomic.db.models.user_preferences import UserPreferences
from atomic.services.user_service import get_or_create_user

logger = logging.getLogger(__name__)


def _row(db: Session, user_id: UUID) -> Optional[UserPreferences]:
    return db.query(UserPreferences).filter(UserPreferences.user_id == user_id).one_or_none()


def to_payload(row: UserPreferences) -> UserPreferencesPayload:
    return UserPreferencesPayload(
        commitments=row.commitments or [],
        natural_language_commitments=row.natural_language_commitments or "",
        goals=row.goals or [],
        custom_goals=row.custom_goals or "",
        sleep_schedule=row.sleep_schedule or {},
        work_preferences=row.work_preferences or {},
        meal_times=row.meal_times or {},
    )


def get_preferences(db: Session, user_id: UUID) -> Optional[UserPreferencesPayload]:
    row = _row(db, user_id)
    return to_payload(row) if row else None


def _mark_completed(db: Session, user_id: UUID, row: UserPreferences) -> None:
    now = datetime.now(timezone.utc)
    row.onboarding_completed = True
    row.onboarding_completed_at = now
    user = get_or_create_user(db, user_id)
    user.onboarding_completed = True
    user.onboarding_completed_at = now


def save_preferences(
    db: Session,
    user_id: UUID,
    preferences: UserPreferencesPayload,
    completed: bool = False,
) -> UserPreferences:
    """Insert or replace the user's preferences, optionally finishing onboarding."""
    get_or_create_user(db, user_id)
    row = _row(db, user_id) or UserPreferences(user_id=user_id)
    data = preferences.model_dump()
    row.commitments = data["commitments"]
    row.natural_language_commitments = data["natural_language_commitments"]
    row.goals = data["goals"]
    row.custom_goals = data["custom_goals"]
    row.sleep_schedule = data["sleep_schedule"]
    row.work_preferences = data["work_preferences"]
    row.meal_times = data["meal_times"]
    if completed:
        _mark_completed(db, user_id, row)

    db.add(row)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(row)
    logger.info("Saved preferences for user %s (completed=%s)", user_id, completed)
    return row


def complete_onboarding(db: Session, user_id: UUID) -> UserPreferences:
    """Flag onboarding as finished; creates an empty preferences row if none exists."""
    get_or_create_user(db, user_id)
    row = _row(db, user_id)
    if row is None:
        row = UserPreferences(
            user_id=user_id,
            commitments=[],
            goals=[],
            sleep_schedule={},
            work_preferences={},
            meal_times={},
        )
    _mark_completed(db, user_id, row)
    db.add(row)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(row)
    return row


def onboarding_status(db: Session, user_id: UUID) -> OnboardingStatusPayload:
    row = _row(db, user_id)
    if row is None:
        return OnboardingStatusPayload(has_started=False, is_completed=False, completed_at=None, preferences=None)
    return OnboardingStatusPayload(
        has_started=True,
        is_completed=bool(row.onboarding_completed),
        completed_at=row.onboarding_completed_at,
        preferences=to_payload(row),
    )
