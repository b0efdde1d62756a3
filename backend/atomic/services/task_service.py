"""Task persistence with time validation and conflict checks."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from atomic.core.config import settings
from atomic.db.models.task import Task
from atomic.observability.metrics import log_metric
from atomic.services.category_service import find_by_name, get_category, resolve_categories
from atomic.services.conflicts import find_conflicts
from atomic.services.slot_suggestions import suggest_alternatives
from atomic.services.time_utils import (
    TIME_BLOCKS,
    TimeFormatError,
    TimeRange,
    block_for_minutes,
    parse_time_or_range,
)
from atomic.services.user_service import ensure_owner, get_or_create_user

logger = logging.getLogger(__name__)

MAX_TASK_MINUTES = 24 * 60


def list_tasks(db: Session, user_id: UUID, scheduled_date: Optional[date] = None) -> List[Task]:
    """Tasks for a user ordered by start; filtered to one day when a date is given."""
    query = db.query(Task).filter(Task.user_id == user_id)
    if scheduled_date is not None:
        query = query.filter(Task.scheduled_date == scheduled_date)
    return query.order_by(Task.start_minute.asc(), Task.position.asc()).all()


def day_tasks(db: Session, user_id: UUID, scheduled_date: Optional[date]) -> List[Task]:
    """Tasks sharing a day with the given date; undated tasks form their own day."""
    query = db.query(Task).filter(Task.user_id == user_id)
    if scheduled_date is None:
        query = query.filter(Task.scheduled_date.is_(None))
    else:
        query = query.filter(Task.scheduled_date == scheduled_date)
    return query.order_by(Task.start_minute.asc()).all()


def get_task(db: Session, task_id: UUID, user_id: UUID) -> Task:
    task = db.get(Task, task_id)
    if not task:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    ensure_owner(task.user_id, user_id, "Task")
    return task


def _unprocessable(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=message)


def build_time_range(time_text: Optional[str], duration: Optional[int]) -> TimeRange:
    """Turn request input into a validated TimeRange.

    A full range and a duration must agree; a start-only time needs a duration.
    """
    if duration is not None and duration <= 0:
        raise _unprocessable("Duration must be greater than 0")
    try:
        time_range = parse_time_or_range((time_text or "").strip(), duration)
    except TimeFormatError as exc:
        raise _unprocessable(str(exc)) from exc

    if time_range.duration <= 0:
        raise _unprocessable("Time range must end after it starts")
    if time_range.duration > MAX_TASK_MINUTES:
        raise _unprocessable("Time range cannot exceed 24 hours")
    if duration is not None and duration != time_range.duration:
        raise _unprocessable(
            f"Duration {duration} does not match time range length {time_range.duration}"
        )
    return time_range


def _validate_block(block: Optional[str], time_range: TimeRange) -> str:
    if block is None:
        return block_for_minutes(time_range.start)
    if block not in TIME_BLOCKS:
        raise _unprocessable(f"Invalid time block: {block}")
    return block


def raise_on_conflict(
    time_range: TimeRange,
    existing: Sequence[Task],
    block: str,
    exclude_task_id: Optional[UUID] = None,
) -> None:
    """Raise 409 with alternative ranges when the range is taken."""
    conflicts = find_conflicts(time_range, existing, exclude_task_id)
    if not conflicts:
        return
    others = [task for task in existing if exclude_task_id is None or task.id != exclude_task_id]
    alternatives = suggest_alternatives(
        time_range.duration,
        block,
        others,
        limit=settings.suggestion_limit,
        step=settings.suggestion_step_minutes,
    )
    log_metric("task.create.conflict", 1, metadata={"conflicts": len(conflicts)})
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "message": "Time slot conflicts with an existing task. Please choose a different time.",
            "conflicts": [task.name for task in conflicts],
            "alternatives": [alternative.to_dict() for alternative in alternatives],
        },
    )


def next_position(db: Session, user_id: UUID, block: str, scheduled_date: Optional[date]) -> int:
    query = db.query(func.max(Task.position)).filter(Task.user_id == user_id, Task.time_block == block)
    if scheduled_date is None:
        query = query.filter(Task.scheduled_date.is_(None))
    else:
        query = query.filter(Task.scheduled_date == scheduled_date)
    current = query.scalar()
    return 0 if current is None else current + 1


def _resolve_category_fields(
    db: Session,
    user_id: UUID,
    category: Optional[str],
    category_id: Optional[UUID],
    category_label: Optional[str] = None,
) -> Dict[str, Any]:
    if category_id is not None:
        row = get_category(db, category_id, user_id)
        return {"category_id": row.id, "category_name": row.name}
    if category_label and category_label.strip():
        return {"category_id": None, "category_name": category_label.strip()}
    if category and category.strip():
        resolution = resolve_categories(db, user_id, [category])[category.strip().lower()]
        return {"category_id": resolution.category_id, "category_name": resolution.name}
    default = find_by_name(db, user_id, settings.default_category_name)
    return {
        "category_id": default.id if default else None,
        "category_name": default.name if default else settings.default_category_name,
    }


def create_task(
    db: Session,
    user_id: UUID,
    *,
    name: str,
    time: str,
    duration: Optional[int] = None,
    category: Optional[str] = None,
    category_id: Optional[UUID] = None,
    category_label: Optional[str] = None,
    block: Optional[str] = None,
    scheduled_date: Optional[date] = None,
    priority: Optional[int] = None,
) -> Task:
    """Validate and insert a task; raises 409 with alternatives on overlap.

    ``category_label`` stores a plain label without touching the categories
    table, for callers that resolved categories up front.
    """
    cleaned_name = (name or "").strip()
    if not cleaned_name:
        raise _unprocessable("Task name is required")
    time_range = build_time_range(time, duration)
    time_block = _validate_block(block, time_range)

    get_or_create_user(db, user_id)
    raise_on_conflict(time_range, day_tasks(db, user_id, scheduled_date), time_block)
    category_fields = _resolve_category_fields(db, user_id, category, category_id, category_label)

    task = Task(
        user_id=user_id,
        name=cleaned_name,
        start_minute=time_range.start,
        end_minute=time_range.end,
        duration=time_range.duration,
        time_block=time_block,
        position=next_position(db, user_id, time_block, scheduled_date),
        scheduled_date=scheduled_date,
        priority=priority,
        **category_fields,
    )
    db.add(task)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create task",
        ) from exc
    db.refresh(task)
    return task


def update_task(
    db: Session,
    task_id: UUID,
    user_id: UUID,
    *,
    name: Optional[str] = None,
    time: Optional[str] = None,
    duration: Optional[int] = None,
    category: Optional[str] = None,
    category_id: Optional[UUID] = None,
    block: Optional[str] = None,
    scheduled_date: Optional[date] = None,
    priority: Optional[int] = None,
) -> Task:
    """Apply a partial update; a changed time is re-checked against the day."""
    task = get_task(db, task_id, user_id)

    if name is not None:
        cleaned_name = name.strip()
        if not cleaned_name:
            raise _unprocessable("Task name is required")
        task.name = cleaned_name

    day = scheduled_date if scheduled_date is not None else task.scheduled_date
    time_changed = time is not None or duration is not None or day != task.scheduled_date
    if time is not None:
        if duration is None and "-" not in time:
            duration = task.duration
        time_range = build_time_range(time, duration)
    elif duration is not None:
        if duration <= 0:
            raise _unprocessable("Duration must be greater than 0")
        if duration > MAX_TASK_MINUTES:
            raise _unprocessable("Time range cannot exceed 24 hours")
        time_range = TimeRange.from_start(task.start_minute, duration)
    else:
        time_range = task.time_range

    if block is not None:
        time_block = _validate_block(block, time_range)
    elif time is not None:
        time_block = block_for_minutes(time_range.start)
    else:
        time_block = task.time_block

    if time_changed:
        raise_on_conflict(time_range, day_tasks(db, user_id, day), time_block, exclude_task_id=task.id)
        task.start_minute = time_range.start
        task.end_minute = time_range.end
        task.duration = time_range.duration
        task.scheduled_date = day
    task.time_block = time_block

    if category is not None or category_id is not None:
        for key, value in _resolve_category_fields(db, user_id, category, category_id).items():
            setattr(task, key, value)
    if priority is not None:
        task.priority = priority

    db.add(task)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(task)
    return task


def delete_task(db: Session, task_id: UUID, user_id: UUID) -> None:
    task = get_task(db, task_id, user_id)
    try:
        db.delete(task)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info("Deleted task %s for user %s", task_id, user_id)


def reorder_tasks(db: Session, user_id: UUID, block: str, task_ids: Sequence[UUID]) -> List[Task]:
    """Store the given order as positions within a block."""
    if block not in TIME_BLOCKS:
        raise _unprocessable(f"Invalid time block: {block}")
    tasks = {
        task.id: task
        for task in db.query(Task).filter(Task.user_id == user_id, Task.id.in_(list(task_ids))).all()
    }
    missing = [str(task_id) for task_id in task_ids if task_id not in tasks]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": "Tasks not found", "task_ids": missing},
        )

    ordered = []
    for index, task_id in enumerate(task_ids):
        task = tasks[task_id]
        task.position = index
        ordered.append(task)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return ordered
