"""Turn AI-generated schedules into persisted tasks and back."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from atomic.api.schemas.schedule import Schedule, TimeSlot
from atomic.core.config import settings
from atomic.db.models.task import Task
from atomic.observability.metrics import log_metric
from atomic.services.category_service import list_categories, resolve_categories
from atomic.services.conflicts import has_conflict
from atomic.services.task_service import create_task, day_tasks, list_tasks
from atomic.services.time_utils import (
    MINUTES_PER_DAY,
    TimeFormatError,
    TimeRange,
    block_for_minutes,
    format_minutes,
    format_minutes_as_range,
    parse_time_or_range,
    parse_time_to_minutes,
)

logger = logging.getLogger(__name__)

MAX_SLOT_MINUTES = 8 * 60
LONG_SLOT_WARNING_MINUTES = 4 * 60
COMMITMENT_CATEGORY = "Commitments"

AI_CATEGORY_MAP: Dict[str, str] = {
    "Personal Care": "Personal",
    "Meals": "Personal",
    "Work": "Work",
    "Goals": "Personal Development",
    "Commitment": "Commitments",
    "Exercise": "Health & Fitness",
    "Learning": "Study",
    "Social": "Personal",
    "Health": "Health & Fitness",
    "Productivity": "Work",
    "Self-Care": "Personal",
    "Family": "Personal",
    "Hobbies": "Personal Development",
    "Travel": "Personal",
    "Finance": "Work",
    "Education": "Study",
}


@dataclass
class ConversionOptions:
    user_id: UUID
    target_date: Optional[date] = None
    preserve_existing_tasks: bool = False
    create_missing_categories: bool = True


@dataclass
class ConversionResult:
    created_tasks: List[Task] = field(default_factory=list)
    skipped_slots: List[TimeSlot] = field(default_factory=list)
    created_categories: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass
class ScheduleValidation:
    is_valid: bool
    errors: List[str]


@dataclass
class SchedulePreview:
    tasks: List[Dict[str, Any]] = field(default_factory=list)
    new_categories: List[str] = field(default_factory=list)
    conflicts: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def map_ai_category(label: Optional[str]) -> str:
    """Normalise an AI category label; unknown labels pass through."""
    cleaned = (label or "").strip()
    return AI_CATEGORY_MAP.get(cleaned) or cleaned or settings.default_category_name


def _slot_start(slot: TimeSlot) -> int:
    return parse_time_to_minutes(slot.time)


def _slot_range(slot: TimeSlot) -> Optional[TimeRange]:
    """Strictly parsed range for a slot, or None when its time or duration is unusable."""
    if slot.duration <= 0:
        return None
    try:
        return parse_time_or_range((slot.time or "").strip(), slot.duration)
    except TimeFormatError:
        return None


def _sorted_slots(slots: List[TimeSlot]) -> List[TimeSlot]:
    return sorted(slots, key=_slot_start)


def _error_message(exc: Exception) -> str:
    if isinstance(exc, HTTPException):
        detail = exc.detail
        if isinstance(detail, dict):
            return str(detail.get("message") or detail)
        return str(detail)
    return str(exc)


def _task_draft(slot: TimeSlot, category_name: str, scheduled_date: date) -> Dict[str, Any]:
    start = _slot_start(slot)
    return {
        "name": slot.activity,
        "time": format_minutes_as_range(start, slot.duration),
        "category": category_name,
        "duration": slot.duration,
        "block": block_for_minutes(start),
        "scheduled_date": scheduled_date,
        "priority": 1 if slot.is_commitment else 2,
    }


def convert_schedule_to_tasks(
    db: Session,
    schedule: Schedule,
    options: ConversionOptions,
) -> ConversionResult:
    """Create a task per slot, in the order the slots were given.

    Categories are resolved in one pass before any task is written. A slot
    that fails is recorded in ``errors`` and ``skipped_slots`` and the batch
    carries on.
    """
    target_date = options.target_date or date.today()
    result = ConversionResult()

    try:
        existing_tasks = (
            day_tasks(db, options.user_id, target_date) if options.preserve_existing_tasks else []
        )
        labels = [map_ai_category(slot.category) for slot in schedule.time_slots]
        resolutions = resolve_categories(
            db,
            options.user_id,
            labels,
            create_missing=options.create_missing_categories,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Schedule conversion failed for user %s", options.user_id)
        result.errors.append(f"Conversion failed: {exc}")
        return result

    result.created_categories = [item.name for item in resolutions.values() if item.created]

    for slot in schedule.time_slots:
        resolution = resolutions[map_ai_category(slot.category).lower()]

        slot_range = _slot_range(slot)
        if (
            options.preserve_existing_tasks
            and slot_range is not None
            and has_conflict(slot_range, existing_tasks)
        ):
            result.skipped_slots.append(slot)
            continue

        try:
            task = create_task(
                db,
                options.user_id,
                name=slot.activity,
                time=slot.time,
                duration=slot.duration,
                category_id=resolution.category_id,
                category_label=resolution.name,
                scheduled_date=target_date,
                priority=1 if slot.is_commitment else 2,
            )
        except (HTTPException, SQLAlchemyError) as exc:
            message = _error_message(exc)
            logger.warning("Skipping slot %r: %s", slot.activity, message)
            result.errors.append(f'Failed to create task "{slot.activity}": {message}')
            result.skipped_slots.append(slot)
            continue

        result.created_tasks.append(task)

    log_metric(
        "schedule.convert.created",
        len(result.created_tasks),
        metadata={
            "user_id": str(options.user_id),
            "skipped": len(result.skipped_slots),
            "errors": len(result.errors),
        },
    )
    return result


def validate_schedule(schedule: Schedule) -> ScheduleValidation:
    """Check required fields, duration bounds and overlaps between slots."""
    errors: List[str] = []
    slots = schedule.time_slots or []

    if not slots:
        errors.append("Schedule must contain at least one time slot")

    for index, slot in enumerate(slots, start=1):
        if not (slot.activity or "").strip():
            errors.append(f"Time slot {index}: Activity name is required")
        if not (slot.time or "").strip():
            errors.append(f"Time slot {index}: Time is required")
        if slot.duration <= 0:
            errors.append(f"Time slot {index}: Duration must be greater than 0")
        if slot.duration > MAX_SLOT_MINUTES:
            errors.append(f"Time slot {index}: Duration seems too long ({slot.duration} minutes)")

    ordered = _sorted_slots(slots)
    for current, following in zip(ordered, ordered[1:]):
        if _slot_start(current) + current.duration > _slot_start(following):
            errors.append(f'Time conflict between "{current.activity}" and "{following.activity}"')

    return ScheduleValidation(is_valid=not errors, errors=errors)


def optimize_schedule(schedule: Schedule, buffer_minutes: Optional[int] = None) -> Schedule:
    """Sort slots by start and push each overlapping slot past its predecessor.

    A slot that would be pushed past midnight is dropped rather than wrapped
    to the start of the same day.
    """
    buffer = settings.schedule_buffer_minutes if buffer_minutes is None else buffer_minutes
    optimized: List[TimeSlot] = []

    for slot in _sorted_slots(list(schedule.time_slots)):
        if optimized:
            previous = optimized[-1]
            previous_end = _slot_start(previous) + previous.duration
            if previous_end > _slot_start(slot):
                shifted = previous_end + buffer
                if shifted + slot.duration > MINUTES_PER_DAY:
                    logger.warning("Dropping slot %r: no room left before midnight", slot.activity)
                    continue
                slot = slot.model_copy(update={"time": format_minutes(shifted)})
        optimized.append(slot)

    return schedule.model_copy(update={"time_slots": optimized})


def preview_task_creation(
    db: Session,
    schedule: Schedule,
    options: ConversionOptions,
) -> SchedulePreview:
    """Report what a conversion would do without writing anything."""
    target_date = options.target_date or date.today()
    preview = SchedulePreview()

    try:
        known = {category.name.lower() for category in list_categories(db, options.user_id)}
        existing_tasks = day_tasks(db, options.user_id, target_date)
    except SQLAlchemyError as exc:
        logger.exception("Schedule preview failed for user %s", options.user_id)
        return SchedulePreview(conflicts=[f"Preview failed: {exc}"])

    for slot in schedule.time_slots:
        category_name = map_ai_category(slot.category)
        if category_name.lower() not in known:
            preview.new_categories.append(category_name)
            known.add(category_name.lower())

        preview.tasks.append(_task_draft(slot, category_name, target_date))

        slot_range = _slot_range(slot)
        if slot_range is None or has_conflict(slot_range, existing_tasks):
            preview.conflicts.append(f'"{slot.activity}" conflicts with existing tasks at {slot.time}')

        if slot.duration > LONG_SLOT_WARNING_MINUTES:
            preview.warnings.append(f'"{slot.activity}" has a very long duration ({slot.duration} minutes)')

    return preview


def convert_tasks_to_schedule(db: Session, user_id: UUID, target_date: Optional[date] = None) -> Schedule:
    """Rebuild a Schedule from stored tasks so it can be edited or regenerated."""
    tasks = list_tasks(db, user_id, target_date)
    slots = [
        TimeSlot(
            id=str(task.id),
            time=format_minutes(task.start_minute),
            activity=task.name,
            description=f"Task: {task.name}",
            category=task.category_label,
            duration=task.duration,
            is_commitment=task.category_label == COMMITMENT_CATEGORY,
        )
        for task in tasks
    ]
    return Schedule(
        time_slots=_sorted_slots(slots),
        summary=f"Current schedule with {len(tasks)} tasks",
        optimization_reasoning="Converted from existing user tasks",
        confidence=1.0,
    )


def conversion_summary(result: ConversionResult) -> str:
    lines = ["Schedule conversion completed:", f"Created {len(result.created_tasks)} tasks"]
    if result.created_categories:
        lines.append(
            f"Created {len(result.created_categories)} new categories: {', '.join(result.created_categories)}"
        )
    if result.skipped_slots:
        lines.append(f"Skipped {len(result.skipped_slots)} time slots due to conflicts or errors")
    if result.errors:
        lines.append(f"{len(result.errors)} errors occurred")
        lines.extend(f"  - {error}" for error in result.errors)
    return "\n".join(lines)
