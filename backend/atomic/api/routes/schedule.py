"""Schedule validation, optimisation, preview and conversion routes."""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from atomic.api.schemas.common import ApiResponse, ok
from atomic.api.schemas.schedule import (
    ConversionPayload,
    ConversionRequest,
    PreviewPayload,
    Schedule,
    ScheduleRequest,
    TaskDraftPayload,
    ValidationPayload,
)
from atomic.api.schemas.task import TaskResponse
from atomic.db.deps import get_db
from atomic.observability.metrics import log_metric
from atomic.observability.tracing import trace, update_span
from atomic.services.schedule_converter import (
    ConversionOptions,
    conversion_summary,
    convert_schedule_to_tasks,
    convert_tasks_to_schedule,
    optimize_schedule,
    preview_task_creation,
    validate_schedule,
)

router = APIRouter(prefix="/api/schedule", tags=["schedule"])


def _options(payload: ConversionRequest) -> ConversionOptions:
    return ConversionOptions(
        user_id=payload.user_id,
        target_date=payload.target_date,
        preserve_existing_tasks=payload.preserve_existing_tasks,
        create_missing_categories=payload.create_missing_categories,
    )


@router.post("/validate", response_model=ApiResponse[ValidationPayload])
def validate(payload: ScheduleRequest, http_request: Request) -> Dict[str, Any]:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("schedule.validate", metadata={"slots": len(payload.schedule.time_slots)}, request_id=request_id):
        result = validate_schedule(payload.schedule)
    return ok(ValidationPayload(is_valid=result.is_valid, errors=result.errors))


@router.post("/optimize", response_model=ApiResponse[Schedule])
def optimize(payload: ScheduleRequest, http_request: Request) -> Dict[str, Any]:
    """Sort slots and shift overlapping ones past their predecessor."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace("schedule.optimize", metadata={"slots": len(payload.schedule.time_slots)}, request_id=request_id):
        schedule = optimize_schedule(payload.schedule)
    return ok(schedule)


@router.post("/preview", response_model=ApiResponse[PreviewPayload])
def preview(payload: ConversionRequest, http_request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Show the tasks, new categories and conflicts a conversion would produce."""
    request_id = getattr(http_request.state, "request_id", None)
    schedule = optimize_schedule(payload.schedule) if payload.optimize else payload.schedule
    with trace("schedule.preview", metadata={"slots": len(schedule.time_slots)}, user_id=str(payload.user_id), request_id=request_id):
        result = preview_task_creation(db, schedule, _options(payload))
    return ok(
        PreviewPayload(
            tasks=[TaskDraftPayload(**draft) for draft in result.tasks],
            new_categories=result.new_categories,
            conflicts=result.conflicts,
            warnings=result.warnings,
        )
    )


@router.post("/convert", response_model=ApiResponse[ConversionPayload])
def convert(payload: ConversionRequest, http_request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Persist the schedule as tasks; slot failures are reported, not raised."""
    request_id = getattr(http_request.state, "request_id", None)
    schedule = optimize_schedule(payload.schedule) if payload.optimize else payload.schedule
    metadata = {"slots": len(schedule.time_slots), "preserve_existing": payload.preserve_existing_tasks}
    with trace("schedule.convert", metadata=metadata, user_id=str(payload.user_id), request_id=request_id) as span:
        result = convert_schedule_to_tasks(db, schedule, _options(payload))
        update_span(span, {**metadata, "created": len(result.created_tasks), "errors": len(result.errors)})
    log_metric("schedule.convert.errors", len(result.errors), metadata={"user_id": str(payload.user_id)})
    return ok(
        ConversionPayload(
            created_tasks=[TaskResponse.from_task(task) for task in result.created_tasks],
            skipped_slots=result.skipped_slots,
            created_categories=result.created_categories,
            errors=result.errors,
            summary=conversion_summary(result),
        )
    )


@router.get("/current", response_model=ApiResponse[Schedule])
def current_schedule(
    http_request: Request,
    user_id: UUID = Query(...),
    scheduled_date: Optional[date] = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """The user's stored tasks as an editable schedule."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace("schedule.current", user_id=str(user_id), request_id=request_id):
        schedule = convert_tasks_to_schedule(db, user_id, scheduled_date)
    return ok(schedule)
