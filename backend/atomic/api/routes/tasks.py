"""Task CRUD, conflict check and slot suggestion routes."""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from atomic.api.schemas.common import ApiResponse, ok
from atomic.api.schemas.task import (
    ConflictCheckRequest,
    ConflictCheckResponse,
    FreeWindowPayload,
    InsightsResponse,
    SlotPayload,
    TaskCreateRequest,
    TaskReorderRequest,
    TaskResponse,
    TaskUpdateRequest,
    TimeBlock,
)
from atomic.core.config import settings
from atomic.db.deps import get_db
from atomic.observability.metrics import log_metric
from atomic.observability.tracing import trace
from atomic.services import task_service
from atomic.services.conflicts import find_conflicts
from atomic.services.slot_suggestions import find_free_windows, schedule_insights, suggest_alternatives

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


def _request_id(http_request: Request) -> Optional[str]:
    return getattr(http_request.state, "request_id", None)


@router.get("", response_model=ApiResponse[List[TaskResponse]])
def list_tasks(
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the tasks"),
    scheduled_date: Optional[date] = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """List a user's tasks by start time, optionally for one day."""
    metadata = {"route": "/api/tasks", "date": scheduled_date.isoformat() if scheduled_date else None}
    with trace("task.list", metadata=metadata, user_id=str(user_id), request_id=_request_id(http_request)):
        tasks = task_service.list_tasks(db, user_id, scheduled_date)
    log_metric("task.list.count", len(tasks), metadata={"user_id": str(user_id)})
    return ok([TaskResponse.from_task(task) for task in tasks])


@router.post("", status_code=201, response_model=ApiResponse[TaskResponse])
def create_task(payload: TaskCreateRequest, http_request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Create a task; overlapping times are rejected with 409 and alternatives."""
    metadata = {"route": "/api/tasks", "block": payload.block}
    with trace("task.create", metadata=metadata, user_id=str(payload.user_id), request_id=_request_id(http_request)):
        task = task_service.create_task(
            db,
            payload.user_id,
            name=payload.name,
            time=payload.time,
            duration=payload.duration,
            category=payload.category,
            category_id=payload.category_id,
            block=payload.block,
            scheduled_date=payload.scheduled_date,
            priority=payload.priority,
        )
    log_metric("task.create.success", 1, metadata={"user_id": str(payload.user_id), "block": task.time_block})
    return ok(TaskResponse.from_task(task))


@router.post("/reorder", response_model=ApiResponse[List[TaskResponse]])
def reorder_tasks(payload: TaskReorderRequest, http_request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    with trace(
        "task.reorder",
        metadata={"block": payload.block, "count": len(payload.task_ids)},
        user_id=str(payload.user_id),
        request_id=_request_id(http_request),
    ):
        tasks = task_service.reorder_tasks(db, payload.user_id, payload.block, payload.task_ids)
    return ok([TaskResponse.from_task(task) for task in tasks])


@router.post("/check-conflict", response_model=ApiResponse[ConflictCheckResponse])
def check_conflict(payload: ConflictCheckRequest, http_request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Report overlaps for a proposed time without saving anything."""
    with trace("task.check_conflict", user_id=str(payload.user_id), request_id=_request_id(http_request)):
        time_range = task_service.build_time_range(payload.time, payload.duration)
        existing = task_service.day_tasks(db, payload.user_id, payload.scheduled_date)
        conflicts = find_conflicts(time_range, existing, payload.exclude_task_id)
        alternatives = []
        if conflicts:
            others = [
                task for task in existing
                if payload.exclude_task_id is None or task.id != payload.exclude_task_id
            ]
            alternatives = suggest_alternatives(
                time_range.duration,
                payload.block,
                others,
                limit=settings.suggestion_limit,
                step=settings.suggestion_step_minutes,
            )
    return ok(
        ConflictCheckResponse(
            has_conflict=bool(conflicts),
            conflicts=[task.name for task in conflicts],
            alternatives=[SlotPayload(**alternative.to_dict()) for alternative in alternatives],
        )
    )


@router.get("/suggestions", response_model=ApiResponse[List[SlotPayload]])
def suggest_slots(
    http_request: Request,
    user_id: UUID = Query(...),
    duration: int = Query(..., gt=0, le=24 * 60),
    block: Optional[TimeBlock] = Query(default=None),
    scheduled_date: Optional[date] = Query(default=None, alias="date"),
    limit: Optional[int] = Query(default=None, ge=1, le=20),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Earliest open ranges of ``duration`` minutes, preferring ``block``."""
    with trace("task.suggestions", metadata={"duration": duration, "block": block}, user_id=str(user_id), request_id=_request_id(http_request)):
        existing = task_service.day_tasks(db, user_id, scheduled_date)
        slots = suggest_alternatives(
            duration,
            block,
            existing,
            limit=limit or settings.suggestion_limit,
            step=settings.suggestion_step_minutes,
        )
    return ok([SlotPayload(**slot.to_dict()) for slot in slots])


@router.get("/insights", response_model=ApiResponse[InsightsResponse])
def task_insights(
    http_request: Request,
    user_id: UUID = Query(...),
    scheduled_date: Optional[date] = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Scheduled and free minutes, block utilisation and hints for one day."""
    with trace("task.insights", user_id=str(user_id), request_id=_request_id(http_request)):
        tasks = task_service.day_tasks(db, user_id, scheduled_date)
        insights = schedule_insights(tasks)
        windows = find_free_windows(tasks)
    return ok(
        InsightsResponse(
            total_scheduled_time=insights.total_scheduled_time,
            total_free_time=insights.total_free_time,
            largest_free_block=insights.largest_free_block,
            time_block_utilization=insights.time_block_utilization,
            suggestions=insights.suggestions,
            free_windows=[FreeWindowPayload(**window.to_dict()) for window in windows],
        )
    )


@router.patch("/{task_id}", response_model=ApiResponse[TaskResponse])
def update_task(
    task_id: UUID,
    payload: TaskUpdateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Edit a task; a new time is re-checked against the rest of the day."""
    with trace("task.update", metadata={"task_id": str(task_id)}, user_id=str(payload.user_id), request_id=_request_id(http_request)):
        task = task_service.update_task(
            db,
            task_id,
            payload.user_id,
            name=payload.name,
            time=payload.time,
            duration=payload.duration,
            category=payload.category,
            category_id=payload.category_id,
            block=payload.block,
            scheduled_date=payload.scheduled_date,
            priority=payload.priority,
        )
    log_metric("task.update.success", 1, metadata={"user_id": str(payload.user_id)})
    return ok(TaskResponse.from_task(task))


@router.delete("/{task_id}", response_model=ApiResponse[Dict[str, Any]])
def delete_task(
    task_id: UUID,
    http_request: Request,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    with trace("task.delete", metadata={"task_id": str(task_id)}, user_id=str(user_id), request_id=_request_id(http_request)):
        task_service.delete_task(db, task_id, user_id)
    return ok({"id": str(task_id), "deleted": True})
