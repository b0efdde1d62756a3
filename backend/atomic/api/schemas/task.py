"""Schemas for task CRUD, conflicts and suggestions."""
from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import Field

from atomic.api.schemas.common import CamelModel

TimeBlock = Literal["morning", "afternoon", "evening"]


class TaskResponse(CamelModel):
    id: UUID
    name: str
    time: str
    category: str
    category_id: Optional[UUID]
    duration: int
    block: TimeBlock
    position: int
    scheduled_date: Optional[date]
    priority: Optional[int]
    created_at: Optional[datetime] = None

    @classmethod
    def from_task(cls, task) -> "TaskResponse":
        return cls(
            id=task.id,
            name=task.name,
            time=task.time,
            category=task.category_label,
            category_id=task.category_id,
            duration=task.duration,
            block=task.time_block,
            position=task.position or 0,
            scheduled_date=task.scheduled_date,
            priority=task.priority,
            created_at=task.created_at,
        )


class TaskCreateRequest(CamelModel):
    user_id: UUID
    name: str
    time: str = Field(..., description="Range like '9:00 AM-10:00 AM' or a start time with duration.")
    duration: Optional[int] = None
    category: Optional[str] = None
    category_id: Optional[UUID] = None
    block: Optional[TimeBlock] = None
    scheduled_date: Optional[date] = None
    priority: Optional[int] = None


class TaskUpdateRequest(CamelModel):
    user_id: UUID
    name: Optional[str] = None
    time: Optional[str] = None
    duration: Optional[int] = None
    category: Optional[str] = None
    category_id: Optional[UUID] = None
    block: Optional[TimeBlock] = None
    scheduled_date: Optional[date] = None
    priority: Optional[int] = None


class TaskReorderRequest(CamelModel):
    user_id: UUID
    block: TimeBlock
    task_ids: List[UUID]


class ConflictCheckRequest(CamelModel):
    user_id: UUID
    time: str
    duration: Optional[int] = None
    block: Optional[TimeBlock] = None
    scheduled_date: Optional[date] = None
    exclude_task_id: Optional[UUID] = None


class SlotPayload(CamelModel):
    start: int
    end: int
    time: str
    block: TimeBlock


class ConflictCheckResponse(CamelModel):
    has_conflict: bool
    conflicts: List[str]
    alternatives: List[SlotPayload]


class FreeWindowPayload(CamelModel):
    block: TimeBlock
    start: int
    end: int
    time: str
    duration: int


class InsightsResponse(CamelModel):
    total_scheduled_time: int
    total_free_time: int
    largest_free_block: int
    time_block_utilization: Dict[str, int]
    suggestions: List[str]
    free_windows: List[FreeWindowPayload]
