"""Schemas for AI schedules and their conversion into tasks."""
from __future__ import annotations

from datetime import date
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from atomic.api.schemas.common import CamelModel
from atomic.api.schemas.task import TaskResponse


class TimeSlot(CamelModel):
    id: Optional[str] = None
    time: str = ""
    activity: str = ""
    description: Optional[str] = None
    category: str = ""
    duration: int = 0
    is_commitment: bool = False


class Schedule(CamelModel):
    time_slots: List[TimeSlot] = Field(default_factory=list)
    summary: str = ""
    optimization_reasoning: str = ""
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)


class ScheduleRequest(CamelModel):
    schedule: Schedule


class ConversionRequest(CamelModel):
    user_id: UUID
    schedule: Schedule
    target_date: Optional[date] = None
    preserve_existing_tasks: bool = False
    create_missing_categories: bool = True
    optimize: bool = False


class ValidationPayload(CamelModel):
    is_valid: bool
    errors: List[str]


class TaskDraftPayload(CamelModel):
    name: str
    time: str
    category: str
    duration: int
    block: str
    scheduled_date: date
    priority: int


class PreviewPayload(CamelModel):
    tasks: List[TaskDraftPayload]
    new_categories: List[str]
    conflicts: List[str]
    warnings: List[str]


class ConversionPayload(CamelModel):
    created_tasks: List[TaskResponse]
    skipped_slots: List[TimeSlot]
    created_categories: List[str]
    errors: List[str]
    summary: str
