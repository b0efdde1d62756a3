"""Schemas for onboarding preferences."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from atomic.api.schemas.common import CamelModel


class Commitment(CamelModel):
    id: Optional[str] = None
    task_name: str
    duration: int = Field(60, gt=0)
    preferred_time: str = ""
    days: List[str] = Field(default_factory=list)
    priority: str = "medium"


class Goal(CamelModel):
    id: Optional[str] = None
    name: str
    category: str = "Personal Development"
    priority: int = 1


class SleepSchedule(CamelModel):
    wake_up_time: str = ""
    bed_time: str = ""
    sleep_duration: float = 8


class WorkPreferences(CamelModel):
    work_type: str = ""
    peak_hours: List[str] = Field(default_factory=list)
    break_preference: str = ""
    focus_blocks: int = 2


class MealTimes(CamelModel):
    breakfast: str = ""
    lunch: str = ""
    dinner: str = ""


class UserPreferencesPayload(CamelModel):
    commitments: List[Commitment] = Field(default_factory=list)
    natural_language_commitments: str = ""
    goals: List[Goal] = Field(default_factory=list)
    custom_goals: str = ""
    sleep_schedule: SleepSchedule = Field(default_factory=SleepSchedule)
    work_preferences: WorkPreferences = Field(default_factory=WorkPreferences)
    meal_times: MealTimes = Field(default_factory=MealTimes)


class PreferencesSaveRequest(CamelModel):
    user_id: UUID
    preferences: UserPreferencesPayload
    completed: bool = False


class OnboardingCompleteRequest(CamelModel):
    user_id: UUID


class OnboardingStatusPayload(CamelModel):
    has_started: bool
    is_completed: bool
    completed_at: Optional[datetime]
    preferences: Optional[UserPreferencesPayload]
