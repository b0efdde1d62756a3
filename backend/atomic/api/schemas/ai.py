"""Schemas for the AI assistant endpoints and LLM response contracts."""
from __future__ import annotations

import re
from typing import Dict, List, Literal, Optional, Union

from pydantic import Field, field_validator

from atomic.api.schemas.common import CamelModel

TIME_RANGE_PATTERN = re.compile(r"^\s*\d{1,2}:\d{2}\s*([AP]M)?\s*-\s*\d{1,2}:\d{2}\s*[AP]M\s*$", re.IGNORECASE)


class UserInputs(CamelModel):
    constraints: str = ""
    goals: str = ""
    productivity: str = ""
    wake_time: str = ""
    work_style: str = ""


class GeneratedTask(CamelModel):
    name: str = Field(..., min_length=1)
    time: str = Field(..., description="Range such as '8:00-9:30 AM'.")
    category: str = Field(..., min_length=1)
    duration: int = Field(..., gt=0)
    block: Literal["morning", "afternoon", "evening"]
    reasoning: str = "Optimized for productivity"

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        if not TIME_RANGE_PATTERN.match(value):
            raise ValueError(f"Invalid time format: {value}")
        return value.strip()


class ScheduleResponse(CamelModel):
    tasks: List[GeneratedTask] = Field(..., min_length=1)
    insights: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class OptimizationSuggestion(CamelModel):
    type: Literal["move", "add", "modify", "remove"]
    task: str
    new_time: Optional[str] = None
    reasoning: str = ""


class OptimizationResponse(CamelModel):
    suggestions: List[OptimizationSuggestion] = Field(default_factory=list)
    insights: List[str] = Field(default_factory=list)


class ResearchResponse(CamelModel):
    practices: List[str] = Field(..., min_length=1)
    time_allocations: Dict[str, int] = Field(default_factory=dict)
    scientific_backing: List[str] = Field(default_factory=list)


class TaskInput(CamelModel):
    id: Optional[str] = None
    name: str
    time: str
    category: str = "Personal"
    duration: int = 0
    block: Optional[Literal["morning", "afternoon", "evening"]] = None


class OnboardingRequest(CamelModel):
    user_inputs: UserInputs


class OptimizeRequest(CamelModel):
    current_tasks: List[TaskInput]
    optimization_goal: str = Field(..., min_length=1)


class ResearchRequest(CamelModel):
    goals: Union[str, List[str]]

    def goal_list(self) -> List[str]:
        if isinstance(self.goals, str):
            return [self.goals.strip()] if self.goals.strip() else []
        return [goal.strip() for goal in self.goals if goal and goal.strip()]
