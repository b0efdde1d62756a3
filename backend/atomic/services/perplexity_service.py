"""Perplexity-backed schedule generation, optimisation and research with rule-based fallbacks."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

import openai
from pydantic import BaseModel, ValidationError

from atomic.api.schemas.ai import (
    OptimizationResponse,
    ResearchResponse,
    ScheduleResponse,
    TaskInput,
    UserInputs,
)
from atomic.api.schemas.onboarding import UserPreferencesPayload
from atomic.api.schemas.schedule import Schedule
from atomic.core.config import settings
from atomic.observability.metrics import log_metric
from atomic.observability.tracing import trace, update_span
from atomic.services.ai_fallbacks import (
    generate_fallback_optimization,
    generate_fallback_preferences_schedule,
    generate_fallback_research,
    generate_fallback_schedule,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

API_NOT_CONFIGURED = "API_NOT_CONFIGURED"
INVALID_RESPONSE = "INVALID_RESPONSE"
SOURCE_AI = "ai"
SOURCE_FALLBACK = "fallback"

SEARCH_OPTIONS = {
    "return_citations": True,
    "search_domain_filter": ["pubmed.ncbi.nlm.nih.gov", "scholar.google.com", "harvard.edu", "stanford.edu"],
    "search_recency_filter": "year",
}

SCHEDULE_SYSTEM_PROMPT = (
    "You are an expert productivity consultant with access to the latest research on time management, "
    "circadian rhythms, and cognitive performance. Always provide evidence-based recommendations."
)
OPTIMIZE_SYSTEM_PROMPT = (
    "You are an expert schedule optimization consultant with access to the latest research on productivity, "
    "time management, and cognitive performance optimization."
)
RESEARCH_SYSTEM_PROMPT = (
    "You are a research expert specializing in productivity science, goal achievement, and evidence-based "
    "time management. Cite recent studies and give specific, actionable recommendations."
)
PREFERENCES_SYSTEM_PROMPT = (
    'You are an expert productivity assistant named "Atomic". Create a personalized, optimized daily schedule '
    "from the user's preferences. Respect all fixed commitments, schedule deep focus work during peak hours, "
    "allocate time for personal goals, include breaks and meals, and flow from wake-up time to bedtime. "
    'Slot times are start times such as "07:30"; durations are minutes; confidence is between 0 and 1. '
    "Respond with the JSON object only."
)


class AIServiceError(Exception):
    """An LLM call that did not produce a usable answer, tagged with its failure class."""

    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or code)
        self.code = code


@dataclass
class AIResult:
    payload: Any
    source: str = SOURCE_AI
    failure: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return self.source == SOURCE_FALLBACK


def _build_client() -> Optional[openai.OpenAI]:
    """OpenAI-compatible client pointed at Perplexity, or None without an API key."""
    api_key = settings.perplexity_api_key
    if not api_key:
        return None
    return openai.OpenAI(
        api_key=api_key,
        base_url=settings.perplexity_base_url,
        timeout=settings.perplexity_timeout_seconds,
    )


def _response_format(model: Type[BaseModel]) -> Dict[str, Any]:
    return {"type": "json_schema", "json_schema": {"schema": model.model_json_schema(by_alias=True)}}


def _strip_fences(content: str) -> str:
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        text = text.rsplit("```", 1)[0]
    return text.strip()


def _complete(
    system_prompt: str,
    user_prompt: str,
    model: Type[ModelT],
    search: bool = True,
) -> ModelT:
    """Run one chat completion and validate its JSON against ``model``.

    Raises AIServiceError classified as API_NOT_CONFIGURED, "API_ERROR: <status>",
    "API_ERROR: connection" or INVALID_RESPONSE.
    """
    client = _build_client()
    if client is None:
        raise AIServiceError(API_NOT_CONFIGURED, "Perplexity API key not configured")

    try:
        response = client.chat.completions.create(
            model=settings.perplexity_model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=settings.perplexity_max_tokens,
            temperature=settings.perplexity_temperature,
            response_format=_response_format(model),
            extra_body=SEARCH_OPTIONS if search else None,
        )
    except openai.APIStatusError as exc:
        raise AIServiceError(f"API_ERROR: {exc.status_code}", str(exc)) from exc
    except openai.APIConnectionError as exc:
        raise AIServiceError("API_ERROR: connection", str(exc)) from exc

    try:
        content = response.choices[0].message.content or ""
        return model.model_validate(json.loads(_strip_fences(content)))
    except (IndexError, AttributeError, json.JSONDecodeError, ValidationError) as exc:
        raise AIServiceError(INVALID_RESPONSE, str(exc)) from exc


def _fallback(operation: str, error: AIServiceError, payload: Any) -> AIResult:
    logger.warning("Perplexity %s failed (%s); using fallback: %s", operation, error.code, error)
    log_metric("ai.fallback.used", 1, metadata={"operation": operation, "reason": error.code})
    return AIResult(payload=payload, source=SOURCE_FALLBACK, failure=error.code)


def generate_optimal_schedule(user_inputs: UserInputs, request_id: Optional[str] = None) -> AIResult:
    """ScheduleResponse for the onboarding chat; never raises on LLM failure."""
    prompt = f"""Based on the following user information, create a personalized daily schedule.

User information:
- Work/Study Constraints: {user_inputs.constraints}
- Life Goals & Priorities: {user_inputs.goals}
- Productivity Preferences: {user_inputs.productivity}
- Wake Time: {user_inputs.wake_time}
- Work Style: {user_inputs.work_style}

Instructions:
1. Use current productivity science and time management research.
2. Create 8-12 tasks across morning (6 AM-12 PM), afternoon (12 PM-6 PM) and evening (6 PM-11 PM).
3. Give each task a time range such as "8:00-9:30 AM", a category, a duration in minutes, its block
   and the research-based reasoning for its placement.
4. Add schedule insights and actionable recommendations."""

    with trace("ai.generate_schedule", metadata={"goals": user_inputs.goals[:200]}, request_id=request_id) as span:
        try:
            result = AIResult(payload=_complete(SCHEDULE_SYSTEM_PROMPT, prompt, ScheduleResponse))
        except AIServiceError as exc:
            result = _fallback("generate_schedule", exc, generate_fallback_schedule(user_inputs))
        update_span(span, {"source": result.source, "task_count": len(result.payload.tasks)})
    return result


def optimize_existing_schedule(
    current_tasks: Sequence[TaskInput],
    optimization_goal: str,
    request_id: Optional[str] = None,
) -> AIResult:
    """OptimizationResponse with move/add/modify/remove suggestions."""
    described = "\n".join(
        f"{task.name} ({task.time}, {task.duration}min, {task.category})" for task in current_tasks
    )
    prompt = f"""Analyze this schedule and suggest improvements.

Current schedule:
{described}

Optimization goal: {optimization_goal}

Suggest specific changes (move, add, modify or remove tasks). Give a new time range for moves and
evidence-based reasoning for every suggestion, plus insights about the schedule's efficiency."""

    metadata = {"task_count": len(current_tasks), "goal": optimization_goal[:200]}
    with trace("ai.optimize_schedule", metadata=metadata, request_id=request_id) as span:
        try:
            result = AIResult(payload=_complete(OPTIMIZE_SYSTEM_PROMPT, prompt, OptimizationResponse))
        except AIServiceError as exc:
            payload = generate_fallback_optimization(current_tasks, optimization_goal)
            result = _fallback("optimize_schedule", exc, payload)
        update_span(span, {"source": result.source, "suggestions": len(result.payload.suggestions)})
    return result


def research_optimal_practices(goals: List[str], request_id: Optional[str] = None) -> AIResult:
    """ResearchResponse with practices, minutes per activity and supporting findings."""
    goals_text = ", ".join(goals)
    prompt = f"""Research the latest scientific evidence and best practices for achieving these life goals: {goals_text}

1. Prefer research from the last two years.
2. Give evidence-based daily time allocations in minutes per activity.
3. Back the recommendations with specific studies or principles."""

    with trace("ai.research_practices", metadata={"goals": goals_text[:200]}, request_id=request_id) as span:
        try:
            result = AIResult(payload=_complete(RESEARCH_SYSTEM_PROMPT, prompt, ResearchResponse))
        except AIServiceError as exc:
            result = _fallback("research_practices", exc, generate_fallback_research(goals))
        update_span(span, {"source": result.source, "practices": len(result.payload.practices)})
    return result


def generate_schedule_from_preferences(
    preferences: UserPreferencesPayload,
    request_id: Optional[str] = None,
) -> AIResult:
    """Schedule of time slots built from saved onboarding preferences."""
    prompt = (
        "Here are my preferences, please generate my schedule: "
        f"{preferences.model_dump_json(by_alias=True)}"
    )
    with trace("ai.preferences_schedule", request_id=request_id) as span:
        try:
            schedule = _complete(PREFERENCES_SYSTEM_PROMPT, prompt, Schedule, search=False)
            if not schedule.time_slots or not schedule.summary:
                raise AIServiceError(INVALID_RESPONSE, "Schedule has no time slots or summary")
            result = AIResult(payload=schedule)
        except AIServiceError as exc:
            result = _fallback("preferences_schedule", exc, generate_fallback_preferences_schedule(preferences))
        update_span(span, {"source": result.source, "slot_count": len(result.payload.time_slots)})
    return result
