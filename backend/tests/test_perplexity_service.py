"""Tests for the Perplexity client wrapper and its fallback paths."""
from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any, Dict, List

import httpx
import openai
import pytest

from atomic.api.schemas.ai import TaskInput, UserInputs
from atomic.api.schemas.onboarding import UserPreferencesPayload
from atomic.core.config import settings
from atomic.services import perplexity_service

PERPLEXITY_URL = "https://api.perplexity.ai/chat/completions"


class DummyClient:
    """Stands in for openai.OpenAI; answers every completion with ``content`` or raises ``error``."""

    content: str = ""
    error: Exception | None = None
    calls: List[Dict[str, Any]] = []
    init_kwargs: Dict[str, Any] = {}

    def __init__(self, **kwargs):
        DummyClient.init_kwargs = kwargs
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        DummyClient.calls.append(kwargs)
        if DummyClient.error is not None:
            raise DummyClient.error
        message = SimpleNamespace(content=DummyClient.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture()
def fake_openai(monkeypatch):
    DummyClient.content = ""
    DummyClient.error = None
    DummyClient.calls = []
    DummyClient.init_kwargs = {}
    monkeypatch.setattr(settings, "perplexity_api_key", "test-key")
    monkeypatch.setattr("openai.OpenAI", DummyClient)
    return DummyClient


@pytest.fixture()
def metrics_calls(monkeypatch):
    calls: List[tuple] = []
    monkeypatch.setattr(
        perplexity_service,
        "log_metric",
        lambda name, value, metadata=None: calls.append((name, value, metadata)),
    )
    return calls


def _schedule_json() -> str:
    return json.dumps(
        {
            "tasks": [
                {
                    "name": "Deep Work",
                    "time": "8:00-10:00 AM",
                    "category": "Work",
                    "duration": 120,
                    "block": "morning",
                    "reasoning": "Peak alertness",
                }
            ],
            "insights": ["Front-load hard work"],
            "recommendations": ["Protect the morning"],
        }
    )


def test_missing_api_key_uses_fallback(monkeypatch, metrics_calls) -> None:
    monkeypatch.setattr(settings, "perplexity_api_key", None)

    result = perplexity_service.generate_optimal_schedule(UserInputs(goals="get fit"))

    assert result.used_fallback is True
    assert result.failure == perplexity_service.API_NOT_CONFIGURED
    assert result.payload.tasks
    assert metrics_calls == [
        ("ai.fallback.used", 1, {"operation": "generate_schedule", "reason": "API_NOT_CONFIGURED"})
    ]


def test_valid_response_is_parsed(fake_openai, metrics_calls) -> None:
    fake_openai.content = _schedule_json()

    result = perplexity_service.generate_optimal_schedule(UserInputs(goals="ship the project"))

    assert result.source == "ai"
    assert result.payload.tasks[0].name == "Deep Work"
    assert result.payload.tasks[0].time == "8:00-10:00 AM"
    assert metrics_calls == []
    call = fake_openai.calls[0]
    assert call["model"] == settings.perplexity_model
    assert call["response_format"]["type"] == "json_schema"
    assert call["extra_body"] == perplexity_service.SEARCH_OPTIONS
    assert fake_openai.init_kwargs["base_url"] == settings.perplexity_base_url


def test_code_fenced_response_is_accepted(fake_openai) -> None:
    fake_openai.content = "```json\n" + _schedule_json() + "\n```"

    result = perplexity_service.generate_optimal_schedule(UserInputs())

    assert result.used_fallback is False


def test_invalid_json_falls_back(fake_openai, metrics_calls) -> None:
    fake_openai.content = "Here is your schedule!"

    result = perplexity_service.generate_optimal_schedule(UserInputs(goals="learn programming"))

    assert result.used_fallback is True
    assert result.failure == perplexity_service.INVALID_RESPONSE
    assert "Coding Practice" in [task.name for task in result.payload.tasks]
    assert metrics_calls[0][2]["reason"] == "INVALID_RESPONSE"


def test_schema_mismatch_falls_back(fake_openai) -> None:
    fake_openai.content = json.dumps({"tasks": [{"name": "Nap", "time": "whenever"}]})

    result = perplexity_service.generate_optimal_schedule(UserInputs())

    assert result.failure == perplexity_service.INVALID_RESPONSE


def test_http_error_falls_back(fake_openai, metrics_calls) -> None:
    request = httpx.Request("POST", PERPLEXITY_URL)
    fake_openai.error = openai.APIStatusError(
        "server error",
        response=httpx.Response(500, request=request),
        body=None,
    )

    result = perplexity_service.research_optimal_practices(["improve fitness"])

    assert result.used_fallback is True
    assert result.failure == "API_ERROR: 500"
    assert result.payload.time_allocations["Exercise"] == 45
    assert metrics_calls[0][2] == {"operation": "research_practices", "reason": "API_ERROR: 500"}


def test_connection_error_falls_back(fake_openai) -> None:
    fake_openai.error = openai.APIConnectionError(request=httpx.Request("POST", PERPLEXITY_URL))

    tasks = [TaskInput(name="Email", time="9:00 AM-10:00 AM", duration=60)]
    result = perplexity_service.optimize_existing_schedule(tasks, "focus")

    assert result.failure == "API_ERROR: connection"
    assert result.payload.insights


def test_preferences_schedule_without_search_options(fake_openai) -> None:
    fake_openai.content = json.dumps(
        {
            "timeSlots": [
                {"time": "07:00", "activity": "Wake up", "category": "Personal Care", "duration": 30},
            ],
            "summary": "Calm start",
            "optimizationReasoning": "Gentle morning",
            "confidence": 0.9,
        }
    )

    result = perplexity_service.generate_schedule_from_preferences(UserPreferencesPayload())

    assert result.source == "ai"
    assert result.payload.time_slots[0].activity == "Wake up"
    assert fake_openai.calls[0]["extra_body"] is None


def test_preferences_schedule_with_no_slots_falls_back(fake_openai) -> None:
    fake_openai.content = json.dumps({"timeSlots": [], "summary": ""})

    result = perplexity_service.generate_schedule_from_preferences(UserPreferencesPayload())

    assert result.used_fallback is True
    assert result.failure == perplexity_service.INVALID_RESPONSE
    assert result.payload.time_slots[0].activity == "Wake-up Routine"
