from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from atomic.core.config import settings
from atomic.main import app


@pytest.fixture()
def client(monkeypatch):
    monkeypatch.setattr(settings, "perplexity_api_key", None)
    with TestClient(app) as test_client:
        yield test_client


def test_onboarding_schedule_falls_back_without_api_key(client):
    response = client.post(
        "/api/ai/onboarding",
        json={
            "userInputs": {
                "constraints": "Work 9-5",
                "goals": "get better at programming",
                "productivity": "mornings",
                "wakeTime": "7:00 AM",
                "workStyle": "deep focus",
            }
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    tasks = body["data"]["tasks"]
    assert tasks[0]["name"] == "Morning Routine & Planning"
    assert "Coding Practice" in [task["name"] for task in tasks]
    assert {"name", "time", "category", "duration", "block", "reasoning"} <= set(tasks[0])


def test_optimize_suggests_moves_for_overlaps(client):
    response = client.post(
        "/api/ai/optimize",
        json={
            "currentTasks": [
                {"name": "Email", "time": "9:00 AM-10:00 AM", "duration": 60, "category": "Work"},
                {"name": "Call", "time": "9:30 AM-10:00 AM", "duration": 30, "category": "Work"},
            ],
            "optimizationGoal": "fewer conflicts",
        },
    )

    assert response.status_code == 200
    suggestions = response.json()["data"]["suggestions"]
    assert suggestions[0]["type"] == "move"
    assert suggestions[0]["task"] == "Call"
    assert suggestions[0]["newTime"]


def test_optimize_requires_goal(client):
    response = client.post("/api/ai/optimize", json={"currentTasks": [], "optimizationGoal": ""})

    assert response.status_code == 422
    assert response.json()["error"] == "Invalid request"


def test_research_accepts_string_or_list(client):
    as_text = client.post("/api/ai/research", json={"goals": "improve fitness"})
    as_list = client.post("/api/ai/research", json={"goals": ["improve fitness", "learn programming"]})

    assert as_text.json()["data"]["timeAllocations"] == {"Exercise": 45}
    allocations = as_list.json()["data"]["timeAllocations"]
    assert allocations["Exercise"] == 45
    assert allocations["Coding Practice"] == 90


def test_research_rejects_empty_goals(client):
    response = client.post("/api/ai/research", json={"goals": []})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Goals are required", "details": None}
