from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from atomic.db.deps import get_db
from atomic.db.models.category import Category
from atomic.db.models.task import Task
from atomic.db.models.user import User
from atomic.main import app

DAY = "2026-10-17"


@pytest.fixture()
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):  # pragma: no cover - sqlite setup
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    User.__table__.create(bind=engine)
    Category.__table__.create(bind=engine)
    Task.__table__.create(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client, TestingSessionLocal
    app.dependency_overrides.clear()


def _schedule(*slots):
    return {
        "timeSlots": list(slots),
        "summary": "Planned day",
        "optimizationReasoning": "Hard work first",
        "confidence": 0.8,
    }


def _slot(activity, time, duration, category="Work", **extra):
    return {"activity": activity, "time": time, "duration": duration, "category": category, **extra}


def test_validate_endpoint(client):
    test_client, _ = client
    schedule = _schedule(_slot("Email", "9:00 AM", 60), _slot("Call", "9:30 AM", 30))

    response = test_client.post("/api/schedule/validate", json={"schedule": schedule})

    assert response.status_code == 200
    assert response.json()["data"] == {
        "isValid": False,
        "errors": ['Time conflict between "Email" and "Call"'],
    }


def test_optimize_endpoint(client):
    test_client, _ = client
    schedule = _schedule(_slot("Email", "9:00 AM", 60), _slot("Call", "9:30 AM", 30))

    response = test_client.post("/api/schedule/optimize", json={"schedule": schedule})

    slots = response.json()["data"]["timeSlots"]
    assert [slot["time"] for slot in slots] == ["9:00 AM", "10:15 AM"]


def test_convert_endpoint_creates_tasks(client):
    test_client, session_factory = client
    user_id = uuid4()
    schedule = _schedule(
        _slot("Morning run", "6:30 AM", 45, category="Exercise"),
        _slot("Client call", "10:00 AM", 30, category="Commitment", isCommitment=True),
        _slot("", "11:00 AM", 30),
    )

    response = test_client.post(
        "/api/schedule/convert",
        json={"userId": str(user_id), "schedule": schedule, "targetDate": DAY},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert [task["name"] for task in data["createdTasks"]] == ["Morning run", "Client call"]
    assert data["createdTasks"][0]["category"] == "Health & Fitness"
    assert data["createdTasks"][1]["priority"] == 1
    assert len(data["skippedSlots"]) == 1
    assert data["errors"] == ['Failed to create task "": Task name is required']
    assert "Created 2 tasks" in data["summary"]
    session = session_factory()
    try:
        assert session.query(Task).count() == 2
    finally:
        session.close()


def test_convert_with_optimize_resolves_overlaps(client):
    test_client, _ = client
    user_id = uuid4()
    schedule = _schedule(_slot("Email", "9:00 AM", 60), _slot("Call", "9:30 AM", 30))

    response = test_client.post(
        "/api/schedule/convert",
        json={"userId": str(user_id), "schedule": schedule, "targetDate": DAY, "optimize": True},
    )

    data = response.json()["data"]
    assert data["errors"] == []
    assert [task["time"] for task in data["createdTasks"]] == ["9:00 AM-10:00 AM", "10:15 AM-10:45 AM"]


def test_preview_endpoint_does_not_write(client):
    test_client, session_factory = client
    user_id = uuid4()
    schedule = _schedule(_slot("Reading", "8:00 PM", 30, category="Learning"))

    response = test_client.post(
        "/api/schedule/preview",
        json={"userId": str(user_id), "schedule": schedule, "targetDate": DAY},
    )

    data = response.json()["data"]
    assert data["tasks"][0]["time"] == "8:00 PM-8:30 PM"
    assert data["tasks"][0]["block"] == "evening"
    assert data["newCategories"] == ["Study"]
    assert data["conflicts"] == []
    session = session_factory()
    try:
        assert session.query(Task).count() == 0
        assert session.query(Category).count() == 0
    finally:
        session.close()


def test_current_schedule_round_trips_tasks(client):
    test_client, _ = client
    user_id = uuid4()
    test_client.post(
        "/api/tasks",
        json={"userId": str(user_id), "name": "Standup", "time": "9:00 AM-9:15 AM", "scheduledDate": DAY},
    )

    response = test_client.get("/api/schedule/current", params={"user_id": str(user_id), "date": DAY})

    data = response.json()["data"]
    assert data["timeSlots"][0]["activity"] == "Standup"
    assert data["timeSlots"][0]["time"] == "9:00 AM"
    assert data["timeSlots"][0]["duration"] == 15
    assert data["confidence"] == 1.0
