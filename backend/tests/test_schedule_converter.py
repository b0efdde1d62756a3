"""Tests for converting AI schedules into tasks."""
from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from atomic.api.schemas.schedule import Schedule, TimeSlot
from atomic.db.models.category import Category
from atomic.db.models.task import Task
from atomic.db.models.user import User
from atomic.services import category_service, task_service
from atomic.services.schedule_converter import (
    ConversionOptions,
    conversion_summary,
    convert_schedule_to_tasks,
    convert_tasks_to_schedule,
    map_ai_category,
    optimize_schedule,
    preview_task_creation,
    validate_schedule,
)
from atomic.services.time_utils import parse_time_to_minutes

TARGET = date(2026, 10, 17)


@pytest.fixture()
def db():
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

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def _slot(activity: str, time: str, duration: int, category: str = "Work", **kwargs) -> TimeSlot:
    return TimeSlot(activity=activity, time=time, duration=duration, category=category, **kwargs)


def test_map_ai_category() -> None:
    assert map_ai_category("Exercise") == "Health & Fitness"
    assert map_ai_category("Gardening") == "Gardening"
    assert map_ai_category("  ") == "Personal"


def test_validate_reports_missing_fields() -> None:
    schedule = Schedule(time_slots=[_slot("", "", 0), _slot("Marathon", "6:00 AM", 600)])

    result = validate_schedule(schedule)

    assert result.is_valid is False
    assert "Time slot 1: Activity name is required" in result.errors
    assert "Time slot 1: Time is required" in result.errors
    assert "Time slot 1: Duration must be greater than 0" in result.errors
    assert "Time slot 2: Duration seems too long (600 minutes)" in result.errors


def test_validate_empty_schedule() -> None:
    result = validate_schedule(Schedule())

    assert result.errors == ["Schedule must contain at least one time slot"]


def test_validate_reports_single_overlap_for_identical_starts() -> None:
    schedule = Schedule(time_slots=[_slot("Email", "9:00 AM", 60), _slot("Call", "9:00 AM", 60)])

    result = validate_schedule(schedule)

    assert result.errors == ['Time conflict between "Email" and "Call"']


def test_validate_accepts_back_to_back_slots() -> None:
    schedule = Schedule(time_slots=[_slot("Email", "9:00 AM", 60), _slot("Call", "10:00 AM", 30)])

    assert validate_schedule(schedule).is_valid is True


def test_optimize_shifts_overlapping_slot_past_buffer() -> None:
    schedule = Schedule(
        time_slots=[_slot("Call", "9:30 AM", 30), _slot("Email", "9:00 AM", 60)],
        summary="Busy morning",
    )

    optimized = optimize_schedule(schedule, buffer_minutes=15)

    assert [slot.activity for slot in optimized.time_slots] == ["Email", "Call"]
    assert parse_time_to_minutes(optimized.time_slots[1].time) >= 600 + 15
    assert optimized.summary == "Busy morning"
    assert validate_schedule(optimized).is_valid is True


def test_convert_creates_tasks_and_missing_categories(db) -> None:
    user_id = uuid4()
    schedule = Schedule(
        time_slots=[
            _slot("Workout", "7:00 AM", 60, category="Exercise"),
            _slot("Team sync", "9:00 AM", 30, category="Commitment", is_commitment=True),
        ]
    )

    result = convert_schedule_to_tasks(db, schedule, ConversionOptions(user_id=user_id, target_date=TARGET))

    assert result.errors == []
    assert [task.name for task in result.created_tasks] == ["Workout", "Team sync"]
    assert set(result.created_categories) == {"Health & Fitness", "Commitments"}
    workout, sync = result.created_tasks
    assert workout.category_label == "Health & Fitness"
    assert workout.category_id is not None
    assert workout.scheduled_date == TARGET
    assert workout.time == "7:00 AM-8:00 AM"
    assert sync.priority == 1
    assert workout.priority == 2
    assert "Created 2 tasks" in conversion_summary(result)


def test_convert_reuses_existing_category(db) -> None:
    user_id = uuid4()
    db.add(User(id=user_id))
    db.flush()
    db.add(Category(user_id=user_id, name="work", color="c", bg_color="b", text_color="t"))
    db.commit()

    result = convert_schedule_to_tasks(
        db,
        Schedule(time_slots=[_slot("Inbox", "8:00 AM", 30, category="Productivity")]),
        ConversionOptions(user_id=user_id, target_date=TARGET),
    )

    assert result.created_categories == []
    assert result.created_tasks[0].category_label == "work"


def test_convert_records_slot_error_and_continues(db) -> None:
    user_id = uuid4()
    schedule = Schedule(
        time_slots=[
            _slot("", "8:00 AM", 30),
            _slot("Reading", "8:30 AM", 30, category="Learning"),
        ]
    )

    result = convert_schedule_to_tasks(db, schedule, ConversionOptions(user_id=user_id, target_date=TARGET))

    assert [task.name for task in result.created_tasks] == ["Reading"]
    assert result.errors == ['Failed to create task "": Task name is required']
    assert len(result.skipped_slots) == 1
    assert "1 errors occurred" in conversion_summary(result)


def test_convert_preserve_existing_skips_conflicting_slots(db) -> None:
    user_id = uuid4()
    task_service.create_task(db, user_id, name="Dentist", time="9:00 AM-10:00 AM", scheduled_date=TARGET)
    schedule = Schedule(
        time_slots=[
            _slot("Deep work", "9:30 AM", 60),
            _slot("Lunch", "12:00 PM", 45, category="Meals"),
        ]
    )

    result = convert_schedule_to_tasks(
        db,
        schedule,
        ConversionOptions(user_id=user_id, target_date=TARGET, preserve_existing_tasks=True),
    )

    assert [task.name for task in result.created_tasks] == ["Lunch"]
    assert [slot.activity for slot in result.skipped_slots] == ["Deep work"]
    assert result.errors == []


def test_convert_without_preserve_reports_conflict_as_error(db) -> None:
    user_id = uuid4()
    task_service.create_task(db, user_id, name="Dentist", time="9:00 AM-10:00 AM", scheduled_date=TARGET)

    result = convert_schedule_to_tasks(
        db,
        Schedule(time_slots=[_slot("Deep work", "9:30 AM", 60)]),
        ConversionOptions(user_id=user_id, target_date=TARGET),
    )

    assert result.created_tasks == []
    assert len(result.errors) == 1
    assert result.errors[0].startswith('Failed to create task "Deep work": Time slot conflicts')


def test_preview_lists_drafts_categories_conflicts_and_warnings(db) -> None:
    user_id = uuid4()
    task_service.create_task(db, user_id, name="Dentist", time="9:00 AM-10:00 AM", scheduled_date=TARGET)
    schedule = Schedule(
        time_slots=[
            _slot("Deep work", "9:30 AM", 300, category="Learning"),
            _slot("Walk", "1:00 PM", 30, category="Exercise"),
        ]
    )

    preview = preview_task_creation(db, schedule, ConversionOptions(user_id=user_id, target_date=TARGET))

    assert [draft["name"] for draft in preview.tasks] == ["Deep work", "Walk"]
    assert preview.tasks[0]["time"] == "9:30 AM-2:30 PM"
    assert preview.new_categories == ["Study", "Health & Fitness"]
    assert preview.conflicts == ['"Deep work" conflicts with existing tasks at 9:30 AM']
    assert preview.warnings == ['"Deep work" has a very long duration (300 minutes)']
    assert db.query(Task).count() == 1


def test_convert_tasks_to_schedule(db) -> None:
    user_id = uuid4()
    task_service.create_task(db, user_id, name="Lunch", time="12:00 PM-1:00 PM", scheduled_date=TARGET)
    task_service.create_task(db, user_id, name="Standup", time="9:00 AM-9:15 AM", scheduled_date=TARGET)

    schedule = convert_tasks_to_schedule(db, user_id, TARGET)

    assert [slot.activity for slot in schedule.time_slots] == ["Standup", "Lunch"]
    assert schedule.time_slots[0].time == "9:00 AM"
    assert schedule.time_slots[0].duration == 15
    assert schedule.confidence == 1.0
    assert schedule.summary == "Current schedule with 2 tasks"


def test_optimize_identical_starts_clears_validation() -> None:
    schedule = Schedule(time_slots=[_slot("Email", "9:00 AM", 60), _slot("Call", "9:00 AM", 30)])

    optimized = optimize_schedule(schedule, buffer_minutes=10)

    assert parse_time_to_minutes(optimized.time_slots[1].time) >= 540 + 60 + 10
    assert validate_schedule(optimized).is_valid is True


def test_convert_single_slot_with_unknown_category(db) -> None:
    user_id = uuid4()

    result = convert_schedule_to_tasks(
        db,
        Schedule(time_slots=[_slot("Pottery", "5:00 PM", 90, category="Ceramics")]),
        ConversionOptions(user_id=user_id, target_date=TARGET),
    )

    assert result.created_categories == ["Ceramics"]
    assert len(result.created_tasks) == 1
    assert db.query(Category).filter(Category.user_id == user_id).count() == 1


def test_optimize_drops_slot_pushed_past_midnight() -> None:
    schedule = Schedule(
        time_slots=[
            _slot("Review", "10:00 PM", 60),
            _slot("Notes", "10:30 PM", 30),
            _slot("Wrap-up", "11:00 PM", 30),
        ]
    )

    optimized = optimize_schedule(schedule, buffer_minutes=15)

    assert [slot.activity for slot in optimized.time_slots] == ["Review", "Notes"]
    assert optimized.time_slots[1].time == "11:15 PM"
    assert validate_schedule(optimized).is_valid is True


def _seed_user(db, user_id) -> None:
    db.add(User(id=user_id))
    db.commit()


def _seed_category(db, user_id, name: str) -> Category:
    category = Category(user_id=user_id, name=name, color="c", bg_color="b", text_color="t")
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def _fail_first_commit(monkeypatch, db) -> None:
    real_commit = db.commit
    calls = []

    def commit():
        calls.append(1)
        if len(calls) == 1:
            raise OperationalError("INSERT INTO categories", {}, Exception("database is locked"))
        real_commit()

    monkeypatch.setattr(db, "commit", commit)


def test_category_names_are_unique_ignoring_case(db) -> None:
    user_id = uuid4()
    _seed_user(db, user_id)
    _seed_category(db, user_id, "Work")

    db.add(Category(user_id=user_id, name="work", color="c", bg_color="b", text_color="t"))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_resolve_categories_rereads_row_after_failed_insert(db, monkeypatch) -> None:
    user_id = uuid4()
    _seed_user(db, user_id)
    existing_id = _seed_category(db, user_id, "Work").id
    # The initial listing misses a row another writer has just committed.
    monkeypatch.setattr(category_service, "list_categories", lambda session, owner_id: [])

    resolved = category_service.resolve_categories(db, user_id, ["Work"])

    assert resolved["work"].category_id == existing_id
    assert resolved["work"].created is False
    assert resolved["work"].fell_back is False
    assert db.query(Category).filter(Category.user_id == user_id).count() == 1


def test_resolve_categories_falls_back_to_personal_when_insert_fails(db, monkeypatch) -> None:
    user_id = uuid4()
    _seed_user(db, user_id)
    personal_id = _seed_category(db, user_id, "Personal").id
    _fail_first_commit(monkeypatch, db)

    resolved = category_service.resolve_categories(db, user_id, ["Gardening"])

    assert resolved["gardening"].name == "Personal"
    assert resolved["gardening"].category_id == personal_id
    assert resolved["gardening"].fell_back is True
    assert resolved["gardening"].created is False


def test_convert_keeps_slot_when_category_insert_fails(db, monkeypatch) -> None:
    user_id = uuid4()
    _seed_user(db, user_id)
    _fail_first_commit(monkeypatch, db)

    result = convert_schedule_to_tasks(
        db,
        Schedule(time_slots=[_slot("Weeding", "4:00 PM", 45, category="Gardening")]),
        ConversionOptions(user_id=user_id, target_date=TARGET),
    )

    assert result.errors == []
    assert result.created_categories == []
    assert [task.name for task in result.created_tasks] == ["Weeding"]
    assert result.created_tasks[0].category_label == "Personal"
    assert result.created_tasks[0].category_id is None
    assert db.query(Category).filter(Category.user_id == user_id).count() == 0
