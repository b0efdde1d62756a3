"""Tests ensuring observability wiring is safe by default."""
from __future__ import annotations

import importlib
from typing import Any, Dict

import pytest

from atomic.core.context import get_request_id, request_scope
from atomic.observability import client as client_module
from atomic.observability import tracing


class _DummyTrace:
    def __init__(self, name: str, metadata: Dict[str, Any] | None):
        self.name = name
        self.metadata = metadata or {}
        self.error_info = None
        self.ended = False

    def update(self, metadata=None, error_info=None, **kwargs):
        if metadata:
            self.metadata = metadata
        if error_info:
            self.error_info = error_info

    def end(self):
        self.ended = True


class _DummyOpik:
    def __init__(self):
        self.traces: list[_DummyTrace] = []

    def trace(self, name: str, metadata=None, **kwargs):
        trace = _DummyTrace(name, metadata)
        self.traces.append(trace)
        return trace


def test_app_import_succeeds_when_opik_is_disabled(monkeypatch) -> None:
    monkeypatch.setenv("OPIK_ENABLED", "false")
    monkeypatch.delenv("OPIK_API_KEY", raising=False)

    import atomic.main as main_module

    client_module.reset_opik_client()
    reloaded_app = importlib.reload(main_module)

    assert hasattr(reloaded_app, "app")
    assert client_module.init_opik() is None


def test_trace_yields_none_when_disabled(monkeypatch) -> None:
    monkeypatch.setattr(tracing, "get_opik_client", lambda: None)

    with tracing.trace("demo") as span:
        assert span is None
        tracing.update_span(span, {"ignored": True})


def test_trace_records_metadata_and_request_id(monkeypatch) -> None:
    dummy = _DummyOpik()
    monkeypatch.setattr(tracing, "get_opik_client", lambda: dummy)

    with request_scope("req-42"):
        with tracing.trace("task.create", metadata={"block": "morning", "date": None}, user_id="u1") as span:
            assert get_request_id() == "req-42"
            tracing.update_span(span, {"created": 1})

    recorded = dummy.traces[0]
    assert recorded.name == "task.create"
    assert recorded.metadata == {"created": 1}
    assert recorded.ended is True
    assert get_request_id() is None


def test_trace_drops_none_metadata(monkeypatch) -> None:
    dummy = _DummyOpik()
    monkeypatch.setattr(tracing, "get_opik_client", lambda: dummy)

    with tracing.trace("task.list", metadata={"date": None, "route": "/api/tasks"}, request_id="r1"):
        pass

    assert dummy.traces[0].metadata == {"route": "/api/tasks", "request_id": "r1"}


def test_trace_attaches_error_info_and_reraises(monkeypatch) -> None:
    dummy = _DummyOpik()
    monkeypatch.setattr(tracing, "get_opik_client", lambda: dummy)

    with pytest.raises(ValueError):
        with tracing.trace("schedule.convert"):
            raise ValueError("boom")

    recorded = dummy.traces[0]
    assert recorded.error_info == {"exception_type": "ValueError", "message": "boom"}
    assert recorded.ended is True
