"""Tests for metrics helpers."""
from __future__ import annotations

from typing import Any, Dict

from atomic.observability import metrics


class _DummyTrace:
    def __init__(self, name: str, metadata: Dict[str, Any]):
        self.name = name
        self.metadata = metadata
        self.ended = False

    def end(self) -> None:
        self.ended = True


class _DummyClient:
    def __init__(self):
        self.traces: list[_DummyTrace] = []

    def trace(self, name: str, metadata: Dict[str, Any] | None = None):
        trace = _DummyTrace(name, metadata or {})
        self.traces.append(trace)
        return trace


def test_log_metric_closes_trace(monkeypatch) -> None:
    dummy_client = _DummyClient()
    monkeypatch.setattr(metrics, "get_opik_client", lambda: dummy_client)

    metrics.log_metric("task.create.conflict", 2, metadata={"user_id": "abc"})

    assert dummy_client.traces, "Metric call should record a trace"
    assert dummy_client.traces[0].name == "metric:task.create.conflict"
    assert dummy_client.traces[0].metadata["value"] == 2
    assert dummy_client.traces[0].metadata["user_id"] == "abc"
    assert dummy_client.traces[0].ended is True


def test_log_metric_is_noop_without_client(monkeypatch) -> None:
    monkeypatch.setattr(metrics, "get_opik_client", lambda: None)

    metrics.log_metric("ai.fallback.used", 1)
