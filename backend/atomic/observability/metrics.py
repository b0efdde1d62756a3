"""Counters recorded as Opik traces."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from atomic.observability.client import get_opik_client

logger = logging.getLogger(__name__)


def log_metric(name: str, value: float | int, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Record ``name`` with its value; a debug log line is written whether or not Opik is on."""
    payload: Dict[str, Any] = {"value": value}
    if metadata:
        payload.update(metadata)
    logger.debug("metric %s %s", name, payload)

    client = get_opik_client()
    if not client:
        return
    try:
        metric_trace = client.trace(name=f"metric:{name}", metadata=payload)
        metric_trace.end()
    except Exception as exc:  # pragma: no cover - exporter failures must not break requests
        logger.debug("Unable to record metric %s: %s", name, exc)
