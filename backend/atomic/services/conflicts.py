"""Overlap checks between a candidate range and a day's tasks."""
from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Union

from atomic.services.time_utils import TimeFormatError, TimeRange, parse_time_range

logger = logging.getLogger(__name__)


def task_range(task: Any) -> TimeRange:
    """Return a task's range, parsing its display string when it has no stored minutes.

    Raises TimeFormatError when the task's time text cannot be parsed.
    """
    stored = getattr(task, "time_range", None)
    if isinstance(stored, TimeRange):
        return stored
    text = task.get("time") if isinstance(task, dict) else getattr(task, "time", None)
    return parse_time_range(text or "", strict=True)


def _task_id(task: Any) -> Any:
    return task.get("id") if isinstance(task, dict) else getattr(task, "id", None)


def _as_range(candidate: Union[TimeRange, str]) -> TimeRange:
    if isinstance(candidate, TimeRange):
        return candidate
    return parse_time_range(candidate, strict=True)


def find_conflicts(
    candidate: Union[TimeRange, str],
    existing_tasks: Iterable[Any],
    exclude_task_id: Optional[Any] = None,
) -> List[Any]:
    """Return every task overlapping the candidate.

    A task whose stored time cannot be parsed is reported as a conflict so a
    corrupt row never lets the slot be double-booked.
    """
    target = _as_range(candidate)
    exclude = str(exclude_task_id) if exclude_task_id is not None else None
    conflicts: List[Any] = []
    for task in existing_tasks:
        if exclude is not None and str(_task_id(task)) == exclude:
            continue
        try:
            existing = task_range(task)
        except TimeFormatError:
            logger.warning("Unparseable time on task %s; treating as a conflict", _task_id(task))
            conflicts.append(task)
            continue
        if target.overlaps(existing):
            conflicts.append(task)
    return conflicts


def has_conflict(
    candidate: Union[TimeRange, str],
    existing_tasks: Iterable[Any],
    exclude_task_id: Optional[Any] = None,
) -> bool:
    """True when the candidate overlaps any task other than ``exclude_task_id``."""
    target = _as_range(candidate)
    exclude = str(exclude_task_id) if exclude_task_id is not None else None
    for task in existing_tasks:
        if exclude is not None and str(_task_id(task)) == exclude:
            continue
        try:
            existing = task_range(task)
        except TimeFormatError:
            logger.warning("Unparseable time on task %s; treating as a conflict", _task_id(task))
            return True
        if target.overlaps(existing):
            return True
    return False
