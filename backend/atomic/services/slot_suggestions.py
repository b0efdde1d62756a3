"""Alternative start times and free-window analysis for a day of tasks."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from atomic.services.conflicts import has_conflict, task_range
from atomic.services.time_utils import BLOCK_BOUNDS, TIME_BLOCKS, TimeFormatError, TimeRange

logger = logging.getLogger(__name__)

DEFAULT_STEP_MINUTES = 15
DEFAULT_LIMIT = 3


@dataclass
class FreeWindow:
    block: str
    window: TimeRange

    def to_dict(self) -> Dict[str, Any]:
        return {
            "block": self.block,
            "start": self.window.start,
            "end": self.window.end,
            "time": self.window.display(),
            "duration": self.window.duration,
        }


@dataclass
class ScheduleInsights:
    total_scheduled_time: int
    total_free_time: int
    largest_free_block: int
    time_block_utilization: Dict[str, int]
    suggestions: List[str] = field(default_factory=list)


def _scan_block(
    block: str,
    duration: int,
    existing_tasks: Sequence[Any],
    step: int,
    limit: int,
) -> List[TimeRange]:
    block_start, block_end = BLOCK_BOUNDS[block]
    found: List[TimeRange] = []
    start = block_start
    while start + duration <= block_end and len(found) < limit:
        candidate = TimeRange.from_start(start, duration)
        if not has_conflict(candidate, existing_tasks):
            found.append(candidate)
        start += step
    return found


def suggest_alternatives(
    duration: int,
    preferred_block: Optional[str],
    existing_tasks: Iterable[Any],
    limit: int = DEFAULT_LIMIT,
    step: int = DEFAULT_STEP_MINUTES,
) -> List[TimeRange]:
    """Return up to ``limit`` open ranges of ``duration`` minutes, earliest first.

    The preferred block is walked from its start in ``step`` increments. Only
    when it has no opening at all are the other blocks scanned, in
    morning, afternoon, evening order. Without a preferred block all three are
    scanned in that order.
    """
    if duration <= 0 or limit <= 0:
        return []
    tasks = list(existing_tasks)

    if preferred_block in BLOCK_BOUNDS:
        found = _scan_block(preferred_block, duration, tasks, step, limit)
        if found:
            return found
        remaining = [block for block in TIME_BLOCKS if block != preferred_block]
    else:
        remaining = list(TIME_BLOCKS)

    found = []
    for block in remaining:
        found.extend(_scan_block(block, duration, tasks, step, limit - len(found)))
        if len(found) >= limit:
            break
    return found


def _busy_ranges(existing_tasks: Iterable[Any]) -> List[TimeRange]:
    ranges: List[TimeRange] = []
    for task in existing_tasks:
        try:
            ranges.append(task_range(task))
        except TimeFormatError:
            logger.warning("Skipping task with unparseable time while computing free windows")
    return sorted(ranges, key=lambda item: item.start)


def find_free_windows(
    existing_tasks: Iterable[Any],
    block: Optional[str] = None,
    min_duration: int = DEFAULT_STEP_MINUTES,
) -> List[FreeWindow]:
    """List the gaps of at least ``min_duration`` minutes inside each block."""
    busy = _busy_ranges(existing_tasks)
    blocks = [block] if block in BLOCK_BOUNDS else list(TIME_BLOCKS)
    windows: List[FreeWindow] = []

    for name in blocks:
        block_start, block_end = BLOCK_BOUNDS[name]
        cursor = block_start
        for item in busy:
            if item.end <= cursor or item.start >= block_end:
                continue
            if item.start - cursor >= min_duration:
                windows.append(FreeWindow(name, TimeRange(cursor, item.start)))
            cursor = max(cursor, item.end)
            if cursor >= block_end:
                break
        if block_end - cursor >= min_duration:
            windows.append(FreeWindow(name, TimeRange(cursor, block_end)))
    return windows


def schedule_insights(tasks: Sequence[Any]) -> ScheduleInsights:
    """Summarise how full the day is and hint at where to add work."""
    total_scheduled = sum(int(getattr(task, "duration", 0) or 0) for task in tasks)
    windows = find_free_windows(tasks)
    total_free = sum(window.window.duration for window in windows)
    largest_free = max((window.window.duration for window in windows), default=0)

    busy = _busy_ranges(tasks)
    utilization: Dict[str, int] = {}
    for name in TIME_BLOCKS:
        block_start, block_end = BLOCK_BOUNDS[name]
        used = sum(
            max(0, min(item.end, block_end) - max(item.start, block_start))
            for item in busy
        )
        utilization[name] = min(100, round(used * 100 / (block_end - block_start)))

    suggestions: List[str] = []
    if total_free > 180:
        suggestions.append("You have significant free time - consider adding important tasks.")
    if largest_free >= 120:
        suggestions.append(
            f"You have a {largest_free // 60}+ hour free block - perfect for deep work."
        )
    if utilization["morning"] < 50:
        suggestions.append("Your morning has light scheduling - consider moving important tasks here.")

    return ScheduleInsights(
        total_scheduled_time=total_scheduled,
        total_free_time=total_free,
        largest_free_block=largest_free,
        time_block_utilization=utilization,
        suggestions=suggestions,
    )
