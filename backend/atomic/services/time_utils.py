"""Parsing and formatting for clock times and time ranges.

Times travel through the API as display strings ("9:00 AM-10:30 AM") but are
stored and compared as minutes since midnight. Everything that turns text into
minutes goes through this module.

Overnight convention: when a parsed range ends numerically before it starts
("11:00 PM-12:30 AM"), 1440 is added to the end, so ranges always satisfy
``end >= start`` and may extend past 1440.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

MINUTES_PER_DAY = 24 * 60
NOON = 12 * 60

TIME_BLOCKS = ("morning", "afternoon", "evening")

# Start inclusive, end exclusive, in minutes since midnight.
BLOCK_BOUNDS: Dict[str, Tuple[int, int]] = {
    "morning": (6 * 60, 12 * 60),
    "afternoon": (12 * 60, 18 * 60),
    "evening": (18 * 60, 23 * 60),
}

_CLOCK_PATTERN = re.compile(
    r"^\s*(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?\s*(?P<period>[ap]\.?m\.?)?\s*$",
    re.IGNORECASE,
)
_PERIOD_PATTERN = re.compile(r"([ap])\.?m\.?\s*$", re.IGNORECASE)


class TimeFormatError(ValueError):
    """Raised by the strict parsers when text is not a recognisable time."""


@dataclass(frozen=True)
class TimeRange:
    start: int
    end: int

    @classmethod
    def from_start(cls, start: int, duration: int) -> "TimeRange":
        return cls(start, start + duration)

    @property
    def duration(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "TimeRange") -> bool:
        """Half-open overlap test; ranges that only touch do not overlap."""
        return self.start < other.end and self.end > other.start

    def display(self) -> str:
        return format_minutes_as_range(self.start, self.duration)

    def to_dict(self) -> Dict[str, object]:
        return {
            "start": self.start,
            "end": self.end,
            "time": self.display(),
            "block": block_for_minutes(self.start),
        }


def _clock_to_minutes(text: str, default_period: Optional[str]) -> int:
    match = _CLOCK_PATTERN.match(text or "")
    if not match:
        raise TimeFormatError(f"Invalid time format: {text!r}")

    hour = int(match.group("hour"))
    minute = int(match.group("minute") or 0)
    raw_period = match.group("period") or default_period
    period = raw_period[0].upper() if raw_period else None

    if minute > 59:
        raise TimeFormatError(f"Invalid minutes in {text!r}")

    if period is None:
        if hour > 23:
            raise TimeFormatError(f"Invalid hour in {text!r}")
        return hour * 60 + minute

    if not 1 <= hour <= 12:
        raise TimeFormatError(f"Invalid 12-hour clock value in {text!r}")
    if period == "P" and hour != 12:
        hour += 12
    elif period == "A" and hour == 12:
        hour = 0
    return hour * 60 + minute


def parse_time_to_minutes(
    text: str,
    default_period: Optional[str] = None,
    fallback: int = NOON,
) -> int:
    """Return minutes since midnight for "H", "H:MM", optionally with AM/PM.

    Without a period the value is read as a 24-hour clock unless
    ``default_period`` supplies one. Malformed text yields ``fallback``.
    """
    try:
        return _clock_to_minutes(text, default_period)
    except TimeFormatError:
        return fallback


def parse_time_strict(text: str, default_period: Optional[str] = None) -> int:
    """Like parse_time_to_minutes but raises TimeFormatError on bad input."""
    return _clock_to_minutes(text, default_period)


def _period_of(text: str) -> Optional[str]:
    match = _PERIOD_PATTERN.search(text or "")
    if not match:
        return None
    return f"{match.group(1).upper()}M"


def parse_time_range(text: str, strict: bool = False) -> TimeRange:
    """Parse "9:00-10:00 AM" style text into a TimeRange.

    The text is split on the first "-". A side without AM/PM inherits the
    other side's period. In non-strict mode each malformed side degrades to
    noon; strict mode raises TimeFormatError.
    """
    if not text or "-" not in text:
        if strict:
            raise TimeFormatError(f"Invalid time range: {text!r}")
        return TimeRange(NOON, NOON)

    start_text, end_text = (part.strip() for part in text.split("-", 1))
    start_period = _period_of(start_text)
    end_period = _period_of(end_text)

    if strict:
        start = parse_time_strict(start_text, start_period or end_period)
        end = parse_time_strict(end_text, end_period or start_period)
    else:
        start = parse_time_to_minutes(start_text, start_period or end_period)
        end = parse_time_to_minutes(end_text, end_period or start_period)

    # "11:00-1:00 PM" means 11 AM: an inherited PM that puts the start after the end is dropped.
    if start_period is None and end_period == "PM" and start > end >= NOON:
        start -= NOON
    # "11:30 PM-12:15" ends at 12:15 AM: an inherited PM on the end side is dropped the same way.
    if end_period is None and start_period == "PM" and start > end >= NOON:
        end -= NOON
    if end < start:
        end += MINUTES_PER_DAY
    return TimeRange(start, end)


def parse_time_or_range(text: str, duration: Optional[int] = None) -> TimeRange:
    """Strictly parse either a full range or a start time plus duration."""
    if text and "-" in text:
        return parse_time_range(text, strict=True)
    if duration is None:
        raise TimeFormatError(f"A duration is required with a start-only time: {text!r}")
    return TimeRange.from_start(parse_time_strict(text), duration)


def format_minutes(total_minutes: int) -> str:
    """Format minutes since midnight as "H:MM AM"; values wrap at midnight."""
    total_minutes %= MINUTES_PER_DAY
    hour, minute = divmod(total_minutes, 60)
    period = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minute:02d} {period}"


def format_minutes_as_range(start_minutes: int, duration_minutes: int) -> str:
    return f"{format_minutes(start_minutes)}-{format_minutes(start_minutes + duration_minutes)}"


def block_for_minutes(total_minutes: int) -> str:
    """Bucket a start time into morning, afternoon or evening."""
    hour = (total_minutes % MINUTES_PER_DAY) // 60
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 18:
        return "afternoon"
    return "evening"
