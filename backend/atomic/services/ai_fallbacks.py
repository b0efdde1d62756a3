"""Rule-table results used when the LLM cannot be reached or answers badly."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from atomic.api.schemas.ai import (
    GeneratedTask,
    OptimizationResponse,
    OptimizationSuggestion,
    ResearchResponse,
    ScheduleResponse,
    UserInputs,
)
from atomic.api.schemas.onboarding import UserPreferencesPayload
from atomic.api.schemas.schedule import Schedule, TimeSlot
from atomic.services.conflicts import find_conflicts, has_conflict, task_range
from atomic.services.schedule_converter import optimize_schedule
from atomic.services.slot_suggestions import schedule_insights, suggest_alternatives
from atomic.services.time_utils import (
    TimeFormatError,
    TimeRange,
    block_for_minutes,
    format_minutes,
    parse_time_or_range,
    parse_time_to_minutes,
)

logger = logging.getLogger(__name__)

DEFAULT_WAKE_MINUTES = 7 * 60
DEFAULT_BED_MINUTES = 22 * 60 + 30
LONG_RUN_MINUTES = 180
RUN_GAP_MINUTES = 10
DEMANDING_CATEGORIES = {"work", "study", "learning", "education", "productivity"}
DEMANDING_WORDS = ("deep work", "study", "coding", "project", "focus")


@dataclass(frozen=True)
class TaskTemplate:
    name: str
    start: int
    duration: int
    category: str
    reasoning: str


@dataclass(frozen=True)
class ScheduleRule:
    keywords: Tuple[str, ...]
    tasks: Tuple[TaskTemplate, ...]
    insight: str

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)


@dataclass(frozen=True)
class ResearchRule:
    keywords: Tuple[str, ...]
    practices: Tuple[str, ...]
    allocations: Tuple[Tuple[str, int], ...]
    backing: Tuple[str, ...]

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)


BASE_TASKS = (
    TaskTemplate("Deep Work Session", 8 * 60, 120, "Work", "Morning hours typically offer peak cognitive performance"),
    TaskTemplate("Break & Stretch", 10 * 60, 30, "Personal", "Regular breaks maintain sustained productivity"),
    TaskTemplate("Lunch", 12 * 60, 60, "Meals", "A proper midday meal restores energy for the afternoon"),
    TaskTemplate("Focused Work", 13 * 60, 90, "Work", "Post-lunch period is good for structured tasks"),
    TaskTemplate("Review & Planning", 19 * 60, 30, "Personal", "Evening reflection helps consolidate learning"),
)

SCHEDULE_RULES = (
    ScheduleRule(
        keywords=("student", "study", "exam", "class"),
        tasks=(
            TaskTemplate("Study Session", 8 * 60, 120, "Study", "Hard material is best tackled while alertness peaks"),
            TaskTemplate("Review Notes", 16 * 60, 60, "Study", "Same-day review strengthens retention"),
        ),
        insight="Study blocks sit in the morning, with a same-day review in the afternoon",
    ),
    ScheduleRule(
        keywords=("fitness", "exercise", "workout", "health", "gym"),
        tasks=(
            TaskTemplate("Exercise & Fitness", 18 * 60, 60, "Exercise", "Late-day training suits peak body temperature"),
        ),
        insight="A daily training slot supports your fitness goal",
    ),
    ScheduleRule(
        keywords=("fintech", "finance", "financial", "investing", "budget"),
        tasks=(
            TaskTemplate("Fintech Industry Reading", 14 * 60 + 30, 45, "Finance", "Short daily reading keeps domain knowledge current"),
        ),
        insight="Daily industry reading keeps you current in finance and fintech",
    ),
    ScheduleRule(
        keywords=("programming", "coding", "code", "software", "developer"),
        tasks=(
            TaskTemplate("Coding Practice", 15 * 60 + 30, 90, "Learning", "Deliberate practice builds programming skill"),
        ),
        insight="A deliberate-practice coding block moves programming skills forward",
    ),
    ScheduleRule(
        keywords=("mindfulness", "meditation", "stress", "calm", "anxiety"),
        tasks=(
            TaskTemplate("Mindfulness Meditation", 7 * 60 + 30, 15, "Health", "Brief morning meditation lowers stress reactivity"),
        ),
        insight="A short morning meditation helps with focus and stress",
    ),
    ScheduleRule(
        keywords=("sleep", "tired", "insomnia", "wind down"),
        tasks=(
            TaskTemplate("Wind-down Routine", 21 * 60 + 30, 30, "Self-Care", "A screen-free wind-down improves sleep quality"),
        ),
        insight="An evening wind-down protects your sleep",
    ),
)

RESEARCH_RULES = (
    ResearchRule(
        keywords=("fitness", "exercise", "workout", "health", "gym", "strength"),
        practices=(
            "Aim for at least 150 minutes of moderate aerobic exercise per week",
            "Add two full-body strength training sessions each week",
        ),
        allocations=(("Exercise", 45),),
        backing=(
            "WHO guidelines recommend 150-300 minutes of moderate activity weekly for adults",
            "Resistance training twice a week is linked to lower all-cause mortality",
        ),
    ),
    ResearchRule(
        keywords=("programming", "coding", "code", "software", "developer"),
        practices=(
            "Practise programming daily in focused 60-90 minute sessions",
            "Build small projects that apply each new concept soon after learning it",
        ),
        allocations=(("Coding Practice", 90),),
        backing=(
            "Deliberate practice with fast feedback is the strongest predictor of skill growth",
            "Retrieval practice outperforms re-reading for retaining technical material",
        ),
    ),
    ResearchRule(
        keywords=("student", "study", "exam", "class", "degree"),
        practices=(
            "Use spaced repetition and self-testing rather than re-reading notes",
            "Study the hardest subject first while alertness is highest",
        ),
        allocations=(("Study", 120),),
        backing=("Spaced and retrieval practice produce durable learning gains across subjects",),
    ),
    ResearchRule(
        keywords=("fintech", "finance", "financial", "investing", "budget"),
        practices=(
            "Review personal finances and industry news in one short daily block",
            "Automate savings so progress does not depend on willpower",
        ),
        allocations=(("Financial Review", 30),),
        backing=("Default and automation effects reliably increase savings rates",),
    ),
    ResearchRule(
        keywords=("mindfulness", "meditation", "stress", "calm", "anxiety"),
        practices=("Meditate for 10-15 minutes each morning",),
        allocations=(("Mindfulness", 15),),
        backing=("Mindfulness programmes show moderate reductions in perceived stress",),
    ),
    ResearchRule(
        keywords=("sleep", "tired", "insomnia", "wind down"),
        practices=(
            "Keep consistent sleep and wake times, including weekends",
            "Avoid screens for 30 minutes before bed",
        ),
        allocations=(("Wind-down", 30),),
        backing=("Regular sleep timing is associated with better mood and cognitive performance",),
    ),
)

DEFAULT_RESEARCH = ResearchRule(
    keywords=(),
    practices=(
        "Schedule your most demanding work during your peak energy hours",
        "Work in 90-minute focus blocks separated by short breaks",
        "Review progress weekly and adjust your plan",
    ),
    allocations=(("Deep Work", 120), ("Exercise", 60), ("Learning", 90)),
    backing=(
        "Ultradian rhythm research supports 90-minute focus cycles",
        "Implementation intentions roughly double follow-through on goals",
    ),
)

PEAK_HOUR_STARTS = {
    "early-morning": 6 * 60,
    "morning": 9 * 60,
    "afternoon": 12 * 60,
    "late-afternoon": 16 * 60,
    "evening": 18 * 60,
}
FOCUS_BLOCK_MINUTES = 90
BREAK_MINUTES = {"medium": 15, "long-rare": 30}


def _clock(text: Optional[str], default: int) -> int:
    cleaned = (text or "").strip()
    if not cleaned:
        return default
    return parse_time_to_minutes(cleaned, fallback=default)


class _DayPlan:
    """Places ranges on one day, moving a clashing range to the first open slot."""

    def __init__(self) -> None:
        self.placed: List[Dict[str, Any]] = []

    def place(self, start: int, duration: int, fixed: bool = False) -> Optional[TimeRange]:
        candidate = TimeRange.from_start(start, duration)
        if fixed or not has_conflict(candidate, self.placed):
            self._take(candidate)
            return candidate
        alternatives = suggest_alternatives(duration, block_for_minutes(start), self.placed, limit=1)
        if not alternatives:
            return None
        self._take(alternatives[0])
        return alternatives[0]

    def _take(self, time_range: TimeRange) -> None:
        self.placed.append({"time": time_range.display()})


def generate_fallback_schedule(user_inputs: UserInputs) -> ScheduleResponse:
    """Build a schedule from keyword rules over the user's free text.

    Tasks are anchored to the wake time: nothing starts before the morning
    routine ends, and a task that clashes is moved to the first free slot in
    its block or dropped when the day has no room.
    """
    text = " ".join(
        [user_inputs.constraints, user_inputs.goals, user_inputs.productivity, user_inputs.work_style]
    ).lower()
    wake = _clock(user_inputs.wake_time, DEFAULT_WAKE_MINUTES)
    matched = [rule for rule in SCHEDULE_RULES if rule.matches(text)]

    templates: List[TaskTemplate] = [
        TaskTemplate("Morning Routine & Planning", wake, 30, "Personal", "Starting the day with structure sets a positive tone")
    ]
    rule_templates = [template for rule in matched for template in rule.tasks]
    # Rule tasks claim their slots before the generic day fills in around them.
    templates.extend(rule_templates)
    templates.extend(BASE_TASKS)

    plan = _DayPlan()
    tasks: List[GeneratedTask] = []
    for index, template in enumerate(templates):
        start = max(template.start, wake + 30) if index else template.start
        placed = plan.place(start, template.duration, fixed=index == 0)
        if placed is None:
            logger.debug("No room for fallback task %s", template.name)
            continue
        tasks.append(
            GeneratedTask(
                name=template.name,
                time=placed.display(),
                category=template.category,
                duration=template.duration,
                block=block_for_minutes(placed.start),
                reasoning=template.reasoning,
            )
        )
    tasks.sort(key=lambda task: task_range(task).start)

    insights = [
        "This schedule follows research-backed productivity principles",
        "Peak cognitive hours are used for the most demanding tasks",
    ]
    insights.extend(rule.insight for rule in matched)
    return ScheduleResponse(
        tasks=tasks,
        insights=insights,
        recommendations=[
            "Try this schedule for a week and adjust based on your energy levels",
            "Pay attention to when you feel most and least productive",
            "Consider your chronotype when fine-tuning task timing",
        ],
    )


def generate_fallback_research(goals: Sequence[str]) -> ResearchResponse:
    """Practices, minutes per activity and supporting findings for the goals."""
    text = " ".join(goals).lower()
    matched = [rule for rule in RESEARCH_RULES if rule.matches(text)] or [DEFAULT_RESEARCH]

    practices: List[str] = []
    allocations: Dict[str, int] = {}
    backing: List[str] = []
    for rule in matched:
        practices.extend(rule.practices)
        allocations.update(dict(rule.allocations))
        backing.extend(rule.backing)
    return ResearchResponse(practices=practices, time_allocations=allocations, scientific_backing=backing)


@dataclass
class _Entry:
    name: str
    category: str
    duration: int
    time_range: TimeRange


def _entry(task: Any) -> _Entry:
    """Normalise a submitted task; start-only times use the task's duration."""
    duration = int(task.duration or 0)
    time_range = parse_time_or_range((task.time or "").strip(), duration if duration > 0 else None)
    return _Entry(task.name, task.category or "", time_range.duration, time_range)


def _is_demanding(entry: _Entry) -> bool:
    name = entry.name.lower()
    return entry.category.lower() in DEMANDING_CATEGORIES or any(word in name for word in DEMANDING_WORDS)


def generate_fallback_optimization(tasks: Sequence[Any], goal: str) -> OptimizationResponse:
    """Inspect the current tasks for overlaps, long unbroken runs and late demanding work."""
    parsed: List[Tuple[_Entry, TimeRange]] = []
    for task in tasks:
        try:
            entry = _entry(task)
        except TimeFormatError:
            logger.warning("Ignoring task %r with unparseable time %r", task.name, task.time)
            continue
        parsed.append((entry, entry.time_range))
    parsed.sort(key=lambda item: item[1].start)
    suggestions: List[OptimizationSuggestion] = []

    flagged = set()
    for index, (task, time_range) in enumerate(parsed):
        earlier = [other for other, _ in parsed[:index]]
        clashes = find_conflicts(time_range, earlier)
        if not clashes:
            continue
        flagged.add(index)
        others = [other for position, (other, _) in enumerate(parsed) if position != index]
        alternatives = suggest_alternatives(time_range.duration, block_for_minutes(time_range.start), others, limit=1)
        suggestions.append(
            OptimizationSuggestion(
                type="move",
                task=task.name,
                new_time=alternatives[0].display() if alternatives else None,
                reasoning=f"Overlaps with {clashes[0].name}",
            )
        )

    for index, (task, time_range) in enumerate(parsed):
        if index in flagged or time_range.start < 18 * 60 or not _is_demanding(task):
            continue
        others = [other for position, (other, _) in enumerate(parsed) if position != index]
        alternatives = suggest_alternatives(time_range.duration, "morning", others, limit=1)
        if alternatives:
            suggestions.append(
                OptimizationSuggestion(
                    type="move",
                    task=task.name,
                    new_time=alternatives[0].display(),
                    reasoning="Demanding work is better placed in earlier, higher-energy hours",
                )
            )

    run_start: Optional[int] = None
    run_end = 0
    for _, time_range in parsed:
        if run_start is None or time_range.start - run_end > RUN_GAP_MINUTES:
            run_start = time_range.start
        run_end = max(run_end, time_range.end)
        if run_end - run_start >= LONG_RUN_MINUTES:
            suggestions.append(
                OptimizationSuggestion(
                    type="add",
                    task="Short Break",
                    new_time=TimeRange.from_start(run_end, 15).display(),
                    reasoning=f"{run_end - run_start} minutes without a break; a pause helps sustain focus",
                )
            )
            run_start = None

    overview = schedule_insights([task for task, _ in parsed])
    insights = [
        f"Analyzed {len(parsed)} tasks totalling {overview.total_scheduled_time} minutes",
        f"Largest free window is {overview.largest_free_block} minutes",
    ]
    insights.extend(overview.suggestions)
    if goal:
        insights.append(f"Suggestions were chosen with your goal in mind: {goal}")
    if not suggestions:
        insights.append("No conflicts or overloaded stretches were found")
    return OptimizationResponse(suggestions=suggestions, insights=insights)


def _slot(index: int, start: int, activity: str, category: str, duration: int, description: str, commitment: bool = False) -> TimeSlot:
    return TimeSlot(
        id=f"fallback-{index}",
        time=format_minutes(start),
        activity=activity,
        description=description,
        category=category,
        duration=duration,
        is_commitment=commitment,
    )


def generate_fallback_preferences_schedule(preferences: UserPreferencesPayload) -> Schedule:
    """Assemble a Schedule from onboarding preferences without the LLM."""
    wake = _clock(preferences.sleep_schedule.wake_up_time, DEFAULT_WAKE_MINUTES)
    bed = _clock(preferences.sleep_schedule.bed_time, DEFAULT_BED_MINUTES)
    plan = _DayPlan()
    slots: List[TimeSlot] = []

    def add(start: int, activity: str, category: str, duration: int, description: str, fixed: bool = False, commitment: bool = False) -> None:
        placed = plan.place(start, duration, fixed=fixed)
        if placed is None:
            logger.debug("No room for %s in fallback schedule", activity)
            return
        slots.append(_slot(len(slots), placed.start, activity, category, duration, description, commitment))

    add(wake, "Wake-up Routine", "Personal Care", 30, "Hydrate, stretch and plan the day", fixed=True)
    for commitment in preferences.commitments:
        start = _clock(commitment.preferred_time, 9 * 60)
        add(start, commitment.task_name, "Commitment", commitment.duration, "Fixed commitment", fixed=True, commitment=True)

    meals = preferences.meal_times
    add(_clock(meals.breakfast, wake + 45), "Breakfast", "Meals", 30, "Fuel up for the morning")
    add(_clock(meals.lunch, 12 * 60 + 30), "Lunch", "Meals", 45, "Midday meal away from the desk")
    add(_clock(meals.dinner, 19 * 60), "Dinner", "Meals", 45, "Evening meal")

    work = preferences.work_preferences
    peaks = [PEAK_HOUR_STARTS[hour] for hour in work.peak_hours if hour in PEAK_HOUR_STARTS] or [9 * 60]
    for index in range(max(work.focus_blocks, 0)):
        start = peaks[index % len(peaks)] + (index // len(peaks)) * (FOCUS_BLOCK_MINUTES + 30)
        add(start, f"Focus Block {index + 1}", "Work", FOCUS_BLOCK_MINUTES, "Deep work during your peak hours")
    break_minutes = BREAK_MINUTES.get(work.break_preference)
    if break_minutes:
        add(15 * 60, "Break", "Break", break_minutes, "Step away and recharge")

    for goal in preferences.goals:
        add(17 * 60, goal.name, "Goals", 60, f"Progress on your {goal.category.lower()} goal")
    if preferences.custom_goals.strip():
        add(20 * 60, "Personal Goal Time", "Goals", 45, preferences.custom_goals.strip())

    add(bed - 30, "Wind-down", "Personal Care", 30, "Screens off and prepare for sleep")

    schedule = Schedule(
        time_slots=slots,
        summary=f"A balanced day from {format_minutes(wake)} to {format_minutes(bed)} with {len(slots)} activities.",
        optimization_reasoning="Commitments are fixed first, focus work sits in your peak hours and meals anchor the day.",
        confidence=0.6,
    )
    return optimize_schedule(schedule)
