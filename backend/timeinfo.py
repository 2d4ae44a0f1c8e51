import math
import time
from typing import Optional

from allocator import MEAL_KEYWORDS
from models import (
    BreakdownEntry,
    ScheduleSummary,
    Task,
    TaskOverlap,
    TimerStatus,
    DAY_HOURS,
)

SORT_ORDERS = ("time", "duration", "name")
UNALLOCATED_COLOR = "#e5e7eb"
BALANCE_TOLERANCE = 0.01


def sort_tasks(tasks: list[Task], order: str = "time") -> list[Task]:
    """time: earliest start first; duration: longest first; name: alphabetical."""
    if order == "time":
        return sorted(tasks, key=lambda t: t.start_time)
    if order == "duration":
        return sorted(tasks, key=lambda t: t.duration, reverse=True)
    if order == "name":
        return sorted(tasks, key=lambda t: t.name.lower())
    raise ValueError(f"Unknown sort order: {order}")


def format_clock(hour: float) -> str:
    """Format hours-from-midnight as HH:MM (e.g. 9.5 -> "09:30")."""
    whole = int(math.floor(hour))
    minutes = int(round((hour - whole) * 60))
    return f"{whole:02d}:{minutes:02d}"


def time_labels(task: Task) -> tuple[str, str]:
    """Start and end labels; the end wraps past midnight."""
    end = (task.start_time + task.duration) % DAY_HOURS
    return format_clock(task.start_time), format_clock(end)


def tasks_overlap(first: Task, second: Task) -> bool:
    first_start = first.start_time
    first_end = (first_start + first.duration) % DAY_HOURS
    second_start = second.start_time
    second_end = (second_start + second.duration) % DAY_HOURS

    first_wraps = first_end < first_start
    second_wraps = second_end < second_start

    if first_wraps and second_wraps:
        # Both contain midnight
        return True
    if first_wraps:
        return second_start < first_end or second_end > first_start
    if second_wraps:
        return first_start < second_end or first_end > second_start
    return first_start < second_end and first_end > second_start


def find_overlaps(tasks: list[Task]) -> list[TaskOverlap]:
    overlaps = []
    for i, first in enumerate(tasks):
        for second in tasks[i + 1:]:
            if tasks_overlap(first, second):
                overlaps.append(TaskOverlap(first_id=first.id, second_id=second.id))
    return overlaps


def is_meal(name: str) -> bool:
    name_lower = name.lower()
    return any(keyword in name_lower for keyword in MEAL_KEYWORDS)


def breakdown(tasks: list[Task]) -> list[BreakdownEntry]:
    """
    Hours per task name, longest first. Meal tasks are folded into one
    "Eating" entry. An "Unallocated" entry is appended when the day is not full.
    """
    groups: dict[str, dict] = {}
    for task in tasks:
        key = "Eating" if is_meal(task.name) else task.name
        group = groups.setdefault(key, {"color": task.color, "duration": 0.0})
        group["duration"] += task.duration

    entries = [
        BreakdownEntry(
            name=name,
            color=group["color"],
            duration=group["duration"],
            percent=group["duration"] / DAY_HOURS * 100,
        )
        for name, group in groups.items()
    ]
    entries.sort(key=lambda e: e.duration, reverse=True)

    total = sum(task.duration for task in tasks)
    if total < DAY_HOURS and abs(total - DAY_HOURS) >= BALANCE_TOLERANCE:
        entries.append(BreakdownEntry(
            name="Unallocated",
            color=UNALLOCATED_COLOR,
            duration=DAY_HOURS - total,
            percent=(DAY_HOURS - total) / DAY_HOURS * 100,
        ))
    return entries


def timer_status(task: Task, now_ms: Optional[float] = None) -> Optional[TimerStatus]:
    """Elapsed minutes and progress (capped at 100%) of a running timer."""
    if not task.is_timer_active or task.timer_started_at is None:
        return None
    if now_ms is None:
        now_ms = time.time() * 1000

    elapsed_ms = max(0.0, now_ms - task.timer_started_at)
    elapsed_seconds = elapsed_ms / 1000
    progress = min(elapsed_seconds / (task.duration * 3600) * 100, 100.0)
    return TimerStatus(
        task_id=task.id,
        elapsed_minutes=int(elapsed_ms // 60000),
        progress_percent=progress,
    )


def summarize(tasks: list[Task], now_ms: Optional[float] = None) -> ScheduleSummary:
    total = sum(task.duration for task in tasks)
    active = next((task for task in tasks if task.is_timer_active), None)
    return ScheduleSummary(
        total_hours=total,
        remaining_hours=max(0.0, DAY_HOURS - total),
        is_balanced=abs(total - DAY_HOURS) < BALANCE_TOLERANCE,
        progress_percent=min(round(total / DAY_HOURS * 100), 100),
        breakdown=breakdown(tasks),
        overlaps=find_overlaps(tasks),
        active_timer=timer_status(active, now_ms) if active else None,
    )
