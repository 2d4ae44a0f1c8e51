import logging
import math
from typing import Iterable, Optional

from models import AdjustmentProposal, Task, MIN_DURATION

logger = logging.getLogger(__name__)

MEAL_KEYWORDS = ("eating", "breakfast", "lunch", "dinner")

# Reduction tiers: lower tiers give up time first.
# Keywords are matched as lowercase substrings of the task name, in the order
# listed here; the first keyword that matches decides the tier.
TIER_KEYWORDS = [
    ("personal", 0),
    ("exercise", 1),
    ("project", 2),
    ("leetcode", 3),
    ("sleep", 6),
] + [(keyword, 5) for keyword in MEAL_KEYWORDS]
DEFAULT_TIER = 4


def reduction_tier(name: str) -> int:
    """
    Rank a task by how willingly it gives up time.
    0 = personal (shrunk first) ... 6 = sleep (shrunk last).
    Unmatched names sit in the middle (DEFAULT_TIER).
    """
    name_lower = name.lower()
    for keyword, tier in TIER_KEYWORDS:
        if keyword in name_lower:
            return tier
    return DEFAULT_TIER


def prioritize(tasks: Iterable[Task], excluded_task_id: Optional[int] = None) -> list[Task]:
    """Candidate tasks in reduction order. sorted() is stable, so ties keep input order."""
    candidates = [task for task in tasks if task.id != excluded_task_id]
    return sorted(candidates, key=lambda task: reduction_tier(task.name))


def reducible_slack(task: Task) -> float:
    """Hours the task can lose on the half-hour grid without dropping below the floor."""
    if task.duration <= MIN_DURATION:
        return 0.0
    return max(0.0, math.floor(task.duration * 2) / 2 - MIN_DURATION)


def propose_adjustments(
    tasks: list[Task],
    excluded_task_id: Optional[int],
    overflow_hours: float,
) -> list[AdjustmentProposal]:
    """
    Pick duration reductions that cover overflow_hours.

    Walks the tasks in reduction order and takes as much slack from each as
    is still needed. The task being edited (excluded_task_id) is never
    proposed. If the slack of all other tasks falls short, the proposals
    found so far are returned and the rest of the overflow stays unresolved.

    Does not modify `tasks`; calling it twice with the same input gives the
    same proposals.
    """
    if overflow_hours <= 0:
        return []

    remaining = overflow_hours
    proposals: list[AdjustmentProposal] = []

    for task in prioritize(tasks, excluded_task_id):
        if remaining <= 0:
            break

        max_reduction = min(reducible_slack(task), remaining)
        if max_reduction <= 0:
            continue

        proposals.append(AdjustmentProposal(
            task_id=task.id,
            name=task.name,
            color=task.color,
            old_duration=task.duration,
            new_duration=task.duration - max_reduction,
            selected=True,
        ))
        remaining -= max_reduction

    if remaining > 0:
        logger.info(
            "Overflow of %.1fh only partly covered: %.1fh left unresolved",
            overflow_hours, remaining,
        )
    return proposals


def total_reduction(proposals: Iterable[AdjustmentProposal], selected_only: bool = True) -> float:
    """Hours freed by the proposals (only the selected ones by default)."""
    return sum(p.reduction for p in proposals if p.selected or not selected_only)
