"""
Edit workflow that keeps the day within 24 hours.

Idle -> overflow check -> commit (fits) or proposal review (overflows).
From review the user toggles proposals, cancels back to manual editing,
or applies: selected reductions are written one by one, then the original
edit is resubmitted and either commits or lands in a fresh review.
"""
import logging
from typing import Iterable, Optional, Protocol

from allocator import propose_adjustments
from models import (
    AdjustmentFailure,
    AdjustmentProposal,
    AdjustmentReview,
    ApplyResult,
    EditOutcome,
    ScheduleEdit,
    Task,
    TaskCreate,
    TaskUpdate,
    DAY_HOURS,
    TASK_COLORS,
)

logger = logging.getLogger(__name__)

# Defaults for a new task when the edit leaves a field out
NEW_TASK_NAME = "New Task"
NEW_TASK_START = 0.0
NEW_TASK_DURATION = 1.0


class TaskStore(Protocol):
    """What the workflow needs from task storage."""

    def list_tasks(self) -> list[Task]: ...

    def get_task(self, task_id: int) -> Optional[Task]: ...

    def create_task(self, data: TaskCreate) -> Task: ...

    def update_task(self, task_id: int, data: TaskUpdate) -> Optional[Task]: ...

    def set_duration(self, task_id: int, duration: float) -> Optional[Task]: ...


def total_duration(tasks: Iterable[Task]) -> float:
    return sum(task.duration for task in tasks)


def requested_duration(edit: ScheduleEdit, existing: Optional[Task]) -> float:
    if edit.duration is not None:
        return edit.duration
    if existing is not None:
        return existing.duration
    return NEW_TASK_DURATION


def overflow_for(tasks: list[Task], edit: ScheduleEdit) -> Optional[float]:
    """
    Hours by which the day would exceed 24h if `edit` were applied as-is.
    Zero or negative means it fits. None if the edit targets an unknown task.
    """
    existing = None
    if not edit.is_create:
        existing = next((task for task in tasks if task.id == edit.task_id), None)
        if existing is None:
            return None

    new_total = total_duration(tasks) + requested_duration(edit, existing)
    if existing is not None:
        new_total -= existing.duration
    return new_total - DAY_HOURS


class ScheduleWorkflow:
    """
    Single-user edit workflow. Holds at most one pending AdjustmentReview;
    it is dropped on cancel, on apply, and whenever a new edit is submitted.
    """

    def __init__(self, store: TaskStore):
        self.store = store
        self.review: Optional[AdjustmentReview] = None

    @property
    def state(self) -> str:
        return "review" if self.review is not None else "idle"

    def submit(self, edit: ScheduleEdit) -> EditOutcome:
        self.review = None
        tasks = self.store.list_tasks()

        overflow = overflow_for(tasks, edit)
        if overflow is None:
            return EditOutcome(status="not_found")

        if overflow <= 0:
            task = self._commit(edit)
            if task is None:
                return EditOutcome(status="not_found")
            return EditOutcome(status="committed", task=task)

        proposals = propose_adjustments(tasks, edit.task_id, overflow)
        logger.info(
            "Edit of task %s overflows the day by %.1fh; proposing %d adjustment(s)",
            edit.task_id if edit.task_id is not None else "<new>", overflow, len(proposals),
        )
        self.review = AdjustmentReview(edit=edit, overflow_hours=overflow, proposals=proposals)
        return EditOutcome(status="review", review=self.review)

    def cancel(self) -> bool:
        """Back to manual editing. Returns False if nothing was pending."""
        if self.review is None:
            return False
        self.review = None
        return True

    def apply(self) -> Optional[ApplyResult]:
        """
        Write the selected proposals, then resubmit the pending edit.
        Returns None if there is no pending review.
        """
        review = self.review
        if review is None:
            return None
        self.review = None

        applied, failed = self.apply_adjustments(review.selected())
        outcome = self.submit(review.edit)
        return ApplyResult(applied=applied, failed=failed, outcome=outcome)

    def apply_adjustments(
        self, proposals: Iterable[AdjustmentProposal]
    ) -> tuple[list[Task], list[AdjustmentFailure]]:
        """
        Write each proposal's new duration independently.
        A failing item is recorded and skipped; the rest are still written.
        """
        applied: list[Task] = []
        failed: list[AdjustmentFailure] = []

        for proposal in proposals:
            try:
                updated = self.store.set_duration(proposal.task_id, proposal.new_duration)
            except Exception as e:
                logger.warning("Adjusting task %s failed: %s", proposal.task_id, e)
                failed.append(AdjustmentFailure(
                    task_id=proposal.task_id,
                    name=proposal.name,
                    reason=str(e) or type(e).__name__,
                ))
                continue

            if updated is None:
                logger.warning("Adjusting task %s skipped: task no longer exists", proposal.task_id)
                failed.append(AdjustmentFailure(
                    task_id=proposal.task_id, name=proposal.name, reason="not_found"
                ))
                continue

            applied.append(updated)

        return applied, failed

    def _commit(self, edit: ScheduleEdit) -> Optional[Task]:
        if edit.is_create:
            return self.store.create_task(TaskCreate(
                name=edit.name or NEW_TASK_NAME,
                start_time=edit.start_time if edit.start_time is not None else NEW_TASK_START,
                duration=edit.duration if edit.duration is not None else NEW_TASK_DURATION,
                color=edit.color or TASK_COLORS[0],
            ))
        changes = edit.model_dump(exclude={"task_id"}, exclude_none=True)
        return self.store.update_task(edit.task_id, TaskUpdate(**changes))
