from pydantic import AfterValidator, BaseModel, Field, computed_field
from typing import Annotated, Literal, Optional

# Palette offered by the task editor; order matters (first entry is the default)
TASK_COLORS = (
    "#8B5CF6",  # purple
    "#EC4899",  # pink
    "#6366F1",  # indigo
    "#F59E0B",  # amber
    "#10B981",  # green
    "#EF4444",  # red
    "#9CA3AF",  # gray
)

DAY_HOURS = 24.0
MIN_DURATION = 0.5
DURATION_STEP = 0.5

StartTime = Annotated[float, Field(ge=0, lt=DAY_HOURS)]  # hours from midnight
Duration = Annotated[float, Field(ge=MIN_DURATION, le=DAY_HOURS, multiple_of=DURATION_STEP)]


def _check_color(color: str) -> str:
    if color not in TASK_COLORS:
        raise ValueError("Invalid color selection")
    return color


Color = Annotated[str, AfterValidator(_check_color)]


class Task(BaseModel):
    id: int
    name: str
    start_time: float
    duration: float
    color: str
    is_timer_active: bool = False
    timer_started_at: Optional[float] = None  # epoch milliseconds while the timer runs

class TaskCreate(BaseModel):
    name: str = Field(min_length=1)
    start_time: StartTime
    duration: Duration
    color: Color = TASK_COLORS[0]

class TaskUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    start_time: Optional[StartTime] = None
    duration: Optional[Duration] = None
    color: Optional[Color] = None

class TimerToggle(BaseModel):
    active: bool

class ScheduleEdit(BaseModel):
    """
    A pending create (task_id is None) or edit submitted through the
    overflow-checking workflow. Missing fields keep the task's current
    values when editing and fall back to new-task defaults when creating.
    """
    task_id: Optional[int] = None
    name: Optional[str] = Field(default=None, min_length=1)
    start_time: Optional[StartTime] = None
    duration: Optional[Duration] = None
    color: Optional[Color] = None

    @property
    def is_create(self) -> bool:
        return self.task_id is None


class AdjustmentProposal(BaseModel):
    task_id: int
    name: str
    color: str
    old_duration: float
    new_duration: float
    selected: bool = True

    @property
    def reduction(self) -> float:
        return self.old_duration - self.new_duration


class AdjustmentReview(BaseModel):
    """Proposals awaiting the user's decision for one overflowing edit."""
    edit: ScheduleEdit
    overflow_hours: float
    proposals: list[AdjustmentProposal] = []

    def toggle(self, task_id: int) -> bool:
        """Flip one proposal's selection. Returns False if no proposal targets task_id."""
        for proposal in self.proposals:
            if proposal.task_id == task_id:
                proposal.selected = not proposal.selected
                return True
        return False

    def select_all(self) -> None:
        for proposal in self.proposals:
            proposal.selected = True

    def selected(self) -> list[AdjustmentProposal]:
        return [p for p in self.proposals if p.selected]

    @computed_field
    @property
    def selected_reduction(self) -> float:
        return sum(p.reduction for p in self.selected())

    @computed_field
    @property
    def unresolved_hours(self) -> float:
        # > 0 means applying only the selected proposals leaves the day over budget
        return max(0.0, self.overflow_hours - self.selected_reduction)


class AdjustmentFailure(BaseModel):
    task_id: int
    name: str
    reason: str

class EditOutcome(BaseModel):
    status: Literal["committed", "review", "not_found"]
    task: Optional[Task] = None
    review: Optional[AdjustmentReview] = None

class ApplyResult(BaseModel):
    applied: list[Task] = []
    failed: list[AdjustmentFailure] = []
    outcome: EditOutcome


class BreakdownEntry(BaseModel):
    name: str
    color: str
    duration: float
    percent: float

class TaskOverlap(BaseModel):
    first_id: int
    second_id: int

class TimerStatus(BaseModel):
    task_id: int
    elapsed_minutes: int
    progress_percent: float

class ScheduleSummary(BaseModel):
    total_hours: float
    remaining_hours: float
    is_balanced: bool
    progress_percent: int
    breakdown: list[BreakdownEntry]
    overlaps: list[TaskOverlap]
    active_timer: Optional[TimerStatus] = None
