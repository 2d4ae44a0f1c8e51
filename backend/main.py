from contextlib import asynccontextmanager
from typing import Literal, Optional
import logging

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import CORS_ORIGINS, LOG_LEVEL, SEED_DEFAULT_TASKS, HOST, PORT
from logging_setup import setup_logging
from models import (
    AdjustmentReview,
    ApplyResult,
    EditOutcome,
    ScheduleEdit,
    ScheduleSummary,
    Task,
    TaskCreate,
    TaskUpdate,
    TimerToggle,
)
from database import (
    init_db,
    initialize_default_tasks,
    get_all_tasks,
    get_task_db,
    create_task_db,
    update_task_db,
    delete_task_db,
    toggle_task_timer_db,
    SqliteTaskStore,
)
from schedule import ScheduleWorkflow
from timeinfo import sort_tasks, summarize

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging(LOG_LEVEL)
    init_db()
    if SEED_DEFAULT_TASKS:
        initialize_default_tasks()
    # Pending adjustment reviews live only for the lifetime of the process
    app.state.workflow = ScheduleWorkflow(SqliteTaskStore())
    logger.info("dayclock ready")
    yield
    # Shutdown (nothing to do)

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"message": "Invalid task data", "errors": errors})


def get_workflow(request: Request) -> ScheduleWorkflow:
    return request.app.state.workflow


def get_pending_review(request: Request) -> AdjustmentReview:
    review = get_workflow(request).review
    if review is None:
        raise HTTPException(status_code=404, detail="No pending adjustment review")
    return review


# Tasks

@app.get("/api/tasks")
def get_tasks(sort: Optional[Literal["time", "duration", "name"]] = None) -> list[Task]:
    tasks = get_all_tasks()
    if sort:
        tasks = sort_tasks(tasks, sort)
    return tasks


@app.get("/api/tasks/{task_id}")
def get_task(task_id: int) -> Task:
    task = get_task_db(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@app.post("/api/tasks", status_code=201)
def create_task(task_data: TaskCreate) -> Task:
    """Create without the 24h check (the schedule workflow endpoints do that)."""
    return create_task_db(
        task_data.name,
        task_data.start_time,
        task_data.duration,
        task_data.color
    )


@app.patch("/api/tasks/{task_id}")
def update_task(task_id: int, task_data: TaskUpdate) -> Task:
    result = update_task_db(task_id, **task_data.model_dump(exclude_none=True))
    if not result:
        raise HTTPException(status_code=404, detail="Task not found")
    return result


@app.delete("/api/tasks/{task_id}", status_code=204)
def delete_task(task_id: int) -> Response:
    if not delete_task_db(task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return Response(status_code=204)


@app.post("/api/tasks/{task_id}/timer")
def toggle_timer(task_id: int, toggle: TimerToggle) -> Task:
    """Start or stop tracking time; starting one timer stops any other."""
    result = toggle_task_timer_db(task_id, toggle.active)
    if not result:
        raise HTTPException(status_code=404, detail="Task not found")
    return result


# Schedule

@app.get("/api/schedule/summary")
def get_summary() -> ScheduleSummary:
    return summarize(get_all_tasks())


@app.post("/api/schedule/edits")
def submit_edit(edit: ScheduleEdit, request: Request) -> EditOutcome:
    """
    Create (no task_id) or edit a task, keeping the day within 24 hours.
    Returns status "committed" with the saved task, or status "review" with
    proposed reductions to other tasks that must be applied or cancelled first.
    """
    outcome = get_workflow(request).submit(edit)
    if outcome.status == "not_found":
        raise HTTPException(status_code=404, detail="Task not found")
    return outcome


@app.get("/api/schedule/review")
def get_review(request: Request) -> AdjustmentReview:
    return get_pending_review(request)


@app.post("/api/schedule/review/proposals/{task_id}/toggle")
def toggle_proposal(task_id: int, request: Request) -> AdjustmentReview:
    review = get_pending_review(request)
    if not review.toggle(task_id):
        raise HTTPException(status_code=404, detail="No proposal for this task")
    return review


@app.post("/api/schedule/review/select-all")
def select_all_proposals(request: Request) -> AdjustmentReview:
    review = get_pending_review(request)
    review.select_all()
    return review


@app.post("/api/schedule/review/apply")
def apply_review(request: Request) -> ApplyResult:
    result = get_workflow(request).apply()
    if result is None:
        raise HTTPException(status_code=404, detail="No pending adjustment review")
    return result


@app.delete("/api/schedule/review")
def cancel_review(request: Request) -> dict:
    if not get_workflow(request).cancel():
        raise HTTPException(status_code=404, detail="No pending adjustment review")
    return {"status": "cancelled"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=HOST, port=PORT)
