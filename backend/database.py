import logging
import sqlite3
import threading
import time
from typing import Optional
from contextlib import contextmanager

from config import DATABASE_PATH
from models import Task, TaskCreate, TaskUpdate

logger = logging.getLogger(__name__)

# Serialises multi-statement writes (timer toggle) across FastAPI's threadpool
_write_lock = threading.Lock()

# Columns a regular update may touch. Timer columns only change via toggle_task_timer_db.
UPDATABLE_FIELDS = ("name", "start_time", "duration", "color")

DEFAULT_TASKS = [
    {"name": "Sleeping", "start_time": 22, "duration": 8, "color": "#8B5CF6"},
    {"name": "Breakfast", "start_time": 6, "duration": 0.5, "color": "#F59E0B"},
    {"name": "Job Applications", "start_time": 6.5, "duration": 3, "color": "#EC4899"},
    {"name": "Leetcode", "start_time": 9.5, "duration": 2, "color": "#6366F1"},
    {"name": "Lunch", "start_time": 11.5, "duration": 1, "color": "#F59E0B"},
    {"name": "Project Work", "start_time": 12.5, "duration": 4, "color": "#10B981"},
    {"name": "Exercise", "start_time": 16.5, "duration": 1, "color": "#EF4444"},
    {"name": "Dinner", "start_time": 17.5, "duration": 1, "color": "#F59E0B"},
    {"name": "Personal Time", "start_time": 18.5, "duration": 3.5, "color": "#9CA3AF"},
]

@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()

def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess
    import os

    # Run alembic upgrade from the backend directory
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=backend_dir,
        check=True
    )

def _row_to_task(row) -> Task:
    """Convert a database row to a Task model."""
    started = row["timer_started_at"]
    return Task(
        id=row["id"],
        name=row["name"],
        start_time=float(row["start_time"]),
        duration=float(row["duration"]),
        color=row["color"],
        is_timer_active=bool(row["is_timer_active"]),
        timer_started_at=float(started) if started is not None else None,
    )


def get_all_tasks() -> list[Task]:
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM tasks ORDER BY id").fetchall()
        return [_row_to_task(row) for row in rows]

def get_task_db(task_id: int) -> Optional[Task]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(row) if row else None

def count_tasks() -> int:
    with get_db() as conn:
        return conn.execute("SELECT COUNT(*) FROM tasks").fetchone()[0]

def create_task_db(name: str, start_time: float, duration: float, color: str) -> Task:
    """Insert a task; the id is assigned by SQLite. Timers start inactive."""
    with get_db() as conn:
        cursor = conn.execute(
            """INSERT INTO tasks (name, start_time, duration, color, is_timer_active, timer_started_at)
               VALUES (?, ?, ?, ?, 0, NULL)""",
            (name, float(start_time), float(duration), color)
        )
        conn.commit()
        task_id = cursor.lastrowid

    return Task(
        id=task_id,
        name=name,
        start_time=float(start_time),
        duration=float(duration),
        color=color,
    )

def update_task_db(task_id: int, **updates) -> Optional[Task]:
    """
    Update a task with any fields provided.
    Only updates fields that differ from current values.

    Args:
        task_id: Task ID to update
        **updates: Field names and values to update (name, start_time, duration, color).
                   None values and unknown fields are ignored.
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if not row:
            return None

        changes = {}
        for field, new_value in updates.items():
            if field not in UPDATABLE_FIELDS or new_value is None:
                continue
            if new_value != row[field]:
                changes[field] = new_value

        if changes:
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            values = list(changes.values()) + [task_id]
            conn.execute(f"UPDATE tasks SET {set_clause} WHERE id = ?", values)
            conn.commit()

        # Return updated task (re-fetch to get current state)
        updated_row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(updated_row)

def set_duration_db(task_id: int, duration: float) -> Optional[Task]:
    """Persist a new duration for one task. Returns None if the task does not exist."""
    return update_task_db(task_id, duration=float(duration))

def delete_task_db(task_id: int) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        conn.commit()
        return cursor.rowcount > 0

def toggle_task_timer_db(task_id: int, active: bool, now_ms: Optional[float] = None) -> Optional[Task]:
    """
    Start or stop the elapsed-time timer of a task.
    Starting a timer stops every other running timer in the same transaction,
    so at most one task is ever being timed.
    """
    if now_ms is None:
        now_ms = time.time() * 1000

    with _write_lock, get_db() as conn:
        row = conn.execute("SELECT id FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if not row:
            return None

        if active:
            conn.execute(
                "UPDATE tasks SET is_timer_active = 0, timer_started_at = NULL WHERE is_timer_active = 1"
            )
        conn.execute(
            "UPDATE tasks SET is_timer_active = ?, timer_started_at = ? WHERE id = ?",
            (int(active), now_ms if active else None, task_id)
        )
        conn.commit()

        updated_row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(updated_row)

def initialize_default_tasks() -> int:
    """
    Seed the default day (exactly 24h) when the table is empty.
    Returns the number of tasks inserted.
    """
    if count_tasks() > 0:
        return 0
    for task in DEFAULT_TASKS:
        create_task_db(**task)
    logger.info("Seeded %d default tasks", len(DEFAULT_TASKS))
    return len(DEFAULT_TASKS)


class SqliteTaskStore:
    """Task store backed by the module-level SQLite functions."""

    def list_tasks(self) -> list[Task]:
        return get_all_tasks()

    def get_task(self, task_id: int) -> Optional[Task]:
        return get_task_db(task_id)

    def create_task(self, data: TaskCreate) -> Task:
        return create_task_db(data.name, data.start_time, data.duration, data.color)

    def update_task(self, task_id: int, data: TaskUpdate) -> Optional[Task]:
        return update_task_db(task_id, **data.model_dump(exclude_none=True))

    def set_duration(self, task_id: int, duration: float) -> Optional[Task]:
        return set_duration_db(task_id, duration)
