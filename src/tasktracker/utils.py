from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional

from .models import TaskEntity, TaskStatus

DUE_SOON_WINDOW = timedelta(hours=2)


def local_now() -> datetime:
    """Current time as an aware datetime."""
    return datetime.now().astimezone()


# PUBLIC_INTERFACE
def task_status(task: TaskEntity, now: Optional[datetime] = None) -> TaskStatus:
    """
    Derive the display status of a task.

    - completed: the task is done
    - overdue: scheduled in the past and not done
    - due-soon: due within the next two hours
    - scheduled: anything later
    """
    if task["completed"]:
        return "completed"
    current = now or local_now()
    time_diff = task["scheduled_date"] - current
    if time_diff < timedelta(0):
        return "overdue"
    if time_diff < DUE_SOON_WINDOW:
        return "due-soon"
    return "scheduled"


# PUBLIC_INTERFACE
def task_summary(tasks: Iterable[TaskEntity], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Build the counters shown above the task list.

    Returns:
        Dict with keys: total, completed, pending, overdue, completion_percentage.
    """
    current = now or local_now()
    materialized = list(tasks)
    total = len(materialized)
    completed = sum(1 for t in materialized if t["completed"])
    overdue = sum(1 for t in materialized if not t["completed"] and t["scheduled_date"] < current)
    return {
        "total": total,
        "completed": completed,
        "pending": total - completed,
        "overdue": overdue,
        "completion_percentage": round(completed / total * 100) if total else 0,
    }
