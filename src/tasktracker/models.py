from __future__ import annotations

from datetime import datetime
from typing import Literal, TypedDict

Priority = Literal["low", "medium", "high"]
Category = Literal["work", "personal", "shopping", "health"]
TaskStatus = Literal["completed", "overdue", "due-soon", "scheduled"]

DEFAULT_PRIORITY: Priority = "medium"
DEFAULT_CATEGORY: Category = "personal"


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    A lightweight domain model representing a scheduled task for the storage
    backends.

    Fields:
    - id: Unique integer identifier, stable for the task's lifetime
    - title: Short title (1..200 chars, trimmed on input via schemas)
    - scheduled_date: Timezone-aware datetime at which the task is due
    - priority: One of low/medium/high
    - category: One of work/personal/shopping/health
    - completed: Boolean completion flag
    - created_at: Timezone-aware creation timestamp, never updated
    """

    id: int
    title: str
    scheduled_date: datetime
    priority: Priority
    category: Category
    completed: bool
    created_at: datetime
