from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from threading import RLock
from typing import Iterable, List, Optional

from .models import TaskEntity
from .schemas import TaskCreate, TaskUpdate
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = ("title", "scheduled_date", "priority", "category", "completed")


class RepositoryError(Exception):
    """Raised when the storage backend fails to complete an operation."""


@dataclass(frozen=True)
class ListQuery:
    """
    Query parameters for listing tasks.
    """
    completed: Optional[bool] = None


def sort_by_schedule(items: Iterable[TaskEntity]) -> List[TaskEntity]:
    """Order tasks ascending by scheduled date, ties broken by id."""
    return sorted(items, key=lambda t: (t["scheduled_date"], t["id"]))


def changed_fields(data: TaskUpdate) -> dict:
    """Fields explicitly supplied with a non-null value."""
    return {
        name: getattr(data, name)
        for name in _UPDATABLE_FIELDS
        if name in data.model_fields_set and getattr(data, name) is not None
    }


# PUBLIC_INTERFACE
class Repository(ABC):
    """Abstract repository contract for task storage backends."""

    @abstractmethod
    def create(self, data: TaskCreate) -> TaskEntity:
        """Create and return a new TaskEntity."""

    @abstractmethod
    def get(self, task_id: int) -> Optional[TaskEntity]:
        """Return a TaskEntity by id, or None if not found."""

    @abstractmethod
    def update(self, task_id: int, data: TaskUpdate) -> Optional[TaskEntity]:
        """Update fields of an existing TaskEntity. Return updated entity or None if not found."""

    @abstractmethod
    def delete(self, task_id: int) -> bool:
        """Delete a TaskEntity by id. Return True if deleted, False if not found."""

    @abstractmethod
    def list(self, query: Optional[ListQuery] = None) -> List[TaskEntity]:
        """
        Return tasks sorted ascending by scheduled date.
        - Filter by completed when the query sets it
        """


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: dict[int, TaskEntity] = {}
        self._next_id = 1

    def _now(self) -> datetime:
        return datetime.now().astimezone()

    def _allocate_id(self) -> int:
        with self._lock:
            i = self._next_id
            self._next_id += 1
            return i

    def create(self, data: TaskCreate) -> TaskEntity:
        entity: TaskEntity = {
            "id": self._allocate_id(),
            "title": data.title,
            "scheduled_date": data.scheduled_date,
            "priority": data.priority,
            "category": data.category,
            "completed": False,
            "created_at": self._now(),
        }
        with self._lock:
            self._items[entity["id"]] = entity
        return entity.copy()

    def get(self, task_id: int) -> Optional[TaskEntity]:
        with self._lock:
            item = self._items.get(task_id)
            return None if item is None else item.copy()

    def update(self, task_id: int, data: TaskUpdate) -> Optional[TaskEntity]:
        with self._lock:
            existing = self._items.get(task_id)
            if existing is None:
                return None

            updated = existing.copy()
            updated.update(changed_fields(data))  # type: ignore[typeddict-item]
            self._items[task_id] = updated
            return updated.copy()

    def delete(self, task_id: int) -> bool:
        with self._lock:
            return self._items.pop(task_id, None) is not None

    def list(self, query: Optional[ListQuery] = None) -> List[TaskEntity]:
        q = query or ListQuery()
        with self._lock:
            items: Iterable[TaskEntity] = self._items.values()
            if q.completed is not None:
                items = [t for t in items if t["completed"] == q.completed]
            # Return copies to avoid external mutation
            return [t.copy() for t in sort_by_schedule(items)]


# PUBLIC_INTERFACE
def get_repository(settings: Optional[Settings] = None) -> Repository:
    """
    Factory to return the configured repository based on settings.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository, falling back to memory if the database cannot be opened
    """
    settings = settings or get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository

        try:
            return SQLiteRepository(settings.sqlite_db_path)
        except (RepositoryError, OSError):
            logger.warning(
                "SQLite backend unavailable at %s; falling back to memory",
                settings.sqlite_db_path,
                exc_info=True,
            )
            return InMemoryRepository()
    return InMemoryRepository()
