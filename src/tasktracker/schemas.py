from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import DEFAULT_CATEGORY, DEFAULT_PRIORITY, Category, Priority, TaskStatus

# Shared type for incoming scheduled dates which can be a date, datetime, or ISO8601 string
ScheduledDateInput = Union[date, datetime, str]


def _as_local_aware(value: datetime) -> datetime:
    """Naive datetimes are taken to be in the server's local timezone."""
    if value.tzinfo is None or value.utcoffset() is None:
        return value.astimezone()
    return value


def _parse_scheduled_date(value: Optional[ScheduledDateInput]) -> Optional[datetime]:
    """
    Internal helper to normalize scheduled date input into an aware datetime.
    - If value is a string, attempt to parse via datetime.fromisoformat; if time is missing, set to 00:00.
    - If value is a date (not datetime), convert to datetime at 00:00.
    - Naive results are interpreted in local time.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return _as_local_aware(value)

    if isinstance(value, date):
        # Promote a date to a datetime at midnight
        return _as_local_aware(datetime(value.year, value.month, value.day, 0, 0, 0))

    if isinstance(value, str):
        s = value.strip()
        try:
            return _as_local_aware(datetime.fromisoformat(s))
        except ValueError:
            try:
                d = date.fromisoformat(s)
                return _as_local_aware(datetime(d.year, d.month, d.day, 0, 0, 0))
            except ValueError as e:
                raise ValueError(
                    "Invalid scheduledDate format. Use ISO8601 date or datetime string "
                    "(e.g., '2025-01-31' or '2025-01-31T13:45:00+02:00')."
                ) from e

    raise ValueError("Invalid type for scheduledDate; expected date, datetime, or ISO8601 string.")


def _clean_title(v: str) -> str:
    s = v.strip()
    if not (1 <= len(s) <= 200):
        raise ValueError("title length must be between 1 and 200 characters")
    return s


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# PUBLIC_INTERFACE
class TaskCreate(_CamelModel):
    """
    Schema for creating a new task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Team standup",
                "scheduledDate": "2025-02-01T09:30:00+01:00",
                "priority": "high",
                "category": "work",
            }
        },
    )

    title: str = Field(..., description="Short title for the task")
    scheduled_date: datetime = Field(
        ..., description="When the task is due. Accepts ISO8601 date or datetime; dates are set to 00:00"
    )
    priority: Priority = Field(default=DEFAULT_PRIORITY, description="Task priority")
    category: Category = Field(default=DEFAULT_CATEGORY, description="Task category")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        return _clean_title(v)

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def parse_scheduled_date(cls, v: Optional[ScheduledDateInput]) -> Optional[datetime]:
        return _parse_scheduled_date(v)


# PUBLIC_INTERFACE
class TaskUpdate(_CamelModel):
    """
    Schema for updating an existing task.
    All fields are optional; only provided, non-null fields will be updated.
    """

    model_config = ConfigDict(
        json_schema_extra={"example": {"completed": True}},
    )

    title: Optional[str] = Field(default=None, description="Short title for the task")
    scheduled_date: Optional[datetime] = Field(default=None, description="When the task is due")
    priority: Optional[Priority] = Field(default=None, description="Task priority")
    category: Optional[Category] = Field(default=None, description="Task category")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _clean_title(v)

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def parse_scheduled_date(cls, v: Optional[ScheduledDateInput]) -> Optional[datetime]:
        return _parse_scheduled_date(v)


# PUBLIC_INTERFACE
class TaskOut(_CamelModel):
    """
    Schema returned by the API for a task.
    """

    id: int = Field(..., description="Unique identifier of the task")
    title: str = Field(..., description="Short title for the task")
    scheduled_date: datetime = Field(..., description="When the task is due, as an ISO8601 datetime")
    priority: Priority = Field(..., description="Task priority")
    category: Category = Field(..., description="Task category")
    completed: bool = Field(..., description="Completion status flag")
    created_at: datetime = Field(..., description="Creation timestamp")
    status: TaskStatus = Field(..., description="Derived status: completed, overdue, due-soon or scheduled")


class TaskSummary(_CamelModel):
    total: int
    completed: int
    pending: int
    overdue: int
    completion_percentage: int


class NotificationStatus(_CamelModel):
    permission: str = Field(..., description="Platform permission: default, granted or denied")
    has_permission: bool = Field(..., description="Whether alerts will be scheduled")
    scheduled_count: int = Field(..., description="Number of pending alerts")


class PermissionChange(_CamelModel):
    permission: str = Field(..., pattern="^(default|granted|denied)$")


class NotificationTestResult(_CamelModel):
    success: bool


class AlertOut(_CamelModel):
    title: str
    body: str
    tag: str
    require_interaction: bool
    closed: bool
    created_at: datetime


class Inbox(_CamelModel):
    items: List[AlertOut]
