from __future__ import annotations

import logging
from typing import List, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.concurrency import run_in_threadpool

from ..models import TaskEntity
from ..notifications import NotificationScheduler
from ..repositories import ListQuery, Repository, RepositoryError
from ..schemas import TaskCreate, TaskOut, TaskSummary, TaskUpdate
from ..utils import local_now, task_status, task_summary

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/tasks",
    tags=["tasks"],
)

_STATUS_FILTERS = {"all": None, "pending": False, "completed": True}


def _get_repo(request: Request) -> Repository:
    """
    Dependency returning the repository owned by the running application.
    """
    return request.app.state.repository


def _get_scheduler(request: Request) -> NotificationScheduler:
    return request.app.state.scheduler


def _to_out(entity: TaskEntity) -> TaskOut:
    return TaskOut(**entity, status=task_status(entity, local_now()))


def _store_failure(action: str) -> HTTPException:
    logger.exception("Task store failed to %s", action)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to {action}")


def sync_task_alerts(scheduler: NotificationScheduler, task: TaskEntity, *, removed: bool = False) -> None:
    """
    Bring the pending alerts of one task in line with its stored state.

    Alert bookkeeping never decides the outcome of a task operation, so
    failures are only logged.
    """
    try:
        if removed or task["completed"]:
            scheduler.clear_notification(task["id"])
        else:
            scheduler.schedule_notification(task)
    except Exception:
        logger.exception("Updating alerts for task %s failed", task["id"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TaskOut],
    summary="List Tasks",
    description=(
        "List tasks sorted ascending by scheduled date.\n\n"
        "Query parameters:\n"
        "- status: all (default), pending or completed"
    ),
    responses={
        200: {"description": "List retrieved successfully"},
        500: {"description": "Task store failure"},
    },
)
async def list_tasks(
    status_filter: Literal["all", "pending", "completed"] = Query(
        "all", alias="status", description="Filter by completion status"
    ),
    repo: Repository = Depends(_get_repo),
) -> List[TaskOut]:
    try:
        items = await run_in_threadpool(repo.list, ListQuery(completed=_STATUS_FILTERS[status_filter]))
    except RepositoryError:
        raise _store_failure("fetch tasks")
    return [_to_out(it) for it in items]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a new task, schedule its alerts, and return the created resource.",
    responses={
        201: {"description": "Task created successfully"},
        400: {"description": "Validation error"},
        500: {"description": "Task store failure"},
    },
)
async def create_task(
    payload: TaskCreate,
    repo: Repository = Depends(_get_repo),
    scheduler: NotificationScheduler = Depends(_get_scheduler),
) -> TaskOut:
    try:
        created = await run_in_threadpool(repo.create, payload)
    except RepositoryError:
        raise _store_failure("create task")
    logger.info("Created task %s due %s", created["id"], created["scheduled_date"].isoformat())
    sync_task_alerts(scheduler, created)
    return _to_out(created)


# PUBLIC_INTERFACE
@router.get(
    "/summary",
    response_model=TaskSummary,
    summary="Task Summary",
    description="Counts of total, completed, pending and overdue tasks plus the completion percentage.",
)
async def get_summary(repo: Repository = Depends(_get_repo)) -> TaskSummary:
    try:
        items = await run_in_threadpool(repo.list)
    except RepositoryError:
        raise _store_failure("fetch tasks")
    return TaskSummary(**task_summary(items))


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    description="Get a single task by ID.",
    responses={
        200: {"description": "Task found"},
        404: {"description": "Task not found"},
    },
)
async def get_task(task_id: int, repo: Repository = Depends(_get_repo)) -> TaskOut:
    try:
        item = await run_in_threadpool(repo.get, task_id)
    except RepositoryError:
        raise _store_failure("fetch task")
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return _to_out(item)


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update Task",
    description=(
        "Partially update fields of a task. Completing a task cancels its pending alerts; "
        "reopening or rescheduling it queues them again."
    ),
    responses={
        200: {"description": "Task updated"},
        400: {"description": "Validation error"},
        404: {"description": "Task not found"},
    },
)
async def update_task(
    task_id: int,
    payload: TaskUpdate,
    repo: Repository = Depends(_get_repo),
    scheduler: NotificationScheduler = Depends(_get_scheduler),
) -> TaskOut:
    try:
        updated = await run_in_threadpool(repo.update, task_id, payload)
    except RepositoryError:
        raise _store_failure("update task")
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    sync_task_alerts(scheduler, updated)
    return _to_out(updated)


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Task",
    description="Delete a task by ID and cancel its pending alerts.",
    responses={
        204: {"description": "Task deleted"},
        404: {"description": "Task not found"},
    },
)
async def delete_task(
    task_id: int,
    repo: Repository = Depends(_get_repo),
    scheduler: NotificationScheduler = Depends(_get_scheduler),
) -> Response:
    try:
        ok = await run_in_threadpool(repo.delete, task_id)
    except RepositoryError:
        raise _store_failure("delete task")
    if not ok:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    sync_task_alerts(scheduler, {"id": task_id}, removed=True)  # type: ignore[typeddict-item]
    return Response(status_code=status.HTTP_204_NO_CONTENT)
