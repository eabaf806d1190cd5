from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..alerts import InAppPlatform
from ..notifications import NotificationScheduler
from ..repositories import ListQuery, Repository, RepositoryError
from ..schemas import AlertOut, Inbox, NotificationStatus, NotificationTestResult, PermissionChange

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/notifications",
    tags=["notifications"],
)


def _get_scheduler(request: Request) -> NotificationScheduler:
    return request.app.state.scheduler


def _get_platform(request: Request) -> InAppPlatform:
    return request.app.state.platform


def _status(scheduler: NotificationScheduler) -> NotificationStatus:
    return NotificationStatus(
        permission=scheduler.permission,
        has_permission=scheduler.has_permission,
        scheduled_count=scheduler.get_scheduled_notification_count(),
    )


def schedule_pending_tasks(scheduler: NotificationScheduler, repo: Repository) -> int:
    """Queue alerts for every incomplete task in the store; returns how many were considered."""
    try:
        pending = repo.list(ListQuery(completed=False))
    except RepositoryError:
        logger.exception("Could not load pending tasks for alert scheduling")
        return 0
    count = scheduler.reschedule_pending(pending)
    logger.info("Scheduled alerts for %d pending task(s)", count)
    return count


# PUBLIC_INTERFACE
@router.get(
    "/status",
    response_model=NotificationStatus,
    summary="Notification Status",
    description="Re-read the platform permission and report it with the number of pending alerts.",
)
async def get_status(scheduler: NotificationScheduler = Depends(_get_scheduler)) -> NotificationStatus:
    scheduler.refresh_permission_status()
    return _status(scheduler)


# PUBLIC_INTERFACE
@router.post(
    "/permission",
    response_model=NotificationStatus,
    summary="Request Permission",
    description=(
        "Ask for notification permission. Only an undecided permission prompts; once granted, "
        "alerts are scheduled for every pending task."
    ),
)
async def request_permission(
    scheduler: NotificationScheduler = Depends(_get_scheduler),
) -> NotificationStatus:
    if not scheduler.refresh_permission_status():
        await scheduler.request_permission()
    return _status(scheduler)


# PUBLIC_INTERFACE
@router.put(
    "/permission",
    response_model=NotificationStatus,
    summary="Set Permission",
    description=(
        "Change the platform permission out of band, as a user would in their settings. "
        "Granting schedules alerts for pending tasks; revoking cancels all pending alerts."
    ),
)
async def set_permission(
    payload: PermissionChange,
    scheduler: NotificationScheduler = Depends(_get_scheduler),
    platform: InAppPlatform = Depends(_get_platform),
) -> NotificationStatus:
    if not isinstance(platform, InAppPlatform):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Permission is managed by the notification platform",
        )
    was_granted = scheduler.has_permission
    platform.set_permission(payload.permission)
    if not scheduler.refresh_permission_status() and was_granted:
        scheduler.clear_all_notifications()
    return _status(scheduler)


# PUBLIC_INTERFACE
@router.post(
    "/test",
    response_model=NotificationTestResult,
    summary="Test Notification",
    description="Show a test alert now, prompting for permission first if it is undecided.",
)
async def test_notification(
    scheduler: NotificationScheduler = Depends(_get_scheduler),
) -> NotificationTestResult:
    return NotificationTestResult(success=scheduler.test_desktop_notification())


# PUBLIC_INTERFACE
@router.get(
    "/inbox",
    response_model=Inbox,
    summary="Delivered Alerts",
    description="Recently delivered alerts, oldest first.",
)
async def get_inbox(platform: InAppPlatform = Depends(_get_platform)) -> Inbox:
    if not isinstance(platform, InAppPlatform):
        return Inbox(items=[])
    return Inbox(
        items=[
            AlertOut(
                title=a.title,
                body=a.body,
                tag=a.tag,
                require_interaction=a.require_interaction,
                closed=a.closed,
                created_at=a.created_at,
            )
            for a in platform.inbox()
        ]
    )
