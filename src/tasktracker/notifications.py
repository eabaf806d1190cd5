"""
Notification scheduler for tasks.

For each incomplete task two alerts are kept pending: a reminder five
minutes before the due time and a due-now alert at the due time. Pending
alerts are tracked per key so that rescheduling, completing or deleting a
task cancels what was queued for it.

Delays are computed once, when a task is scheduled. A wall-clock change
while an alert is pending is not corrected for.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

from .alerts import PERMISSION_DEFAULT, PERMISSION_DENIED, PERMISSION_GRANTED, Alert, NotificationPlatform, TimerQueue
from .utils import local_now

logger = logging.getLogger(__name__)

REMINDER_LEAD = timedelta(minutes=5)
REMINDER_MARKER = "reminder"
REMINDER_AUTO_CLOSE_SECONDS = 10.0
DUE_AUTO_CLOSE_SECONDS = 20.0
TEST_AUTO_CLOSE_SECONDS = 5.0

TONE_FREQUENCY_HZ = 800.0
TONE_DURATION_S = 0.3
TONE_VOLUME = 0.1

ICON = "/favicon.ico"

AlertKey = Union[int, Tuple[int, str]]


def reminder_key(task_id: int) -> AlertKey:
    return (task_id, REMINDER_MARKER)


def _details_line(task: Mapping[str, Any]) -> str:
    return f"Priority: {str(task['priority']).upper()} | Category: {task['category']}"


class NotificationScheduler:
    """
    Schedules reminder and due-now alerts for tasks.

    Owned by one application session. All methods must be called from the
    thread running the timer queue.
    """

    def __init__(
        self,
        platform: NotificationPlatform,
        timers: TimerQueue,
        *,
        clock: Callable[[], datetime] = local_now,
        on_permission_granted: Optional[Callable[[], None]] = None,
    ) -> None:
        self._platform = platform
        self._timers = timers
        self._clock = clock
        self._permission_granted = False
        self._scheduled: Dict[AlertKey, Any] = {}
        self._close_timers: Dict[int, Any] = {}
        self._close_ids = itertools.count(1)
        self._pending_test: Optional[asyncio.Task] = None
        self._on_permission_granted = None
        self._check_permission()
        # Only later grants are reported; the owner schedules its backlog after construction.
        self._on_permission_granted = on_permission_granted

    def _set_permission_granted(self, granted: bool) -> None:
        was_granted = self._permission_granted
        self._permission_granted = granted
        if granted and not was_granted and self._on_permission_granted is not None:
            logger.info("Notification permission granted")
            try:
                self._on_permission_granted()
            except Exception:
                logger.exception("Permission grant handler failed")

    def _check_permission(self) -> None:
        if not self._platform.supported:
            logger.error("Notifications are not supported on this platform")
            self._set_permission_granted(False)
            return

        permission = self._platform.permission
        logger.debug("Notification permission is %s", permission)
        self._set_permission_granted(permission == PERMISSION_GRANTED)
        if permission == PERMISSION_DENIED:
            logger.warning("Notifications are blocked by the user or platform settings")

    # PUBLIC_INTERFACE
    def refresh_permission_status(self) -> bool:
        """Re-read the platform permission and return whether alerts may be shown."""
        self._check_permission()
        return self._permission_granted

    # PUBLIC_INTERFACE
    async def request_permission(self) -> bool:
        """
        Ask for notification permission.

        Granted or denied permissions are answered without prompting; only
        the 'default' state triggers a prompt.
        """
        if not self._platform.supported:
            logger.warning("Notifications are not supported on this platform")
            return False

        permission = self._platform.permission
        if permission == PERMISSION_GRANTED:
            self._set_permission_granted(True)
            return True
        if permission == PERMISSION_DENIED:
            logger.info("Notification permission was denied; not prompting again")
            self._set_permission_granted(False)
            return False

        try:
            outcome = await self._platform.request_permission()
        except Exception:
            logger.exception("Requesting notification permission failed")
            return False

        logger.info("Notification permission prompt returned %s", outcome)
        self._set_permission_granted(outcome == PERMISSION_GRANTED)
        return self._permission_granted

    @property
    def has_permission(self) -> bool:
        return self._permission_granted

    @property
    def permission(self) -> str:
        return self._platform.permission if self._platform.supported else PERMISSION_DENIED

    # PUBLIC_INTERFACE
    def schedule_notification(self, task: Mapping[str, Any]) -> None:
        """
        Queue the reminder and due-now alerts for a task, replacing any that
        are already pending for it.

        Does nothing without permission. Completed and overdue tasks only
        lose their pending alerts.
        """
        if not self._permission_granted:
            return

        task_id = int(task["id"])
        self.clear_notification(task_id)
        if task.get("completed"):
            return

        snapshot = dict(task)
        time_diff = snapshot["scheduled_date"] - self._clock()
        if time_diff < timedelta(0):
            return

        reminder_delay = max(time_diff - REMINDER_LEAD, timedelta(0))
        if reminder_delay > timedelta(0):
            self._scheduled[reminder_key(task_id)] = self._timers.schedule_after(
                reminder_delay.total_seconds(), lambda: self._fire_reminder(snapshot)
            )

        self._scheduled[task_id] = self._timers.schedule_after(
            time_diff.total_seconds(), lambda: self._fire_due(snapshot)
        )
        logger.debug(
            "Scheduled alerts for task %s due in %.0fs (reminder: %s)",
            task_id,
            time_diff.total_seconds(),
            reminder_delay > timedelta(0),
        )

    # PUBLIC_INTERFACE
    def reschedule_pending(self, tasks: Iterable[Mapping[str, Any]]) -> int:
        """Schedule every incomplete task; returns how many were considered."""
        count = 0
        for task in tasks:
            if task.get("completed"):
                continue
            self.schedule_notification(task)
            count += 1
        return count

    def _fire_reminder(self, task: Mapping[str, Any]) -> None:
        self._scheduled.pop(reminder_key(int(task["id"])), None)
        if not self._permission_granted:
            return
        due_at = task["scheduled_date"].astimezone().strftime("%H:%M:%S")
        self._show_alert(
            f"Task Reminder: {task['title']}",
            body=f"Due in 5 minutes at {due_at}\n{_details_line(task)}",
            tag=f"task-{task['id']}-reminder",
            require_interaction=False,
            auto_close_seconds=REMINDER_AUTO_CLOSE_SECONDS,
        )

    def _fire_due(self, task: Mapping[str, Any]) -> None:
        self._scheduled.pop(int(task["id"]), None)
        if not self._permission_granted:
            return
        self._show_alert(
            f"Task Due Now: {task['title']}",
            body=f"Your task is due right now!\n{_details_line(task)}",
            tag=f"task-{task['id']}-due",
            require_interaction=True,
            auto_close_seconds=DUE_AUTO_CLOSE_SECONDS,
        )

    def _show_alert(
        self,
        title: str,
        *,
        body: str,
        tag: str,
        require_interaction: bool,
        auto_close_seconds: float,
    ) -> Optional[Alert]:
        try:
            alert = self._platform.create_alert(
                title,
                body=body,
                icon=ICON,
                tag=tag,
                require_interaction=require_interaction,
                silent=False,
            )
        except Exception:
            logger.exception("Could not show notification %s", tag)
            return None

        alert.on_click = _close_alert
        alert.show()
        self._play_tone()
        self._close_later(alert, auto_close_seconds)
        return alert

    def _close_later(self, alert: Alert, delay_seconds: float) -> None:
        close_id = next(self._close_ids)

        def _close() -> None:
            self._close_timers.pop(close_id, None)
            alert.close()

        self._close_timers[close_id] = self._timers.schedule_after(delay_seconds, _close)

    def _play_tone(self) -> None:
        try:
            self._platform.play_tone(TONE_FREQUENCY_HZ, TONE_DURATION_S, TONE_VOLUME)
        except Exception:
            logger.debug("Audio notification not supported", exc_info=True)

    # PUBLIC_INTERFACE
    def clear_notification(self, task_id: int) -> None:
        """Cancel the due-now and reminder alerts of a task, if any are pending."""
        for key in (task_id, reminder_key(task_id)):
            handle = self._scheduled.pop(key, None)
            if handle is not None:
                self._timers.cancel(handle)

    # PUBLIC_INTERFACE
    def clear_all_notifications(self) -> None:
        """Cancel every pending alert, including auto-close timers."""
        for handle in self._scheduled.values():
            self._timers.cancel(handle)
        self._scheduled.clear()
        for handle in self._close_timers.values():
            self._timers.cancel(handle)
        self._close_timers.clear()
        if self._pending_test is not None and not self._pending_test.done():
            self._pending_test.cancel()
        self._pending_test = None

    def get_scheduled_notification_count(self) -> int:
        return len(self._scheduled)

    def is_task_scheduled(self, task_id: int) -> bool:
        return task_id in self._scheduled or reminder_key(task_id) in self._scheduled

    # PUBLIC_INTERFACE
    def test_desktop_notification(self) -> bool:
        """
        Show a test alert right away.

        With permission still undecided this starts one permission request on
        the running event loop, returns False, and repeats the test once the
        request is granted. A denied permission is reported without prompting.
        """
        if not self._platform.supported:
            logger.error("Notifications are not supported on this platform")
            return False

        permission = self._platform.permission
        if permission == PERMISSION_DENIED:
            logger.warning("Notifications are blocked; enable them in the platform settings")
            self._set_permission_granted(False)
            return False

        if permission == PERMISSION_DEFAULT:
            self._start_test_permission_request()
            return False

        alert = self._show_alert(
            "Desktop Notification Test",
            body="Your desktop notifications are working.\nYou'll receive alerts for your scheduled tasks.",
            tag="test-notification",
            require_interaction=False,
            auto_close_seconds=TEST_AUTO_CLOSE_SECONDS,
        )
        if alert is None:
            return False

        alert.on_error = lambda a: logger.error("Notification %s failed to show", a.tag)
        alert.on_close = lambda a: logger.debug("Notification %s closed", a.tag)
        self._set_permission_granted(True)
        logger.info("Test notification sent")
        return True

    def _start_test_permission_request(self) -> None:
        if self._pending_test is not None and not self._pending_test.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; cannot request notification permission")
            return
        logger.info("Requesting notification permission for the test alert")
        self._pending_test = loop.create_task(self._request_then_test())

    async def _request_then_test(self) -> None:
        if await self.request_permission():
            self.test_desktop_notification()
        else:
            logger.warning("Notification permission not granted; test alert skipped")


def _close_alert(alert: Alert) -> None:
    alert.close()
