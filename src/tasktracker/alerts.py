"""
Capabilities the notification scheduler is built on.

The scheduler never touches an event loop or a notification surface
directly. It is handed a ``NotificationPlatform`` (permission model plus
alert construction plus audible tone) and a ``TimerQueue`` (one-shot delayed
callbacks), so the same logic runs against the in-app platform and the
asyncio loop in production and against fakes in tests.
"""
from __future__ import annotations

import asyncio
import logging
import sys
from collections import deque
from datetime import datetime
from typing import Any, Callable, Deque, List, Optional, Protocol, TextIO, runtime_checkable

logger = logging.getLogger(__name__)

PERMISSION_DEFAULT = "default"
PERMISSION_GRANTED = "granted"
PERMISSION_DENIED = "denied"
PERMISSION_STATES = (PERMISSION_DEFAULT, PERMISSION_GRANTED, PERMISSION_DENIED)

AlertCallback = Callable[["Alert"], None]


class Alert:
    """
    A user-visible notification.

    Mirrors the desktop notification object: ``on_show``, ``on_click``,
    ``on_error`` and ``on_close`` slots may be assigned after construction.
    Closing is idempotent.
    """

    def __init__(
        self,
        title: str,
        *,
        body: str = "",
        icon: Optional[str] = None,
        tag: str = "",
        require_interaction: bool = False,
        silent: bool = False,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.title = title
        self.body = body
        self.icon = icon
        self.tag = tag
        self.require_interaction = require_interaction
        self.silent = silent
        self.created_at = created_at or datetime.now().astimezone()
        self.shown = False
        self.closed = False
        self.on_show: Optional[AlertCallback] = None
        self.on_click: Optional[AlertCallback] = None
        self.on_error: Optional[AlertCallback] = None
        self.on_close: Optional[AlertCallback] = None

    def show(self) -> None:
        if self.shown:
            return
        self.shown = True
        if self.on_show is not None:
            self.on_show(self)

    def click(self) -> None:
        if self.on_click is not None:
            self.on_click(self)

    def fail(self) -> None:
        if self.on_error is not None:
            self.on_error(self)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.on_close is not None:
            self.on_close(self)

    def __repr__(self) -> str:
        return f"Alert(tag={self.tag!r}, title={self.title!r}, closed={self.closed})"


@runtime_checkable
class NotificationPlatform(Protocol):
    """Permission model and alert surface the scheduler drives."""

    @property
    def supported(self) -> bool:
        """False when the platform cannot show notifications at all."""
        ...

    @property
    def permission(self) -> str:
        """Current permission: 'default', 'granted' or 'denied'."""
        ...

    async def request_permission(self) -> str:
        """Prompt the user once and return the resulting permission."""
        ...

    def create_alert(
        self,
        title: str,
        *,
        body: str,
        icon: Optional[str],
        tag: str,
        require_interaction: bool,
        silent: bool,
    ) -> Alert:
        """Construct and deliver an alert. May raise."""
        ...

    def play_tone(self, frequency_hz: float, duration_s: float, volume: float) -> None:
        """Emit a short audible tone. May raise."""
        ...


@runtime_checkable
class TimerQueue(Protocol):
    """One-shot delayed callbacks on a single event queue."""

    def schedule_after(self, delay_seconds: float, callback: Callable[[], None]) -> Any:
        ...

    def cancel(self, handle: Any) -> None:
        ...


class AsyncioTimerQueue:
    """
    TimerQueue backed by ``loop.call_later``.

    All callbacks run on the loop thread, so cancelling a handle before it
    fires guarantees the callback never runs.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule_after(self, delay_seconds: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._get_loop().call_later(max(delay_seconds, 0.0), callback)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()


class InAppPlatform:
    """
    Notification platform for the HTTP application.

    The permission value is owned here, the way a browser owns it: the
    scheduler only reads it, and ``set_permission`` stands in for the user
    changing it in their settings. Delivered alerts are logged and kept in a
    bounded inbox that clients poll.
    """

    def __init__(
        self,
        permission: str = PERMISSION_DEFAULT,
        *,
        prompt_response: str = PERMISSION_GRANTED,
        sound: bool = False,
        inbox_size: int = 50,
        stream: Optional[TextIO] = None,
    ) -> None:
        self._permission = _check_permission(permission)
        self._prompt_response = _check_permission(prompt_response)
        self._sound = sound
        self._inbox: Deque[Alert] = deque(maxlen=max(inbox_size, 1))
        self._stream = stream

    @property
    def supported(self) -> bool:
        return True

    @property
    def permission(self) -> str:
        return self._permission

    def set_permission(self, permission: str) -> None:
        self._permission = _check_permission(permission)
        logger.info("Notification permission set to %s", self._permission)

    async def request_permission(self) -> str:
        if self._permission == PERMISSION_DEFAULT:
            self._permission = self._prompt_response
            logger.info("Notification permission prompt answered: %s", self._permission)
        return self._permission

    def create_alert(
        self,
        title: str,
        *,
        body: str,
        icon: Optional[str] = None,
        tag: str = "",
        require_interaction: bool = False,
        silent: bool = False,
    ) -> Alert:
        if self._permission != PERMISSION_GRANTED:
            raise PermissionError(f"notification permission is {self._permission}")
        alert = Alert(
            title,
            body=body,
            icon=icon,
            tag=tag,
            require_interaction=require_interaction,
            silent=silent,
        )
        # Same-tag alerts replace one another, as on desktop platforms.
        if tag:
            for previous in [a for a in self._inbox if a.tag == tag]:
                self._inbox.remove(previous)
                previous.close()
        self._inbox.append(alert)
        logger.info("Notification: %s | %s", title, body.replace("\n", " | "))
        return alert

    def play_tone(self, frequency_hz: float, duration_s: float, volume: float) -> None:
        if not self._sound:
            return
        stream = self._stream or sys.stderr
        stream.write("\a")
        stream.flush()
        logger.debug("Tone %.0f Hz for %.1fs at volume %.2f", frequency_hz, duration_s, volume)

    def inbox(self) -> List[Alert]:
        return list(self._inbox)


def _check_permission(value: str) -> str:
    if value not in PERMISSION_STATES:
        raise ValueError(f"unknown notification permission: {value!r}")
    return value
