"""
Reminder scheduling.

The scheduler keeps exactly one pending timer per active target. It does not
diff: every change to the collection cancels all timers and schedules them
again from scratch. Delivery is best effort, so a failing notifier is logged
and never allowed to break the scheduler or other timers.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from functools import partial
from typing import Callable, Dict, Optional, Protocol, Sequence

from .models import TargetEntity, is_active
from .settings import Settings, get_settings
from .window import Clock

logger = logging.getLogger(__name__)
reminder_logger = logging.getLogger("target_locker.reminders")

DUE_TITLE = "Target due"
COMPLETED_TITLE = "Completed!"
COMPLETED_BODY = "Great job completing your target."


class PermissionState(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    DEFAULT = "default"


# PUBLIC_INTERFACE
class NotificationCapability(Protocol):
    """Something that can show a reminder to the user once permission is granted."""

    @property
    def permission(self) -> PermissionState:
        ...

    def request_permission(self) -> PermissionState:
        ...

    def notify(self, title: str, body: str) -> None:
        ...


class LoggingNotifier:
    """Always-granted capability that writes reminders to the reminders logger."""

    name = "log"
    permission = PermissionState.GRANTED

    def request_permission(self) -> PermissionState:
        return self.permission

    def notify(self, title: str, body: str) -> None:
        reminder_logger.info("%s: %s", title, body)


class DisabledNotifier:
    """Capability for environments where reminders are switched off."""

    name = "off"
    permission = PermissionState.DENIED

    def request_permission(self) -> PermissionState:
        return self.permission

    def notify(self, title: str, body: str) -> None:
        raise RuntimeError("notifications are disabled")


def get_notifier(settings: Optional[Settings] = None):
    settings = settings or get_settings()
    if settings.notifications == "off":
        return DisabledNotifier()
    return LoggingNotifier()


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


class LoopTimers:
    """Timer factory backed by the running asyncio loop's call_later."""

    def __call__(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


def resolve_permission(capability: NotificationCapability) -> PermissionState:
    """
    Return the capability's permission, asking once when undecided.
    A failed request counts as denied.
    """
    current = capability.permission
    if current != PermissionState.DEFAULT:
        return current
    try:
        return PermissionState(capability.request_permission())
    except Exception:
        logger.warning("Notification permission request failed", exc_info=True)
        return PermissionState.DENIED


# PUBLIC_INTERFACE
class ReminderScheduler:
    """Derives one-shot reminder timers from the target collection."""

    def __init__(
        self,
        capability: NotificationCapability,
        clock: Clock,
        timers: Optional[TimerFactory] = None,
    ) -> None:
        self._capability = capability
        self._clock = clock
        self._timers: TimerFactory = timers or LoopTimers()
        self._pending: Dict[str, TimerHandle] = {}

    @property
    def pending(self) -> int:
        """Reminders scheduled and not yet fired or cancelled."""
        return len(self._pending)

    def attach(self, lifecycle) -> None:
        """Reconcile on every collection change and acknowledge completions."""
        lifecycle.subscribe(self.reconcile)
        lifecycle.on_completed(self.acknowledge_completion)

    def cancel_all(self) -> None:
        for handle in self._pending.values():
            handle.cancel()
        self._pending = {}

    def reconcile(self, targets: Sequence[TargetEntity]) -> int:
        """
        Cancel every pending timer, then schedule one per active target if
        notifications are permitted. Returns the number of timers scheduled.
        """
        self.cancel_all()

        permission = resolve_permission(self._capability)
        if permission != PermissionState.GRANTED:
            logger.debug("Notifications %s; no reminders scheduled", permission.value)
            return 0

        now = self._clock.now()
        for target in targets:
            if not is_active(target, now):
                continue
            delay = max(0.0, (target["due_at"] - now).total_seconds())
            handle = self._timers(delay, partial(self._fire, target["id"], target["title"]))
            self._pending[target["id"]] = handle
        logger.debug("Scheduled %d reminders", len(self._pending))
        return len(self._pending)

    def _fire(self, target_id: str, title: str) -> None:
        self._pending.pop(target_id, None)
        try:
            self._capability.notify(DUE_TITLE, title)
        except Exception:
            logger.warning("Reminder for target %s could not be shown", target_id, exc_info=True)

    def acknowledge_completion(self, target: TargetEntity) -> None:
        if self._capability.permission != PermissionState.GRANTED:
            return
        try:
            self._capability.notify(COMPLETED_TITLE, COMPLETED_BODY)
        except Exception:
            logger.warning("Completion acknowledgment for target %s could not be shown", target["id"], exc_info=True)
