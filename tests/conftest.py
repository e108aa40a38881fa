from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

import pytest

from target_locker.lifecycle import TargetLifecycle
from target_locker.notifications import PermissionState
from target_locker.repositories import TargetRepository
from target_locker.storage import MemoryBlobStore

UTC = timezone.utc


class FixedClock:
    """Clock that only moves when a test moves it."""

    def __init__(self, now: datetime) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def set(self, now: datetime) -> None:
        self.current = now

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


class FakeHandle:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimers:
    """Timer factory that records every scheduled callback without running it."""

    def __init__(self) -> None:
        self.handles: List[FakeHandle] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def live(self) -> List[FakeHandle]:
        return [h for h in self.handles if not h.cancelled]


class RecordingNotifier:
    """Capability that records notifications; can be told to fail or to deny."""

    def __init__(self, permission: PermissionState = PermissionState.GRANTED, answer: Optional[PermissionState] = None) -> None:
        self.permission = permission
        self.answer = answer or permission
        self.requests = 0
        self.fail = False
        self.sent: List[Tuple[str, str]] = []

    def request_permission(self) -> PermissionState:
        self.requests += 1
        self.permission = self.answer
        return self.answer

    def notify(self, title: str, body: str) -> None:
        if self.fail:
            raise RuntimeError("notification permission revoked")
        self.sent.append((title, body))


# 2026-10-18 14:00 UTC; tomorrow's window is all of 2026-10-19.
TODAY_AFTERNOON = datetime(2026, 10, 18, 14, 0, tzinfo=UTC)


def tomorrow_at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 10, 19, hour, minute, tzinfo=UTC)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(TODAY_AFTERNOON)


@pytest.fixture
def store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def repository(store) -> TargetRepository:
    return TargetRepository(store, tz=UTC)


@pytest.fixture
def lifecycle(repository, clock) -> TargetLifecycle:
    return TargetLifecycle(repository, clock)


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
