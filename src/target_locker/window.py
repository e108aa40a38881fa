"""
Clock and tomorrow-window policy.

Every target must be due within "tomorrow": the calendar day after the
current one, evaluated in the timezone of the `now` being checked against.
The window is recomputed at every check, never frozen at creation time.
"""
from __future__ import annotations

from datetime import datetime, time, timedelta, tzinfo
from typing import Optional, Protocol, Tuple

from tzlocal import get_localzone

from .errors import OutOfWindow

# 23:59:59.999, the last instant of a day at millisecond precision
END_OF_DAY = time(23, 59, 59, 999000)


# PUBLIC_INTERFACE
class Clock(Protocol):
    """Source of the current, timezone-aware time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in a fixed timezone (the system local zone when tz is None)."""

    def __init__(self, tz: Optional[tzinfo] = None) -> None:
        self._tz = tz

    @property
    def tz(self) -> tzinfo:
        return self._tz or local_timezone()

    def now(self) -> datetime:
        return datetime.now(self.tz)


def local_timezone() -> tzinfo:
    """The system zone with its DST rules, not just the offset in effect right now."""
    return get_localzone()


# PUBLIC_INTERFACE
def as_aware(value: datetime, tz: tzinfo) -> datetime:
    """Attach tz to a naive datetime; aware datetimes are returned as-is."""
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=tz)
    return value


# PUBLIC_INTERFACE
def tomorrow_window(now: datetime) -> Tuple[datetime, datetime]:
    """
    Return (start, end) of tomorrow relative to now.

    start is midnight of the next calendar day; end is 23:59:59.999 of the
    same day. Both are built from local wall time, so on a DST change day
    each boundary carries its own UTC offset.
    """
    day = now.date() + timedelta(days=1)
    start = datetime.combine(day, time.min, tzinfo=now.tzinfo)
    end = datetime.combine(day, END_OF_DAY, tzinfo=now.tzinfo)
    return start, end


# PUBLIC_INTERFACE
def validate(timestamp: datetime, now: datetime) -> datetime:
    """
    Return timestamp unchanged when it lies in tomorrow's window.

    Raises:
        OutOfWindow: if the timestamp is before the start or after the end.
    """
    start, end = tomorrow_window(now)
    if timestamp < start or timestamp > end:
        raise OutOfWindow(timestamp, start, end)
    return timestamp


# PUBLIC_INTERFACE
def clamp(timestamp: datetime, now: datetime) -> datetime:
    """Pull a timestamp past the end of tomorrow back to the end; never clamps upward."""
    _, end = tomorrow_window(now)
    return end if timestamp > end else timestamp
