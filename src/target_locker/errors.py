from __future__ import annotations

from datetime import datetime
from typing import Optional


# PUBLIC_INTERFACE
class TargetRejected(Exception):
    """
    Base class for every recoverable rejection raised by the lifecycle engine.

    A rejection always leaves the collection untouched. The HTTP layer maps
    `code` and `status_code` into the JSON error envelope.
    """

    code: str = "Rejected"
    status_code: int = 400
    default_message: str = "Operation rejected"

    def __init__(self, message: Optional[str] = None, target_id: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)
        self.target_id = target_id

    @property
    def message(self) -> str:
        return str(self)


class OutOfWindow(TargetRejected):
    code = "OutOfWindow"
    status_code = 422
    default_message = "Due time must fall within tomorrow"

    def __init__(
        self,
        timestamp: Optional[datetime] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        target_id: Optional[str] = None,
    ) -> None:
        message = None
        if timestamp is not None and start is not None and end is not None:
            message = (
                f"Due time {timestamp.isoformat()} must fall within tomorrow "
                f"({start.isoformat()} .. {end.isoformat()})"
            )
        super().__init__(message, target_id=target_id)
        self.timestamp = timestamp
        self.start = start
        self.end = end


class TargetLocked(TargetRejected):
    code = "Locked"
    status_code = 409
    default_message = "Target is locked; unlock it before editing"


class TargetCompleted(TargetRejected):
    code = "Completed"
    status_code = 409
    default_message = "Target is completed and can no longer change"


class TooLateToUnlock(TargetRejected):
    code = "TooLateToUnlock"
    status_code = 409
    default_message = "Cannot unlock on or after the due day"


class TargetNotFound(TargetRejected):
    code = "NotFound"
    status_code = 404
    default_message = "Target not found"


class InvalidTitle(TargetRejected):
    code = "InvalidTitle"
    status_code = 422
    default_message = "Title must not be blank"
