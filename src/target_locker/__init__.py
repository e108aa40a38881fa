"""
Target Locker: commit to tomorrow's targets, lock them in, get reminded.

The core lives in plain modules (window, lifecycle, notifications, ics);
the FastAPI application is built by `target_locker.main.create_app`.
"""

from .errors import (  # noqa: F401
    InvalidTitle,
    OutOfWindow,
    TargetCompleted,
    TargetLocked,
    TargetNotFound,
    TargetRejected,
    TooLateToUnlock,
)
from .lifecycle import TargetLifecycle  # noqa: F401
from .repositories import TargetRepository  # noqa: F401

__version__ = "0.1.0"
