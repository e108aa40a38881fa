from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from typing_extensions import TypedDict


# PUBLIC_INTERFACE
class TargetEntity(TypedDict):
    """
    A target: one intention the user commits to finishing tomorrow.

    Fields:
    - id: Opaque unique identifier (uuid4 hex), immutable
    - title: Non-empty display string
    - notes: Optional free text
    - due_at: Aware due datetime, always inside tomorrow's window when written
    - locked: True once the user commits; editable fields are frozen
    - completed_at: Set once when the target is done; terminal
    - created_at: Aware creation timestamp, immutable
    """

    id: str
    title: str
    notes: Optional[str]
    due_at: datetime
    locked: bool
    completed_at: Optional[datetime]
    created_at: datetime


class TargetState(str, Enum):
    DRAFT = "draft"
    LOCKED = "locked"
    COMPLETED = "completed"


def state_of(target: TargetEntity) -> TargetState:
    if target["completed_at"] is not None:
        return TargetState.COMPLETED
    if target["locked"]:
        return TargetState.LOCKED
    return TargetState.DRAFT


def is_active(target: TargetEntity, now: datetime) -> bool:
    """Active targets are not completed and still due in the future."""
    return target["completed_at"] is None and target["due_at"] > now
