from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import TargetEntity, TargetState, state_of

# Shared type for incoming due_at which can be a date, datetime, or ISO8601 string
DueAtInput = Union[date, datetime, str]


def _parse_due_at(value: Optional[DueAtInput]) -> Optional[datetime]:
    """
    Internal helper to normalize due_at input into a datetime.
    - If value is a string, attempt to parse via datetime.fromisoformat; a bare date becomes 00:00.
    - If value is a date (not datetime), convert to datetime at 00:00.
    - Naive results are later interpreted in the configured timezone.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, 0, 0, 0)

    if isinstance(value, str):
        s = value.strip()
        try:
            return datetime.fromisoformat(s)
        except ValueError:
            try:
                d = date.fromisoformat(s)
                return datetime(d.year, d.month, d.day, 0, 0, 0)
            except ValueError as e:
                raise ValueError(
                    "Invalid due_at format. Use an ISO8601 datetime string (e.g., '2025-01-31T09:00:00')."
                ) from e

    raise ValueError("Invalid type for due_at; expected date, datetime, or ISO8601 string.")


# PUBLIC_INTERFACE
class TargetCreate(BaseModel):
    """
    Schema for creating a new target. A blank title becomes "Untitled Target".
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Write report",
                "notes": "Definition of done: draft sent to the team",
                "due_at": "2025-02-01T09:00:00",
            }
        }
    )

    title: str = Field(default="", description="What will you focus on?", max_length=200)
    notes: Optional[str] = Field(default=None, description="Details, definition of done, etc.")
    due_at: datetime = Field(..., description="Due time; must fall within tomorrow")

    @field_validator("due_at", mode="before")
    @classmethod
    def parse_due_at(cls, v: Optional[DueAtInput]) -> Optional[datetime]:
        return _parse_due_at(v)


# PUBLIC_INTERFACE
class TargetUpdate(BaseModel):
    """
    Schema for editing a draft target.
    All fields are optional; only provided fields are changed, and either
    all of them are applied or none.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Write and send report",
                "due_at": "2025-02-01T10:30:00",
            }
        }
    )

    title: Optional[str] = Field(default=None, description="New title", min_length=1, max_length=200)
    notes: Optional[str] = Field(default=None, description="New notes; null or blank clears them")
    due_at: Optional[datetime] = Field(default=None, description="New due time within tomorrow")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        """
        If title is provided, strip whitespace and enforce 1..200 length.
        An explicit null is rejected; omit the field to keep the title.
        """
        if v is None:
            raise ValueError("title cannot be null")
        s = v.strip()
        if not (1 <= len(s) <= 200):
            raise ValueError("title length must be between 1 and 200 characters")
        return s

    @field_validator("due_at", mode="before")
    @classmethod
    def parse_due_at(cls, v: Optional[DueAtInput]) -> Optional[datetime]:
        if v is None:
            raise ValueError("due_at cannot be null; omit it to keep the due time")
        return _parse_due_at(v)


# PUBLIC_INTERFACE
class TargetOut(BaseModel):
    """
    Schema returned by the API for a target.
    """

    id: str = Field(..., description="Unique identifier of the target")
    title: str = Field(..., description="Display title")
    notes: Optional[str] = Field(default=None, description="Optional notes")
    due_at: datetime = Field(..., description="Due time as an ISO8601 datetime")
    locked: bool = Field(..., description="Whether the target is committed")
    completed_at: Optional[datetime] = Field(default=None, description="Completion timestamp")
    created_at: datetime = Field(..., description="Creation timestamp")
    state: TargetState = Field(..., description="draft, locked or completed")

    @classmethod
    def from_entity(cls, target: TargetEntity) -> "TargetOut":
        return cls(**target, state=state_of(target))


class WindowOut(BaseModel):
    """The span new and edited due times must fall into."""

    now: datetime
    start: datetime
    end: datetime
