"""Pydantic schemas for tasks and notifications.

Learn: Datetimes coming back from the store are normalised to UTC before
they are serialised — SQLite returns them naive, PostgreSQL aware.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from taskgate.db.models import as_utc


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(default="")
    scheduled_at: datetime


class TaskUpdate(BaseModel):
    """Partial update — only non-None fields are applied."""
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    completed: Optional[bool] = None


class TaskRead(BaseModel):
    id: int
    owner_id: uuid.UUID
    title: str
    description: str
    scheduled_at: datetime
    completed: bool
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("scheduled_at", "completed_at", "created_at", "updated_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None


class NotificationsRead(BaseModel):
    upcoming: list[TaskRead]
    recently_completed: list[TaskRead]

    model_config = {"from_attributes": True}
