"""Task service — owner-scoped CRUD for scheduled tasks.

Learn: Every query is filtered by owner; mutations additionally pass the
role gate's ownership check, so a valid session is not enough to touch
someone else's task. Datetimes are normalised to UTC on the way in.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.auth.gate import ensure_owner
from taskgate.auth.session import SessionView
from taskgate.db.models import Task, as_utc, utcnow
from taskgate.errors import NotFound, ValidationFailed


class TaskService:
    """Business logic for task CRUD."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Read ────────────────────────────────────────────

    async def list_owned(self, owner_id: uuid.UUID) -> list[Task]:
        result = await self.db.execute(
            select(Task)
            .where(Task.owner_id == owner_id)
            .order_by(Task.scheduled_at, Task.id)
        )
        return list(result.scalars().all())

    async def get_task(self, task_id: int) -> Task | None:
        return await self.db.get(Task, task_id)

    # ─── Create ──────────────────────────────────────────

    async def create_task(
        self,
        owner_id: uuid.UUID,
        title: str,
        scheduled_at: datetime,
        description: str = "",
        now: Optional[datetime] = None,
    ) -> Task:
        scheduled_at = as_utc(scheduled_at)
        if scheduled_at <= (now or utcnow()):
            raise ValidationFailed("scheduled_at must be in the future")

        task = Task(
            owner_id=owner_id,
            title=title,
            description=description or "",
            scheduled_at=scheduled_at,
        )
        self.db.add(task)
        await self.db.commit()
        return task

    # ─── Update / delete ────────────────────────────────

    async def update_task(
        self,
        actor: SessionView,
        task_id: int,
        title: Optional[str] = None,
        description: Optional[str] = None,
        scheduled_at: Optional[datetime] = None,
        completed: Optional[bool] = None,
    ) -> Task:
        """Partial update — only non-None fields are applied."""
        task = await self._owned_task(actor, task_id)

        if title is not None:
            task.title = title
        if description is not None:
            task.description = description
        if scheduled_at is not None:
            task.scheduled_at = as_utc(scheduled_at)
        if completed is not None and completed != task.completed:
            task.completed = completed
            task.completed_at = utcnow() if completed else None

        await self.db.commit()
        return task

    async def delete_task(self, actor: SessionView, task_id: int) -> None:
        task = await self._owned_task(actor, task_id)
        await self.db.delete(task)
        await self.db.commit()

    async def _owned_task(self, actor: SessionView, task_id: int) -> Task:
        task = await self.get_task(task_id)
        if task is None:
            raise NotFound("Task not found")
        ensure_owner(actor, task.owner_id)
        return task
