"""Notification window — "due soon" and "recently completed" task views.

Learn: notification_window() is a pure function of the task list and the
current time, so it is tested without a database. NotificationService only
fetches the caller's owned tasks and feeds them in with the configured
horizon and limit.

    upcoming            not completed, now <= scheduled_at <= now + horizon,
                        earliest first
    recently_completed  completed, most recent completion first, at most `limit`
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.config import settings
from taskgate.db.models import Task, as_utc, utcnow
from taskgate.services.task_service import TaskService

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class NotificationWindow:
    upcoming: list[Task] = field(default_factory=list)
    recently_completed: list[Task] = field(default_factory=list)


def _completion_time(task: Task) -> datetime:
    stamp = task.completed_at or task.updated_at or task.created_at
    return as_utc(stamp) if stamp else _EPOCH


def notification_window(
    tasks: Iterable[Task],
    now: datetime,
    horizon: timedelta = timedelta(hours=4),
    limit: int = 5,
) -> NotificationWindow:
    now = as_utc(now)
    until = now + horizon
    tasks = list(tasks)

    upcoming = sorted(
        (
            t for t in tasks
            if not t.completed and now <= as_utc(t.scheduled_at) <= until
        ),
        key=lambda t: as_utc(t.scheduled_at),
    )
    completed = sorted(
        (t for t in tasks if t.completed),
        key=_completion_time,
        reverse=True,
    )
    return NotificationWindow(upcoming=upcoming, recently_completed=completed[:limit])


class NotificationService:
    def __init__(self, db: AsyncSession):
        self.tasks = TaskService(db)

    async def for_owner(
        self, owner_id: uuid.UUID, now: Optional[datetime] = None
    ) -> NotificationWindow:
        return notification_window(
            await self.tasks.list_owned(owner_id),
            now or utcnow(),
            horizon=timedelta(hours=settings.notification_window_hours),
            limit=settings.recent_completed_limit,
        )
