"""Task API routes.

Learn: Routes just translate HTTP to service calls. Listing and creation
are scoped to the session's identity; update and delete go through the
ownership check in the service (404 for a missing task, 403 for someone
else's).
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.auth.dependencies import get_current_session
from taskgate.auth.session import SessionView
from taskgate.db.engine import get_db
from taskgate.schemas.task import TaskCreate, TaskRead, TaskUpdate
from taskgate.services.task_service import TaskService

router = APIRouter()


def _svc(db: AsyncSession = Depends(get_db)) -> TaskService:
    return TaskService(db)


@router.get("/tasks", response_model=list[TaskRead])
async def list_tasks(
    session: SessionView = Depends(get_current_session),
    svc: TaskService = Depends(_svc),
):
    """The caller's tasks, earliest scheduled first."""
    return await svc.list_owned(session.identity_id)


@router.post("/tasks", response_model=TaskRead, status_code=201)
async def create_task(
    body: TaskCreate,
    session: SessionView = Depends(get_current_session),
    svc: TaskService = Depends(_svc),
):
    return await svc.create_task(
        owner_id=session.identity_id,
        title=body.title,
        description=body.description,
        scheduled_at=body.scheduled_at,
    )


@router.patch("/tasks/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: int,
    body: TaskUpdate,
    session: SessionView = Depends(get_current_session),
    svc: TaskService = Depends(_svc),
):
    return await svc.update_task(
        session,
        task_id,
        title=body.title,
        description=body.description,
        scheduled_at=body.scheduled_at,
        completed=body.completed,
    )


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: int,
    session: SessionView = Depends(get_current_session),
    svc: TaskService = Depends(_svc),
):
    await svc.delete_task(session, task_id)
    return {"deleted": True}
