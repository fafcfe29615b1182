"""Notifications API — due-soon and recently-completed views of the caller's tasks."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.auth.dependencies import get_current_session
from taskgate.auth.session import SessionView
from taskgate.db.engine import get_db
from taskgate.schemas.task import NotificationsRead
from taskgate.services.notifications import NotificationService

router = APIRouter()


@router.get("/notifications", response_model=NotificationsRead)
async def get_notifications(
    session: SessionView = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    window = await NotificationService(db).for_owner(session.identity_id)
    return NotificationsRead.model_validate(window, from_attributes=True)
