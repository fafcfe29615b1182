"""Profile API — the caller's own name and avatar."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.auth.dependencies import get_current_session
from taskgate.auth.session import SessionView
from taskgate.db.engine import get_db
from taskgate.schemas.identity import ProfileRead, ProfileUpdate
from taskgate.services.identity_service import IdentityService

router = APIRouter(prefix="/profile")


def _svc(db: AsyncSession = Depends(get_db)) -> IdentityService:
    return IdentityService(db)


@router.get("", response_model=ProfileRead)
async def get_profile(
    session: SessionView = Depends(get_current_session),
    svc: IdentityService = Depends(_svc),
):
    return await svc.get_identity(session.identity_id)


@router.patch("", response_model=ProfileRead)
async def update_profile(
    body: ProfileUpdate,
    session: SessionView = Depends(get_current_session),
    svc: IdentityService = Depends(_svc),
):
    """Update name and/or avatar. Blank fields are ignored; nothing left → 400."""
    return await svc.update_profile(
        session.identity_id, name=body.name, avatar_data=body.avatar_data
    )
