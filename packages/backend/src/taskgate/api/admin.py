"""Admin API — identity listing and role management.

Learn: The whole router is mounted behind require_super in api/__init__.py.
Handlers that need the acting admin's id ask for the session again;
FastAPI caches the dependency, so the token is only checked once.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.auth.dependencies import require_super
from taskgate.auth.session import SessionView
from taskgate.db.engine import get_db
from taskgate.errors import NotFound
from taskgate.schemas.identity import IdentityRead, RoleRead, RoleUpdate
from taskgate.services.identity_service import IdentityService

router = APIRouter(prefix="/admin")


def _svc(db: AsyncSession = Depends(get_db)) -> IdentityService:
    return IdentityService(db)


@router.get("/identities", response_model=list[IdentityRead])
async def list_identities(svc: IdentityService = Depends(_svc)):
    return await svc.list_identities()


@router.patch("/identities/{identity_id}", response_model=RoleRead)
async def set_role(
    identity_id: str,
    body: RoleUpdate,
    session: SessionView = Depends(require_super),
    svc: IdentityService = Depends(_svc),
):
    """Set USER or SUPER. Re-setting the current role is a no-op success.

    identity_id is parsed here rather than by FastAPI so a malformed id is
    a 404 like any other unknown identity.
    """
    try:
        target_id = uuid.UUID(identity_id)
    except ValueError:
        raise NotFound("Identity not found")
    identity = await svc.set_role(target_id, body.role, actor_id=session.id)
    return RoleRead(id=identity.id, role=identity.role)
