"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to turn the bearer
token into a SessionView and run the role gate:

    get_session_optional  → SessionView | None (soft; bad token is still 401)
    get_current_session   → SessionView, 401 without one
    require_super         → SessionView, 403 unless role is SUPER
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.auth.gate import authorize
from taskgate.auth.jwt import ACCESS, TokenError, verify_token
from taskgate.auth.session import SessionView, TokenEnricher, expose
from taskgate.db.engine import get_db
from taskgate.errors import Unauthenticated
from taskgate.identity.roles import Role
from taskgate.identity.store import IdentityStore


async def get_session_optional(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Optional[SessionView]:
    """Extract the session (optional — returns None if no auth header).

    Learn: This is the "soft" auth dependency. A token that is present but
    invalid or expired is still rejected — only a missing one yields None.
    """
    if not authorization or not authorization.startswith("Bearer "):
        return None

    token = authorization[7:]
    try:
        claims = verify_token(token, expected_type=ACCESS)
    except TokenError as e:
        raise Unauthenticated(str(e))

    claims = await TokenEnricher(IdentityStore(db)).enrich(claims)
    return expose(claims)


async def get_current_session(
    session: Optional[SessionView] = Depends(get_session_optional),
) -> SessionView:
    """Require an authenticated session (401 otherwise)."""
    return authorize(session)


async def require_super(
    session: Optional[SessionView] = Depends(get_session_optional),
) -> SessionView:
    """Require a SUPER session (401 without a session, 403 for USER)."""
    return authorize(session, Role.SUPER)
