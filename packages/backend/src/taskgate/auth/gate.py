"""Role gate — the authorization predicate in front of every protected operation.

Pure functions over a SessionView; no I/O. Routes reach them through the
FastAPI dependencies in auth.dependencies.
"""

import uuid
from typing import Optional

from taskgate.auth.session import SessionView
from taskgate.errors import Forbidden, Unauthenticated
from taskgate.identity.roles import Role


def authorize(
    session: Optional[SessionView], required_role: Optional[Role] = None
) -> SessionView:
    """Return the session if it may proceed, else raise.

    No session → Unauthenticated. SUPER required but not held → Forbidden.
    """
    if session is None or not session.id:
        raise Unauthenticated()
    if required_role is Role.SUPER and session.role is not Role.SUPER:
        raise Forbidden("Administrator role required")
    return session


def ensure_owner(session: SessionView, owner_id: uuid.UUID) -> None:
    """Resource mutations additionally require the caller to own the resource."""
    if str(owner_id) != session.id:
        raise Forbidden()
