"""Token enrichment and session exposure.

Learn: The role lives in two places — the Identity row and the token. The
token's copy is a cache:

- filled at sign-in from the identity that just authenticated
- backfilled on a later request only when the token has no role at all
  (one store lookup, then cached in the claims)
- never compared against the database otherwise

So an admin role change shows up for the affected user only after their
next full sign-in, or when they trade a refresh token (which carries no
role) for a new access token.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import structlog

from taskgate.errors import Unauthenticated
from taskgate.identity.roles import Role
from taskgate.identity.store import IdentityStore

logger = structlog.get_logger()


class HasIdentity(Protocol):
    id: uuid.UUID
    role: Optional[str]


@dataclass(frozen=True)
class SessionView:
    """Read-only session handed to routes and the role gate."""

    id: str
    role: Role

    @property
    def identity_id(self) -> uuid.UUID:
        try:
            return uuid.UUID(self.id)
        except ValueError:
            raise Unauthenticated("Invalid session")

    @property
    def is_super(self) -> bool:
        return self.role is Role.SUPER


class TokenEnricher:
    """Stamps identity id + role into token claims."""

    def __init__(self, store: IdentityStore):
        self.store = store

    async def enrich(
        self, claims: dict[str, Any], identity: Optional[HasIdentity] = None
    ) -> dict[str, Any]:
        enriched = dict(claims)

        if identity is not None:
            enriched["sub"] = str(identity.id)
            enriched["role"] = identity.role or Role.USER.value
            return enriched

        if enriched.get("role") or not enriched.get("sub"):
            return enriched

        try:
            role = await self.store.role_of(uuid.UUID(str(enriched["sub"])))
        except Exception as e:
            # Degrade to "no role"; expose() treats that as USER. The failed
            # query may leave the shared session mid-transaction.
            logger.warning("session.role_lookup_failed", sub=enriched["sub"], error=str(e))
            await self.store.rollback()
            return enriched

        if role:
            enriched["role"] = role
        return enriched


def expose(claims: dict[str, Any]) -> SessionView:
    """Project token claims to the session shape. Pure; never fails."""
    return SessionView(
        id=str(claims.get("sub") or ""),
        role=Role.parse(claims.get("role")) or Role.USER,
    )
