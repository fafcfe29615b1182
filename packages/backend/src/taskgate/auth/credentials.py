"""Credential verifier — email + password against the identity store.

Learn: Read-only. The three ways a password sign-in can fail (no such
email, identity has no password because it only ever used OAuth, wrong
password) all raise the same AuthFailure, whose public message is
identical. Only the log line tells them apart.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog

from taskgate.auth.password import verify_password
from taskgate.errors import AuthFailure
from taskgate.identity.store import IdentityStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class VerifiedIdentity:
    """What a successful password check hands back. Never includes the hash."""

    id: uuid.UUID
    name: Optional[str]
    email: str
    role: Optional[str]


class CredentialVerifier:
    def __init__(self, store: IdentityStore):
        self.store = store

    async def verify(self, email: str, password: str) -> VerifiedIdentity:
        identity = await self.store.find_by_email(email)

        if identity is None or not identity.password_hash:
            logger.info("auth.login_denied", cause="not_found")
            raise AuthFailure("not_found")

        if not verify_password(password, identity.password_hash):
            logger.info("auth.login_denied", cause="mismatch", identity_id=str(identity.id))
            raise AuthFailure("mismatch")

        return VerifiedIdentity(
            id=identity.id,
            name=identity.name,
            email=identity.email,
            role=identity.role,
        )
