"""Identity store — persistence for Identity and LinkedAccount rows.

Learn: Every other auth component talks to the database through this class.
Two rules are enforced here so callers can't forget them:

1. Emails are canonicalised (trim + lowercase) on every read and write.
2. Creates commit immediately. A uniqueness violation is rolled back and
   re-raised as DuplicateRecordError, which is what the OAuth reconciler
   turns into "look the row up again" when two sign-ins race.

Because a failed create rolls the session back, instances loaded earlier
in the same session are expired afterwards. Callers keep ids in locals
rather than re-reading attributes off old instances.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.db.models import Identity, LinkedAccount
from taskgate.identity.roles import Role, canonical_email


class DuplicateRecordError(Exception):
    """Raised when a create hits one of the store's uniqueness constraints."""


class IdentityStore:
    """Identity and LinkedAccount persistence on one AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Identities ─────────────────────────────────────

    async def get(self, identity_id: uuid.UUID) -> Identity | None:
        return await self.db.get(Identity, identity_id)

    async def find_by_email(self, email: str) -> Identity | None:
        result = await self.db.execute(
            select(Identity).where(Identity.email == canonical_email(email))
        )
        return result.scalars().first()

    async def role_of(self, identity_id: uuid.UUID) -> Optional[str]:
        """Single-column lookup used by the token enricher."""
        result = await self.db.execute(
            select(Identity.role).where(Identity.id == identity_id)
        )
        return result.scalar_one_or_none()

    async def list_identities(self) -> list[Identity]:
        result = await self.db.execute(
            select(Identity).order_by(Identity.created_at, Identity.email)
        )
        return list(result.scalars().all())

    async def create_identity(
        self,
        email: str,
        name: str | None = None,
        image: str | None = None,
        password_hash: str | None = None,
        role: Role = Role.USER,
    ) -> Identity:
        identity = Identity(
            email=canonical_email(email),
            name=name,
            image=image,
            password_hash=password_hash,
            role=role.value,
        )
        self.db.add(identity)
        await self._commit_new("identity", identity.email)
        return identity

    async def update_identity(self, identity: Identity, **fields) -> Identity:
        """Apply field updates and commit. Emails are canonicalised."""
        if "email" in fields:
            fields["email"] = canonical_email(fields["email"])
        for key, value in fields.items():
            setattr(identity, key, value)
        await self.db.commit()
        return identity

    # ─── Linked accounts ────────────────────────────────

    async def find_link(
        self, provider: str, provider_account_id: str
    ) -> LinkedAccount | None:
        result = await self.db.execute(
            select(LinkedAccount).where(
                LinkedAccount.provider == provider,
                LinkedAccount.provider_account_id == provider_account_id,
            )
        )
        return result.scalars().first()

    async def links_for(self, owner_id: uuid.UUID) -> list[LinkedAccount]:
        result = await self.db.execute(
            select(LinkedAccount)
            .where(LinkedAccount.owner_id == owner_id)
            .order_by(LinkedAccount.created_at)
        )
        return list(result.scalars().all())

    async def create_link(
        self,
        owner_id: uuid.UUID,
        provider: str,
        provider_account_id: str,
        tokens: dict | None = None,
        account_type: str = "oauth",
    ) -> LinkedAccount:
        link = LinkedAccount(
            owner_id=owner_id,
            provider=provider,
            provider_account_id=provider_account_id,
            type=account_type,
            tokens=tokens or {},
        )
        self.db.add(link)
        await self._commit_new("linked_account", f"{provider}:{provider_account_id}")
        return link

    async def rollback(self) -> None:
        """Discard a failed transaction so the session can be used again."""
        await self.db.rollback()

    # ─── Internals ──────────────────────────────────────

    async def _commit_new(self, kind: str, key: str) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateRecordError(f"{kind} already exists: {key}") from e
