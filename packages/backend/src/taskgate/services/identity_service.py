"""Identity service — registration, profile, and administrative operations.

Learn: Service layer separates business logic from HTTP routing.
API routes and the operator CLI call the same methods, so the rules
(canonical email, USER on registration, SUPER only through set_role or
the CLI) hold no matter how an identity is touched.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.auth.password import hash_password
from taskgate.config import settings
from taskgate.db.models import EMAIL_MAX_LENGTH, NAME_MAX_LENGTH, Identity
from taskgate.errors import Conflict, NotFound, ValidationFailed
from taskgate.identity.roles import Role, canonical_email
from taskgate.identity.store import DuplicateRecordError, IdentityStore

logger = structlog.get_logger()


def _clean_name(name: Optional[str]) -> Optional[str]:
    """Trimmed display name, None when blank. Too long → ValidationFailed."""
    name = (name or "").strip()
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationFailed(f"Name must be at most {NAME_MAX_LENGTH} characters.")
    return name or None


class IdentityService:
    """Business logic for identity records."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = IdentityStore(db)

    # ─── Registration ───────────────────────────────────

    async def register(
        self, email: Optional[str], password: Optional[str], name: Optional[str] = None
    ) -> Identity:
        """Create a credential identity with role USER.

        Raises ValidationFailed for missing/short input, Conflict when the
        canonical email is already taken (including by an OAuth identity).
        """
        email = canonical_email(email or "")
        if not email or not password:
            raise ValidationFailed("Email and password are required.")
        if "@" not in email or len(email) > EMAIL_MAX_LENGTH:
            raise ValidationFailed("Invalid email address.")
        if len(password) < settings.password_min_length:
            raise ValidationFailed(
                f"Password must be at least {settings.password_min_length} characters."
            )
        name = _clean_name(name)

        if await self.store.find_by_email(email):
            raise Conflict("User already exists. Please sign in.")

        try:
            identity = await self.store.create_identity(
                email=email,
                name=name,
                password_hash=hash_password(password),
                role=Role.USER,
            )
        except DuplicateRecordError:
            raise Conflict("User already exists. Please sign in.")

        logger.info("auth.registered", identity_id=str(identity.id))
        return identity

    # ─── Profile ────────────────────────────────────────

    async def get_identity(self, identity_id: uuid.UUID) -> Identity:
        identity = await self.store.get(identity_id)
        if identity is None:
            raise NotFound("Identity not found")
        return identity

    async def update_profile(
        self,
        identity_id: uuid.UUID,
        name: Optional[str] = None,
        avatar_data: Optional[str] = None,
    ) -> Identity:
        """Update only the provided, non-blank fields.

        avatar_data is a URL or data: URI and is stored as-is in `image`.
        """
        updates = {}
        name = _clean_name(name if isinstance(name, str) else None)
        if name:
            updates["name"] = name
        if isinstance(avatar_data, str) and avatar_data.strip():
            updates["image"] = avatar_data.strip()
        if not updates:
            raise ValidationFailed("Nothing to update")

        identity = await self.get_identity(identity_id)
        return await self.store.update_identity(identity, **updates)

    # ─── Administration ─────────────────────────────────

    async def list_identities(self) -> list[Identity]:
        return await self.store.list_identities()

    async def set_role(
        self,
        target_id: uuid.UUID,
        role: Optional[str],
        actor_id: Optional[str] = None,
    ) -> Identity:
        """Set an identity's role. Idempotent: re-setting the current role succeeds.

        The change lands in the database only; the target's existing access
        token keeps its cached role until they sign in again or refresh.
        """
        new_role = Role.parse(role)
        if new_role is None:
            raise ValidationFailed("Invalid role")

        identity = await self.get_identity(target_id)
        previous = identity.role
        if previous == new_role.value:
            return identity

        await self.store.update_identity(identity, role=new_role.value)
        logger.info(
            "admin.role_changed",
            identity_id=str(target_id),
            previous=previous,
            role=new_role.value,
            actor_id=actor_id,
        )
        return identity

    async def reset_password(self, email: str, new_password: str) -> Identity:
        identity = await self.store.find_by_email(email)
        if identity is None:
            raise NotFound(f"No identity for {canonical_email(email)}")
        await self.store.update_identity(identity, password_hash=hash_password(new_password))
        logger.info("admin.password_reset", identity_id=str(identity.id))
        return identity

    async def ensure_super(
        self, email: str, password: str, name: str = "Super Admin"
    ) -> tuple[Identity, bool]:
        """Promote (or create) an operator account. Returns (identity, created).

        An existing password is kept; one is only set if the identity had none.
        """
        identity = await self.store.find_by_email(email)
        if identity is None:
            identity = await self.store.create_identity(
                email=email,
                name=name,
                password_hash=hash_password(password),
                role=Role.SUPER,
            )
            logger.info("admin.super_created", identity_id=str(identity.id))
            return identity, True

        updates = {"role": Role.SUPER.value}
        if not identity.password_hash:
            updates["password_hash"] = hash_password(password)
        await self.store.update_identity(identity, **updates)
        logger.info("admin.super_promoted", identity_id=str(identity.id))
        return identity, False

    async def normalize_emails(self) -> tuple[list[tuple[str, str]], list[str]]:
        """Rewrite stored emails to canonical form.

        Returns (changed, skipped): (before, after) pairs that were rewritten,
        and emails left alone because their canonical form is already taken.
        """
        identities = await self.store.list_identities()
        taken = {i.email for i in identities}
        changed: list[tuple[str, str]] = []
        skipped: list[str] = []

        for identity in identities:
            before = identity.email
            after = canonical_email(before)
            if after == before:
                continue
            if after in taken:
                skipped.append(before)
                continue
            identity.email = after
            taken.discard(before)
            taken.add(after)
            changed.append((before, after))

        if changed:
            await self.db.commit()
        return changed, skipped
