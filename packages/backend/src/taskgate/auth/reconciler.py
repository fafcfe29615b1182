"""OAuth reconciler — resolve an external sign-in to one Identity + LinkedAccount.

Learn: This is the one place the find-or-create-or-link sequence lives.

    1. find Identity by (canonical) external email
    2. missing → create it, role USER, name/image from the provider profile
    3. present but role empty (legacy row) → repair to USER
    4. find LinkedAccount by (provider, provider_account_id)
    5. missing → create it for the identity, storing the opaque provider tokens
    6. present but owned by someone else → log the anomaly, keep the existing
       owner, still let the user in

Preconditions: provider, provider_account_id and external_email are
non-empty. Postconditions on permit: exactly one Identity for the email and
exactly one LinkedAccount for the pair exist, and result.identity_id is the
link's owner.

The steps are NOT one transaction. Each create commits on its own, and when
two first-time sign-ins race, the loser's insert trips a uniqueness
constraint; we treat that as "someone else just created it" and look the
row up again. Anything else going wrong fails closed (permit=False); rows
committed by earlier steps stay behind and the next attempt picks them up.

Role is never raised here. Only the admin role-set operation makes SUPERs.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional

import structlog

from taskgate.db.models import NAME_MAX_LENGTH, Identity
from taskgate.identity.roles import Role
from taskgate.identity.store import DuplicateRecordError, IdentityStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class ExternalProfile:
    """Display data supplied by the provider. Both fields optional."""

    name: Optional[str] = None
    image: Optional[str] = None


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of one reconciliation. Truthy iff sign-in is permitted."""

    permit: bool
    identity_id: Optional[uuid.UUID] = None
    anomaly: bool = False

    def __bool__(self) -> bool:
        return self.permit


DENIED = ReconcileResult(permit=False)


def _display_name(name: Optional[str]) -> Optional[str]:
    """Provider display names are cut to fit the column, never rejected."""
    name = (name or "").strip()
    return name[:NAME_MAX_LENGTH] or None


@dataclass(frozen=True)
class ExternalSignIn:
    """Identity claims returned by a provider callback."""

    provider: str
    provider_account_id: str
    email: str
    profile: ExternalProfile = field(default_factory=ExternalProfile)
    tokens: dict = field(default_factory=dict)


class OAuthReconciler:
    def __init__(self, store: IdentityStore):
        self.store = store

    async def reconcile(
        self,
        provider: str,
        provider_account_id: str,
        external_email: str,
        profile: Optional[ExternalProfile] = None,
        tokens: Optional[dict] = None,
    ) -> ReconcileResult:
        log = logger.bind(provider=provider, provider_account_id=provider_account_id)

        if not (provider and provider_account_id and external_email and external_email.strip()):
            log.warning("oauth.incomplete_claims")
            return DENIED

        try:
            identity_id = await self._resolve_identity(
                external_email, profile or ExternalProfile(), log
            )
            owner_id, anomaly = await self._resolve_link(
                identity_id, provider, provider_account_id, tokens or {}, log
            )
        except Exception:
            log.exception("oauth.reconcile_failed")
            return DENIED

        return ReconcileResult(permit=True, identity_id=owner_id, anomaly=anomaly)

    # ─── Steps 1–3: identity ────────────────────────────

    async def _resolve_identity(self, email: str, profile: ExternalProfile, log) -> uuid.UUID:
        identity = await self.store.find_by_email(email)

        if identity is None:
            try:
                identity = await self.store.create_identity(
                    email=email,
                    name=_display_name(profile.name),
                    image=profile.image,
                    role=Role.USER,
                )
                log.info("oauth.identity_created", identity_id=str(identity.id))
            except DuplicateRecordError:
                # Lost a race with a concurrent first sign-in.
                identity = await self._must_find_identity(email)
                log.info("oauth.identity_race_resolved", identity_id=str(identity.id))

        if not identity.role:
            await self.store.update_identity(identity, role=Role.USER.value)
            log.warning("oauth.role_repaired", identity_id=str(identity.id))

        return identity.id

    async def _must_find_identity(self, email: str) -> Identity:
        identity = await self.store.find_by_email(email)
        if identity is None:
            raise LookupError("identity vanished after duplicate insert")
        return identity

    # ─── Steps 4–6: linked account ──────────────────────

    async def _resolve_link(
        self,
        identity_id: uuid.UUID,
        provider: str,
        provider_account_id: str,
        tokens: dict,
        log,
    ) -> tuple[uuid.UUID, bool]:
        link = await self.store.find_link(provider, provider_account_id)

        if link is None:
            try:
                link = await self.store.create_link(
                    owner_id=identity_id,
                    provider=provider,
                    provider_account_id=provider_account_id,
                    tokens=tokens,
                )
                log.info("oauth.link_created", identity_id=str(identity_id))
            except DuplicateRecordError:
                link = await self.store.find_link(provider, provider_account_id)
                if link is None:
                    raise LookupError("linked account vanished after duplicate insert")
                log.info("oauth.link_race_resolved", identity_id=str(identity_id))

        owner_id = link.owner_id
        if owner_id != identity_id:
            log.warning(
                "oauth.link_owner_mismatch",
                linked_owner_id=str(owner_id),
                email_identity_id=str(identity_id),
            )
            return owner_id, True

        return owner_id, False
