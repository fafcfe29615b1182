"""Sign-in dispatcher.

Learn: Sign-in methods are a closed set of variants, each with its own
verifier:

    CredentialsSignIn(email, password)   → CredentialVerifier
    OAuthSignIn(provider, claims)        → OAuthReconciler

Whatever the method, success ends the same way: the token enricher stamps
the identity id and role into fresh claims and we issue an access/refresh
pair. Failure is always Unauthenticated with a generic reason.
"""

import uuid
from dataclasses import dataclass
from typing import Union

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.auth.credentials import CredentialVerifier
from taskgate.auth.jwt import (
    REFRESH,
    TokenError,
    create_access_token,
    create_refresh_token,
    verify_token,
)
from taskgate.auth.reconciler import ExternalSignIn, OAuthReconciler
from taskgate.auth.session import TokenEnricher
from taskgate.errors import Unauthenticated
from taskgate.identity.store import IdentityStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class CredentialsSignIn:
    email: str
    password: str


@dataclass(frozen=True)
class OAuthSignIn:
    provider: str
    claims: ExternalSignIn


SignInAttempt = Union[CredentialsSignIn, OAuthSignIn]


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


def issue_tokens(claims: dict) -> TokenPair:
    return TokenPair(
        access_token=create_access_token(claims["sub"], claims.get("role")),
        refresh_token=create_refresh_token(claims["sub"]),
    )


class SignInService:
    def __init__(self, db: AsyncSession):
        self.store = IdentityStore(db)
        self.verifier = CredentialVerifier(self.store)
        self.reconciler = OAuthReconciler(self.store)
        self.enricher = TokenEnricher(self.store)

    async def sign_in(self, attempt: SignInAttempt) -> TokenPair:
        if isinstance(attempt, CredentialsSignIn):
            identity = await self.verifier.verify(attempt.email, attempt.password)
            method = "credentials"
        elif isinstance(attempt, OAuthSignIn):
            identity = await self._oauth_identity(attempt)
            method = f"oauth:{attempt.provider}"
        else:
            raise TypeError(f"unsupported sign-in attempt: {type(attempt).__name__}")

        claims = await self.enricher.enrich({}, identity)
        logger.info("auth.signed_in", method=method, identity_id=claims["sub"])
        return issue_tokens(claims)

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair.

        Refresh tokens carry no role, so the identity is re-read. A role change
        reaches the user here without a full sign-in, and a deleted identity
        can no longer refresh.
        """
        try:
            payload = verify_token(refresh_token, expected_type=REFRESH)
        except TokenError as e:
            raise Unauthenticated(str(e))
        try:
            identity_id = uuid.UUID(str(payload.get("sub")))
        except ValueError:
            raise Unauthenticated("Sign-in denied")

        identity = await self.store.get(identity_id)
        if identity is None:
            logger.info("auth.refresh_denied", identity_id=str(identity_id))
            raise Unauthenticated("Sign-in denied")

        claims = await self.enricher.enrich({}, identity)
        return issue_tokens(claims)

    async def _oauth_identity(self, attempt: OAuthSignIn):
        claims = attempt.claims
        result = await self.reconciler.reconcile(
            attempt.provider,
            claims.provider_account_id,
            claims.email,
            claims.profile,
            claims.tokens,
        )
        if not result:
            raise Unauthenticated("Sign-in denied")

        identity = await self.store.get(result.identity_id)
        if identity is None:
            raise Unauthenticated("Sign-in denied")
        return identity
