"""OAuth 2.0 authorization-code client for external sign-in providers.

Learn: The provider does the authenticating; we only
1. build the authorization URL the browser is redirected to, and
2. on callback, exchange the code for tokens and read the userinfo claims.

The claims come back as an ExternalSignIn, which is all the reconciler
needs. Provider tokens are kept as an opaque dict and stored on the
LinkedAccount.

Google is the one concrete provider. Adding another means another
OAuthProviderConfig with its endpoints — the callback flow is the same.
"""

import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx

from taskgate.auth.reconciler import ExternalProfile, ExternalSignIn
from taskgate.config import Settings, settings

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

_STORED_TOKEN_FIELDS = (
    "access_token",
    "refresh_token",
    "id_token",
    "token_type",
    "scope",
    "session_state",
)


class OAuthProviderError(Exception):
    """Raised when the provider rejects the code or returns unusable claims."""


@dataclass(frozen=True)
class OAuthProviderConfig:
    name: str
    client_id: str
    client_secret: str
    redirect_uri: str
    authorize_url: str
    token_url: str
    userinfo_url: str
    scope: str = "openid email profile"


class OAuthProvider:
    def __init__(
        self,
        config: OAuthProviderConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._transport = transport

    @property
    def name(self) -> str:
        return self.config.name

    def authorization_url(self, state: str) -> str:
        params = {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "scope": self.config.scope,
            "state": state,
        }
        return f"{self.config.authorize_url}?{urlencode(params)}"

    async def exchange(self, code: str) -> ExternalSignIn:
        """Trade an authorization code for the caller's identity claims."""
        async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
            resp = await client.post(
                self.config.token_url,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                    "redirect_uri": self.config.redirect_uri,
                },
                headers={"Accept": "application/json"},
            )
            if resp.status_code != 200:
                raise OAuthProviderError("token_exchange_failed")
            tokens = resp.json()

            access_token = tokens.get("access_token")
            if not access_token:
                raise OAuthProviderError("token_exchange_failed")

            resp = await client.get(
                self.config.userinfo_url,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            if resp.status_code != 200:
                raise OAuthProviderError("userinfo_failed")
            info = resp.json()

        if not info.get("sub") or not info.get("email"):
            raise OAuthProviderError("incomplete_claims")
        if info.get("email_verified") is False:
            raise OAuthProviderError("email_not_verified")

        return ExternalSignIn(
            provider=self.name,
            provider_account_id=str(info["sub"]),
            email=info["email"],
            profile=ExternalProfile(name=info.get("name"), image=info.get("picture")),
            tokens=_stored_tokens(tokens),
        )


def _stored_tokens(raw: dict) -> dict:
    stored = {k: raw[k] for k in _STORED_TOKEN_FIELDS if raw.get(k) is not None}
    if raw.get("expires_in"):
        stored["expires_at"] = int(time.time()) + int(raw["expires_in"])
    return stored


def configured_providers(cfg: Settings = settings) -> dict[str, OAuthProvider]:
    """Providers enabled by configuration (Google needs a client id)."""
    providers: dict[str, OAuthProvider] = {}
    if cfg.google_client_id:
        providers["google"] = OAuthProvider(
            OAuthProviderConfig(
                name="google",
                client_id=cfg.google_client_id,
                client_secret=cfg.google_client_secret,
                redirect_uri=cfg.google_redirect_uri,
                authorize_url=GOOGLE_AUTHORIZE_URL,
                token_url=GOOGLE_TOKEN_URL,
                userinfo_url=GOOGLE_USERINFO_URL,
            )
        )
    return providers


def get_oauth_providers() -> dict[str, OAuthProvider]:
    """FastAPI dependency; tests override it with a MockTransport-backed provider."""
    return configured_providers()
