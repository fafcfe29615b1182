"""Auth API — registration, sign-in, token refresh, session read.

Learn: Routes for the identity lifecycle:
- POST /auth/register → create a credential identity (JSON or HTML form)
- POST /auth/login → email/password → JWT tokens
- POST /auth/refresh → refresh token → new pair (role re-read)
- GET /auth/oauth/{provider}/authorize → redirect to the provider
- GET /auth/oauth/{provider}/callback → reconcile → JWT tokens
- GET /auth/me → current identity, with the session's cached role

Every sign-in failure is the same 401 "Invalid credentials" / "Sign-in
denied"; the reason is only in the logs.
"""

from dataclasses import asdict
from typing import Optional
from urllib.parse import urlencode

import httpx
import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.auth.dependencies import get_current_session
from taskgate.auth.jwt import OAUTH_STATE, TokenError, create_state_token, verify_token
from taskgate.auth.oauth import OAuthProvider, OAuthProviderError, get_oauth_providers
from taskgate.auth.session import SessionView
from taskgate.auth.signin import CredentialsSignIn, OAuthSignIn, SignInService
from taskgate.config import settings
from taskgate.db.engine import get_db
from taskgate.errors import (
    AppError,
    Conflict,
    Internal,
    NotFound,
    Unauthenticated,
    ValidationFailed,
)
from taskgate.schemas.identity import (
    IdentityRead,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    SessionRead,
    TokenResponse,
)
from taskgate.services.identity_service import IdentityService

logger = structlog.get_logger()

router = APIRouter(prefix="/auth")


def _identity_svc(db: AsyncSession = Depends(get_db)) -> IdentityService:
    return IdentityService(db)


def _signin_svc(db: AsyncSession = Depends(get_db)) -> SignInService:
    return SignInService(db)


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=IdentityRead, status_code=201)
async def register(request: Request, svc: IdentityService = Depends(_identity_svc)):
    """Create a new identity with role USER.

    JSON clients get 201 + the identity (400/409/500 on failure). Browser
    form posts get a 303 to the sign-in page, or back to the sign-up page
    with an `error` query parameter.
    """
    content_type = request.headers.get("content-type", "").lower()
    if "application/json" not in content_type:
        return await _register_form(request, svc)

    try:
        body = RegisterRequest.model_validate(await request.json())
    except (ValueError, ValidationError):
        raise ValidationFailed("Malformed request body")

    try:
        return await svc.register(body.email, body.password, body.name)
    except AppError:
        raise
    except Exception:
        logger.exception("auth.register_failed")
        raise Internal()


async def _register_form(request: Request, svc: IdentityService) -> RedirectResponse:
    form = await request.form()
    name = form.get("name")
    email = form.get("email")
    password = form.get("password")

    if not email or not password:
        return _redirect(settings.sign_up_path, error="missing_fields")

    try:
        await svc.register(str(email), str(password), str(name) if name else None)
    except Conflict:
        return _redirect(settings.sign_in_path, error="exists")
    except ValidationFailed:
        return _redirect(settings.sign_up_path, error="invalid_fields")
    except Exception:
        logger.exception("auth.register_failed")
        return _redirect(settings.sign_up_path, error="server_error")

    return _redirect(settings.sign_in_path)


def _redirect(path: str, **params: str) -> RedirectResponse:
    url = f"{path}?{urlencode(params)}" if params else path
    return RedirectResponse(url, status_code=303)


# ─── Credentials sign-in ─────────────────────────────────


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, svc: SignInService = Depends(_signin_svc)):
    """Login with email and password → JWT tokens."""
    tokens = await svc.sign_in(CredentialsSignIn(email=body.email, password=body.password))
    return TokenResponse(**asdict(tokens))


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, svc: SignInService = Depends(_signin_svc)):
    """Exchange a refresh token for a new pair. Picks up role changes."""
    tokens = await svc.refresh(body.refresh_token)
    return TokenResponse(**asdict(tokens))


# ─── OAuth sign-in ──────────────────────────────────────


def _provider(providers: dict[str, OAuthProvider], name: str) -> OAuthProvider:
    client = providers.get(name)
    if client is None:
        raise NotFound(f"Unknown sign-in provider: {name}")
    return client


@router.get("/oauth/{provider}/authorize")
async def oauth_authorize(
    provider: str,
    providers: dict[str, OAuthProvider] = Depends(get_oauth_providers),
):
    """Redirect the browser to the provider's consent page."""
    client = _provider(providers, provider)
    return RedirectResponse(
        client.authorization_url(state=create_state_token(provider)),
        status_code=307,
    )


@router.get("/oauth/{provider}/callback", response_model=TokenResponse)
async def oauth_callback(
    provider: str,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    providers: dict[str, OAuthProvider] = Depends(get_oauth_providers),
    svc: SignInService = Depends(_signin_svc),
):
    """Finish the provider round-trip and reconcile the external identity."""
    client = _provider(providers, provider)
    log = logger.bind(provider=provider)

    if error or not code or not state:
        log.info("oauth.callback_denied", error=error)
        raise Unauthenticated("Sign-in denied")

    try:
        payload = verify_token(state, expected_type=OAUTH_STATE)
    except TokenError as e:
        log.info("oauth.bad_state", error=str(e))
        raise Unauthenticated("Sign-in denied")
    if payload.get("provider") != provider:
        log.info("oauth.bad_state", error="provider mismatch")
        raise Unauthenticated("Sign-in denied")

    try:
        claims = await client.exchange(code)
    except OAuthProviderError as e:
        log.info("oauth.exchange_rejected", error=str(e))
        raise Unauthenticated("Sign-in denied")
    except httpx.HTTPError as e:
        log.error("oauth.provider_unavailable", error=str(e))
        raise Internal("Sign-in provider unavailable")

    tokens = await svc.sign_in(OAuthSignIn(provider=provider, claims=claims))
    return TokenResponse(**asdict(tokens))


# ─── Session read ───────────────────────────────────────


@router.get("/me", response_model=SessionRead)
async def get_me(
    session: SessionView = Depends(get_current_session),
    svc: IdentityService = Depends(_identity_svc),
):
    """Current identity. `role` is the session's cached copy, not the row's."""
    try:
        identity = await svc.get_identity(session.identity_id)
    except NotFound:
        raise Unauthenticated("Session identity no longer exists")

    return SessionRead(
        id=identity.id,
        name=identity.name,
        email=identity.email,
        image=identity.image,
        role=session.role.value,
        created_at=identity.created_at,
    )
