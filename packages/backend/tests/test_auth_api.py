"""Auth API tests — registration, password sign-in, refresh, session read.

Learn: Tests cover:
1. Registration + duplicate prevention (on the canonical email)
2. Browser form registration redirects
3. Login → JWT tokens, with one generic denial for every failure
4. Token refresh
5. Protected /me endpoint
"""

import uuid

import pytest

from conftest import PASSWORD, bearer, login, register, unique_email
from taskgate.auth.jwt import create_access_token, create_refresh_token
from taskgate.identity.store import IdentityStore


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_user(client):
    """Register a new account; it always starts as USER."""
    email = unique_email("reg")
    r = await client.post(
        "/api/v1/auth/register",
        json={"email": email, "name": "Test User", "password": "secret123"},
    )
    assert r.status_code == 201
    user = r.json()
    assert user["email"] == email
    assert user["name"] == "Test User"
    assert user["role"] == "USER"
    assert "id" in user
    assert "password_hash" not in user


@pytest.mark.asyncio
async def test_register_duplicate_email(client):
    """Registering the same email twice → 409."""
    body = {"email": "a@x.com", "password": "secret123"}

    r1 = await client.post("/api/v1/auth/register", json=body)
    assert r1.status_code == 201

    r2 = await client.post("/api/v1/auth/register", json=body)
    assert r2.status_code == 409
    assert r2.json() == {
        "error": "Conflict",
        "detail": "User already exists. Please sign in.",
    }


@pytest.mark.asyncio
async def test_register_duplicate_differs_only_in_case_and_whitespace(client):
    """Emails are compared in canonical form, so case and padding don't dodge the check."""
    r1 = await client.post(
        "/api/v1/auth/register",
        json={"email": "Mixed.Case@Example.com", "password": "secret123"},
    )
    assert r1.status_code == 201
    assert r1.json()["email"] == "mixed.case@example.com"

    r2 = await client.post(
        "/api/v1/auth/register",
        json={"email": "  mixed.case@EXAMPLE.COM ", "password": "secret123"},
    )
    assert r2.status_code == 409


@pytest.mark.asyncio
async def test_register_missing_fields(client):
    r = await client.post("/api/v1/auth/register", json={"email": unique_email()})
    assert r.status_code == 400
    assert r.json()["error"] == "Validation"


@pytest.mark.asyncio
async def test_register_short_password(client):
    """Password must be at least 8 characters."""
    r = await client.post(
        "/api/v1/auth/register",
        json={"email": unique_email("short"), "password": "abc"},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Validation"


@pytest.mark.asyncio
async def test_register_name_too_long(client):
    """Names must fit the 100-character column."""
    r = await client.post(
        "/api/v1/auth/register",
        json={"email": unique_email("long"), "password": PASSWORD, "name": "x" * 101},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Validation"


@pytest.mark.asyncio
async def test_register_malformed_json(client):
    r = await client.post(
        "/api/v1/auth/register",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert r.status_code == 400


# ═══════════════════════════════════════════════════════════
# Form registration (browser sign-up page)
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_form_redirects_to_sign_in(client):
    r = await client.post(
        "/api/v1/auth/register",
        data={"name": "Form User", "email": unique_email("form"), "password": "secret123"},
    )
    assert r.status_code == 303
    assert r.headers["location"] == "/sign-in"


@pytest.mark.asyncio
async def test_register_form_missing_fields(client):
    r = await client.post("/api/v1/auth/register", data={"name": "Nobody"})
    assert r.status_code == 303
    assert r.headers["location"] == "/sign-up?error=missing_fields"


@pytest.mark.asyncio
async def test_register_form_existing_email(client):
    email = unique_email("form-dup")
    await register(client, email)

    r = await client.post(
        "/api/v1/auth/register",
        data={"email": email.upper(), "password": "secret123"},
    )
    assert r.status_code == 303
    assert r.headers["location"] == "/sign-in?error=exists"


@pytest.mark.asyncio
async def test_register_form_short_password(client):
    r = await client.post(
        "/api/v1/auth/register",
        data={"email": unique_email("form-short"), "password": "abc"},
    )
    assert r.status_code == 303
    assert r.headers["location"] == "/sign-up?error=invalid_fields"


@pytest.mark.asyncio
async def test_register_form_name_too_long(client):
    r = await client.post(
        "/api/v1/auth/register",
        data={"name": "x" * 101, "email": unique_email("form-long"), "password": "secret123"},
    )
    assert r.status_code == 303
    assert r.headers["location"] == "/sign-up?error=invalid_fields"


# ═══════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_success(client):
    """Login with valid credentials returns tokens."""
    email = unique_email("login")
    await register(client, email)

    tokens = await login(client, email)
    assert "access_token" in tokens
    assert "refresh_token" in tokens
    assert tokens["token_type"] == "bearer"


@pytest.mark.asyncio
async def test_login_normalises_email(client):
    """Sign-in canonicalises the email the same way registration did."""
    email = unique_email("canon")
    await register(client, email)

    r = await client.post(
        "/api/v1/auth/login",
        json={"email": f"  {email.upper()}  ", "password": PASSWORD},
    )
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_login_wrong_password(client):
    """Wrong password → the same generic 401 as an unknown email."""
    email = unique_email("wrong")
    await register(client, email)

    wrong = await client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": "wrong_password"},
    )
    unknown = await client.post(
        "/api/v1/auth/login",
        json={"email": "nobody@example.com", "password": "whatever"},
    )

    assert wrong.status_code == 401
    assert unknown.status_code == 401
    assert wrong.json() == unknown.json() == {
        "error": "Unauthenticated",
        "detail": "Invalid credentials",
    }


@pytest.mark.asyncio
async def test_login_passwordless_identity_denied(client, store):
    """An OAuth-only identity has no password and can never pass the check."""
    await store.create_identity(email="oauth-only@example.com", name="OAuth Only")

    r = await client.post(
        "/api/v1/auth/login",
        json={"email": "oauth-only@example.com", "password": ""},
    )
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid credentials"


# ═══════════════════════════════════════════════════════════
# Refresh
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_refresh_token(client):
    """A refresh token can be traded for a new pair."""
    email = unique_email("refresh")
    await register(client, email)
    tokens = await login(client, email)

    r = await client.post(
        "/api/v1/auth/refresh",
        json={"refresh_token": tokens["refresh_token"]},
    )
    assert r.status_code == 200
    new_tokens = r.json()

    me = await client.get("/api/v1/auth/me", headers=bearer(new_tokens["access_token"]))
    assert me.status_code == 200
    assert me.json()["email"] == email


@pytest.mark.asyncio
async def test_refresh_rejects_access_token(client):
    """Access tokens can't be used where a refresh token is expected."""
    email = unique_email("wrongtype")
    await register(client, email)
    tokens = await login(client, email)

    r = await client.post(
        "/api/v1/auth/refresh",
        json={"refresh_token": tokens["access_token"]},
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_refresh_for_deleted_identity(client):
    """A valid refresh token whose identity no longer exists is denied."""
    token = create_refresh_token(str(uuid.uuid4()))
    r = await client.post("/api/v1/auth/refresh", json={"refresh_token": token})
    assert r.status_code == 401
    assert r.json()["detail"] == "Sign-in denied"


@pytest.mark.asyncio
async def test_refresh_malformed_subject(client):
    token = create_refresh_token("not-a-uuid")
    r = await client.post("/api/v1/auth/refresh", json={"refresh_token": token})
    assert r.status_code == 401


# ═══════════════════════════════════════════════════════════
# Session read
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_me_with_token(client):
    email = unique_email("me")
    identity = await register(client, email, name="Me Myself")
    tokens = await login(client, email)

    r = await client.get("/api/v1/auth/me", headers=bearer(tokens["access_token"]))
    assert r.status_code == 200
    me = r.json()
    assert me["id"] == identity["id"]
    assert me["name"] == "Me Myself"
    assert me["role"] == "USER"


@pytest.mark.asyncio
async def test_me_without_token(client):
    r = await client.get("/api/v1/auth/me")
    assert r.status_code == 401
    assert r.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_me_with_invalid_token(client):
    r = await client.get("/api/v1/auth/me", headers=bearer("not-a-jwt"))
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_with_refresh_token_rejected(client):
    token = create_refresh_token(str(uuid.uuid4()))
    r = await client.get("/api/v1/auth/me", headers=bearer(token))
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_backfills_missing_role(client, db_session):
    """A token issued without a role gets it from the store on first use."""
    email = unique_email("norole")
    identity = await register(client, email)
    store = IdentityStore(db_session)
    row = await store.get(uuid.UUID(identity["id"]))
    await store.update_identity(row, role="SUPER")

    token = create_access_token(identity["id"])
    r = await client.get("/api/v1/auth/me", headers=bearer(token))
    assert r.status_code == 200
    assert r.json()["role"] == "SUPER"


@pytest.mark.asyncio
async def test_me_for_deleted_identity(client):
    token = create_access_token(str(uuid.uuid4()), role="USER")
    r = await client.get("/api/v1/auth/me", headers=bearer(token))
    assert r.status_code == 401
