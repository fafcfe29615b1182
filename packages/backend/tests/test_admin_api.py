"""Admin API tests — listing identities and changing roles.

Learn: Covers the role gate at the HTTP edge (401 / 403 / 200) and the
documented staleness of the role cached in a token: a promotion reaches
the promoted user only after they sign in again or refresh.
"""

import uuid

import pytest

from conftest import bearer, login, register_and_login, super_tokens


# ═══════════════════════════════════════════════════════════
# Access control
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_admin_requires_session(client):
    r = await client.get("/api/v1/admin/identities")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_user_cannot_list_identities(client):
    _, tokens = await register_and_login(client)
    r = await client.get("/api/v1/admin/identities", headers=bearer(tokens["access_token"]))
    assert r.status_code == 403
    assert r.json()["error"] == "Forbidden"


@pytest.mark.asyncio
async def test_user_cannot_set_role(client):
    """A USER caller trying to promote anyone → Forbidden, nothing changes."""
    target, _ = await register_and_login(client, "target")
    _, tokens = await register_and_login(client, "caller")

    r = await client.patch(
        f"/api/v1/admin/identities/{target['id']}",
        json={"role": "SUPER"},
        headers=bearer(tokens["access_token"]),
    )
    assert r.status_code == 403

    target_tokens = await login(client, target["email"])
    me = await client.get("/api/v1/auth/me", headers=bearer(target_tokens["access_token"]))
    assert me.json()["role"] == "USER"


@pytest.mark.asyncio
async def test_super_lists_identities(client, database):
    user, _ = await register_and_login(client)
    admin, tokens = await super_tokens(client, database)

    r = await client.get("/api/v1/admin/identities", headers=bearer(tokens["access_token"]))
    assert r.status_code == 200
    rows = {row["id"]: row for row in r.json()}
    assert rows[user["id"]]["role"] == "USER"
    assert rows[admin["id"]]["role"] == "SUPER"
    assert set(rows[user["id"]]) == {"id", "name", "email", "role", "created_at"}


# ═══════════════════════════════════════════════════════════
# Role changes
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_promotion_visible_only_after_reauthentication(client, database):
    """The target's existing token keeps USER until they sign in again."""
    target, target_tokens = await register_and_login(client, "promoted")
    _, admin_tokens = await super_tokens(client, database)

    r = await client.patch(
        f"/api/v1/admin/identities/{target['id']}",
        json={"role": "SUPER"},
        headers=bearer(admin_tokens["access_token"]),
    )
    assert r.status_code == 200
    assert r.json() == {"id": target["id"], "role": "SUPER"}

    stale = await client.get("/api/v1/auth/me", headers=bearer(target_tokens["access_token"]))
    assert stale.json()["role"] == "USER"
    denied = await client.get(
        "/api/v1/admin/identities", headers=bearer(target_tokens["access_token"])
    )
    assert denied.status_code == 403

    fresh_tokens = await login(client, target["email"])
    fresh = await client.get("/api/v1/auth/me", headers=bearer(fresh_tokens["access_token"]))
    assert fresh.json()["role"] == "SUPER"


@pytest.mark.asyncio
async def test_promotion_picked_up_on_refresh(client, database):
    target, target_tokens = await register_and_login(client, "refreshed")
    _, admin_tokens = await super_tokens(client, database)

    await client.patch(
        f"/api/v1/admin/identities/{target['id']}",
        json={"role": "SUPER"},
        headers=bearer(admin_tokens["access_token"]),
    )

    r = await client.post(
        "/api/v1/auth/refresh",
        json={"refresh_token": target_tokens["refresh_token"]},
    )
    assert r.status_code == 200
    allowed = await client.get(
        "/api/v1/admin/identities", headers=bearer(r.json()["access_token"])
    )
    assert allowed.status_code == 200


@pytest.mark.asyncio
async def test_set_role_is_idempotent(client, database):
    target, _ = await register_and_login(client, "same")
    _, tokens = await super_tokens(client, database)

    for _ in range(2):
        r = await client.patch(
            f"/api/v1/admin/identities/{target['id']}",
            json={"role": "USER"},
            headers=bearer(tokens["access_token"]),
        )
        assert r.status_code == 200
        assert r.json()["role"] == "USER"


@pytest.mark.asyncio
async def test_demotion(client, database):
    admin, tokens = await super_tokens(client, database)
    other, _ = await super_tokens(client, database)

    r = await client.patch(
        f"/api/v1/admin/identities/{other['id']}",
        json={"role": "USER"},
        headers=bearer(tokens["access_token"]),
    )
    assert r.status_code == 200
    assert r.json()["role"] == "USER"


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{"role": "ROOT"}, {"role": ""}, {"role": "super"}, {}])
async def test_set_invalid_role(client, database, body):
    target, _ = await register_and_login(client, "invalid")
    _, tokens = await super_tokens(client, database)

    r = await client.patch(
        f"/api/v1/admin/identities/{target['id']}",
        json=body,
        headers=bearer(tokens["access_token"]),
    )
    assert r.status_code == 400
    assert r.json() == {"error": "Validation", "detail": "Invalid role"}


@pytest.mark.asyncio
async def test_set_role_unknown_identity(client, database):
    _, tokens = await super_tokens(client, database)
    r = await client.patch(
        f"/api/v1/admin/identities/{uuid.uuid4()}",
        json={"role": "SUPER"},
        headers=bearer(tokens["access_token"]),
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_set_role_malformed_id(client, database):
    """A malformed id is just another identity that doesn't exist."""
    _, tokens = await super_tokens(client, database)
    r = await client.patch(
        "/api/v1/admin/identities/not-an-id",
        json={"role": "SUPER"},
        headers=bearer(tokens["access_token"]),
    )
    assert r.status_code == 404
    assert r.json()["error"] == "NotFound"
