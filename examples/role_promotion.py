#!/usr/bin/env python3
"""
Role promotion — how a role change reaches a signed-in user.

The role in an access token is a cached copy. After an admin promotes a
user, the user's existing token still says USER; a refresh (or a fresh
sign-in) picks up SUPER.

First create an operator account:
    taskgate create-super --email admin@example.com
Then run with: python examples/role_promotion.py admin@example.com <password>
"""

import sys

from _common import check_backend, client_for, login, register_user


def main():
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(1)

    check_backend()
    admin = client_for(login(sys.argv[1], sys.argv[2])["access_token"])

    email, password = register_user("promoted")
    tokens = login(email, password)
    user = client_for(tokens["access_token"])
    me = user.get("/auth/me").json()
    print(f"\n1. {me['email']} signed in with role {me['role']}")

    resp = admin.patch(f"/admin/identities/{me['id']}", json={"role": "SUPER"})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"2. Admin set role → {resp.json()['role']}")

    stale = user.get("/admin/identities")
    print(f"3. Old token on /admin/identities: {stale.status_code} (role still cached as USER)")

    resp = user.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    fresh = client_for(resp.json()["access_token"])
    print(f"4. After refresh, /admin/identities: {fresh.get('/admin/identities').status_code}")


if __name__ == "__main__":
    main()
