"""
Shared helpers for taskgate examples.

Handles the health check and authentication (register + login) so each
example can focus on its specific workflow.
"""

import sys
import uuid

import httpx

BASE = "http://localhost:8000/api/v1"


def check_backend() -> None:
    """Verify the backend is reachable and its database is up."""
    try:
        resp = httpx.get(f"{BASE}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Backend not reachable at {BASE}")
        print("Start it with:  uvicorn taskgate.main:app --reload --port 8000")
        sys.exit(1)

    if resp.status_code != 200:
        print(f"ERROR: Health check returned {resp.status_code}")
        sys.exit(1)

    health = resp.json()
    print("Backend health:")
    print(f"  Database: {'✓' if health['database'] == 'ok' else '✗'}")
    print(f"  Redis:    {'✓' if health['redis'] == 'ok' else '✗ (rate limiting off)'}")

    if health["database"] != "ok":
        print("\nERROR: Database is not reachable. Check TASKGATE_DATABASE_URL.")
        sys.exit(1)


def register_user(label: str = "demo") -> tuple[str, str]:
    """Register a fresh user. Returns (email, password).

    Uses a unique email per run so examples are idempotent.
    """
    run_id = uuid.uuid4().hex[:8]
    email = f"{label}-{run_id}@example.com"
    password = "demo-password-123"

    resp = httpx.post(
        f"{BASE}/auth/register",
        json={"email": email, "name": f"{label.title()} {run_id}", "password": password},
        timeout=10,
    )
    if resp.status_code not in (201, 409):  # 409 = already exists
        print(f"ERROR: Registration failed: {resp.status_code} {resp.text}")
        sys.exit(1)
    return email, password


def login(email: str, password: str) -> dict:
    """Sign in and return the token pair."""
    resp = httpx.post(
        f"{BASE}/auth/login",
        json={"email": email, "password": password},
        timeout=10,
    )
    if resp.status_code != 200:
        print(f"ERROR: Login failed: {resp.status_code} {resp.text}")
        sys.exit(1)
    return resp.json()


def client_for(access_token: str) -> httpx.Client:
    return httpx.Client(
        base_url=BASE,
        timeout=10,
        headers={"Authorization": f"Bearer {access_token}"},
    )


def create_client(label: str = "demo") -> httpx.Client:
    """Check backend, register + sign in a fresh user, return an authed client."""
    check_backend()
    tokens = login(*register_user(label))
    print("  Auth:     ✓ (JWT)")
    return client_for(tokens["access_token"])
