#!/usr/bin/env python3
"""
taskgate Quickstart — a user's whole day in one script.

Registers → signs in → schedules tasks → completes one → reads the
notification window → updates the profile.
Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running: http://localhost:8000
"""

from datetime import datetime, timedelta, timezone

from _common import create_client


def main():
    client = create_client("quickstart")
    now = datetime.now(timezone.utc)

    # ── Who am I ──────────────────────────────────────────────────
    me = client.get("/auth/me").json()
    print(f"\n1. Signed in as {me['email']} (role {me['role']})")

    # ── Schedule tasks ────────────────────────────────────────────
    print("\n2. Scheduling tasks...")
    plan = [
        ("Stand-up", 1),
        ("Review pull requests", 3),
        ("Quarterly planning", 26),
    ]
    tasks = []
    for title, hours in plan:
        resp = client.post("/tasks", json={
            "title": title,
            "scheduled_at": (now + timedelta(hours=hours)).isoformat(),
        })
        assert resp.status_code == 201, f"Failed: {resp.text}"
        tasks.append(resp.json())
        print(f"   #{tasks[-1]['id']} {title} (in {hours}h)")

    # ── Complete one ──────────────────────────────────────────────
    print("\n3. Completing the stand-up...")
    resp = client.patch(f"/tasks/{tasks[0]['id']}", json={"completed": True})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   completed_at: {resp.json()['completed_at']}")

    # ── Notifications ─────────────────────────────────────────────
    print("\n4. Notification window...")
    window = client.get("/notifications").json()
    print("   Due soon:")
    for task in window["upcoming"]:
        print(f"     - {task['title']} at {task['scheduled_at']}")
    print("   Recently completed:")
    for task in window["recently_completed"]:
        print(f"     - {task['title']}")

    # ── Profile ───────────────────────────────────────────────────
    print("\n5. Updating profile...")
    resp = client.patch("/profile", json={"name": "Quickstart Hero"})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   Name is now: {resp.json()['name']}")

    # ── Someone else's task ───────────────────────────────────────
    other = create_client("intruder")
    resp = other.delete(f"/tasks/{tasks[1]['id']}")
    print(f"\n6. Another user deleting task #{tasks[1]['id']}: {resp.status_code} {resp.json()['error']}")

    print("\nDone.")


if __name__ == "__main__":
    main()
