"""Notification window tests.

Learn: notification_window() is pure, so the boundary cases use plain
Task objects and a fixed clock. One API test checks the wiring.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from conftest import bearer, register_and_login
from taskgate.db.models import Task
from taskgate.services.notifications import notification_window

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
OWNER = uuid.uuid4()


def _task(title, hours, completed=False, completed_hours_ago=None):
    return Task(
        owner_id=OWNER,
        title=title,
        description="",
        scheduled_at=NOW + timedelta(hours=hours),
        completed=completed,
        completed_at=(
            NOW - timedelta(hours=completed_hours_ago)
            if completed_hours_ago is not None
            else None
        ),
    )


def _titles(tasks):
    return [t.title for t in tasks]


# ═══════════════════════════════════════════════════════════
# Upcoming
# ═══════════════════════════════════════════════════════════


def test_due_in_three_hours_is_upcoming():
    window = notification_window([_task("soon", 3)], NOW)
    assert _titles(window.upcoming) == ["soon"]


def test_due_in_five_hours_is_not_upcoming():
    window = notification_window([_task("later", 5)], NOW)
    assert window.upcoming == []


def test_window_bounds_are_inclusive():
    window = notification_window([_task("now", 0), _task("edge", 4)], NOW)
    assert _titles(window.upcoming) == ["now", "edge"]


def test_overdue_is_not_upcoming():
    window = notification_window([_task("overdue", -0.5)], NOW)
    assert window.upcoming == []


def test_completed_is_never_upcoming():
    window = notification_window([_task("done", 1, completed=True)], NOW)
    assert window.upcoming == []


def test_upcoming_sorted_earliest_first():
    window = notification_window(
        [_task("c", 3.5), _task("a", 0.5), _task("b", 2)], NOW
    )
    assert _titles(window.upcoming) == ["a", "b", "c"]


def test_naive_datetimes_treated_as_utc():
    task = _task("naive", 1)
    task.scheduled_at = task.scheduled_at.replace(tzinfo=None)
    window = notification_window([task], NOW)
    assert _titles(window.upcoming) == ["naive"]


# ═══════════════════════════════════════════════════════════
# Recently completed
# ═══════════════════════════════════════════════════════════


def test_recently_completed_most_recent_first_and_capped():
    tasks = [
        _task(f"done-{i}", -10, completed=True, completed_hours_ago=i)
        for i in (7, 1, 3, 6, 2, 5, 4)
    ]
    window = notification_window(tasks, NOW)
    assert _titles(window.recently_completed) == [
        "done-1", "done-2", "done-3", "done-4", "done-5",
    ]


def test_recently_completed_limit_is_configurable():
    tasks = [_task(f"d{i}", -1, completed=True, completed_hours_ago=i) for i in range(4)]
    window = notification_window(tasks, NOW, limit=2)
    assert _titles(window.recently_completed) == ["d0", "d1"]


def test_completed_without_timestamp_sorts_last():
    tasks = [
        _task("unstamped", -1, completed=True),
        _task("stamped", -1, completed=True, completed_hours_ago=30),
    ]
    window = notification_window(tasks, NOW)
    assert _titles(window.recently_completed) == ["stamped", "unstamped"]


def test_custom_horizon():
    window = notification_window([_task("t", 5)], NOW, horizon=timedelta(hours=6))
    assert _titles(window.upcoming) == ["t"]


# ═══════════════════════════════════════════════════════════
# API
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_notifications_endpoint(client):
    _, tokens = await register_and_login(client)
    headers = bearer(tokens["access_token"])
    now = datetime.now(timezone.utc)

    soon = await client.post(
        "/api/v1/tasks",
        json={"title": "soon", "scheduled_at": (now + timedelta(hours=1)).isoformat()},
        headers=headers,
    )
    await client.post(
        "/api/v1/tasks",
        json={"title": "far", "scheduled_at": (now + timedelta(hours=8)).isoformat()},
        headers=headers,
    )
    done = await client.post(
        "/api/v1/tasks",
        json={"title": "done", "scheduled_at": (now + timedelta(hours=2)).isoformat()},
        headers=headers,
    )
    await client.patch(
        f"/api/v1/tasks/{done.json()['id']}", json={"completed": True}, headers=headers
    )

    r = await client.get("/api/v1/notifications", headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert [t["id"] for t in body["upcoming"]] == [soon.json()["id"]]
    assert [t["title"] for t in body["recently_completed"]] == ["done"]


@pytest.mark.asyncio
async def test_notifications_require_session(client):
    r = await client.get("/api/v1/notifications")
    assert r.status_code == 401
