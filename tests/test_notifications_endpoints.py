from datetime import datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.db import get_db
from core.errors import register_error_handlers
from models import Member, Notification, NotificationType
from routers.dependencies import get_current_member
from routers.notifications import notifications as notifications_router


@pytest.fixture
def current_member(make_member, freeze_clock):
    # Saturday 2023-01-07 12:00 KST; the interaction cycle began Friday 00:00 KST
    freeze_clock(2023, 1, 7, 12, 0)
    return make_member(nickname="reader")


@pytest.fixture
def other_member(make_member, current_member):
    return make_member(nickname="writer", gender="female")


@pytest.fixture
def client(test_db, current_member):
    app = FastAPI()
    register_error_handlers(app)
    app.include_router(notifications_router.router)

    def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_member] = lambda: current_member

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides = {}


def _create_notification(
    test_db, recipient_id, *, sender_id=None, read=False, created_at=None,
    notification_type=NotificationType.MATCH_REQUEST,
):
    notification = Notification(
        recipient_id=recipient_id,
        sender_id=sender_id,
        type=notification_type,
        meta={"push": {"status": "sent"}},
        is_read=read,
        read_at=(created_at or datetime(2023, 1, 7, 2, 0)) if read else None,
        created_at=created_at or datetime(2023, 1, 7, 2, 0),
    )
    test_db.add(notification)
    test_db.commit()
    test_db.refresh(notification)
    return notification


def test_list_notifications_counts_and_order(client, test_db, current_member, other_member):
    newest = _create_notification(
        test_db, current_member.id, sender_id=other_member.id, created_at=datetime(2023, 1, 7, 2, 0)
    )
    older = _create_notification(
        test_db, current_member.id, read=True, created_at=datetime(2023, 1, 7, 1, 0)
    )
    _create_notification(test_db, other_member.id, created_at=datetime(2023, 1, 7, 0, 0))

    response = client.get("/notifications", params={"limit": 1})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["unread_count"] == 1
    assert [n["id"] for n in data["notifications"]] == [newest.id]
    assert data["notifications"][0]["sender_nickname"] == "writer"
    assert data["notifications"][0]["metadata"] == {"push": {"status": "sent"}}

    response = client.get("/notifications", params={"limit": 1, "offset": 1})
    assert [n["id"] for n in response.json()["notifications"]] == [older.id]


def test_list_unread_only(client, test_db, current_member):
    unread = _create_notification(test_db, current_member.id)
    _create_notification(test_db, current_member.id, read=True, created_at=datetime(2023, 1, 7, 1, 0))

    data = client.get("/notifications", params={"unread_only": True}).json()

    assert data["total"] == 1
    assert [n["id"] for n in data["notifications"]] == [unread.id]


def test_list_current_cycle_only(client, test_db, current_member):
    # Friday 2023-01-06 00:00 KST is Thursday 15:00 UTC
    in_cycle = _create_notification(test_db, current_member.id, created_at=datetime(2023, 1, 5, 15, 0))
    _create_notification(
        test_db, current_member.id, created_at=datetime(2023, 1, 5, 15, 0) - timedelta(seconds=1)
    )

    data = client.get("/notifications", params={"current_cycle_only": True}).json()

    assert data["total"] == 1
    assert [n["id"] for n in data["notifications"]] == [in_cycle.id]
    assert len(client.get("/notifications").json()["notifications"]) == 2


def test_mark_read_rejects_foreign_ids(client, test_db, current_member, other_member):
    mine = _create_notification(test_db, current_member.id)
    theirs = _create_notification(test_db, other_member.id)

    response = client.put(
        "/notifications/mark-read", json={"notification_ids": [mine.id, theirs.id]}
    )
    assert response.status_code == 404
    assert response.json()["reason"] == "not_found"

    test_db.refresh(mine)
    assert mine.is_read is False


def test_mark_read_and_mark_all(client, test_db, current_member):
    first = _create_notification(test_db, current_member.id)
    second = _create_notification(test_db, current_member.id, created_at=datetime(2023, 1, 7, 1, 0))

    response = client.put("/notifications/mark-read", json={"notification_ids": [first.id, first.id]})
    assert response.status_code == 200
    assert response.json()["marked_count"] == 1

    response = client.put("/notifications/mark-all-read")
    assert response.json()["marked_count"] == 1

    test_db.refresh(second)
    assert second.is_read is True
    assert second.read_at is not None


def test_mark_read_empty_list(client):
    response = client.put("/notifications/mark-read", json={"notification_ids": []})
    assert response.status_code == 400


def test_register_push_token(client, test_db, current_member):
    response = client.post("/notifications/token", json={"push_token": "  player-abc  "})
    assert response.status_code == 200
    assert response.json() == {"success": True}

    test_db.expire_all()
    assert test_db.query(Member).filter(Member.id == current_member.id).one().push_token == "player-abc"


def test_register_blank_push_token(client):
    response = client.post("/notifications/token", json={"push_token": "   "})
    assert response.status_code == 400
