"""
Notification dispatch tests: record-then-push, delivery metadata, invalid token cleanup.
"""

import httpx
import pytest

import config
from core.notifications import notify_safely
from models import Member, Notification, NotificationType
from routers.notifications import service as notifications_service
from utils import onesignal_client
from utils.onesignal_client import PUSH_ERROR, PUSH_SENT, PushResult


@pytest.fixture
def members(make_member, freeze_clock):
    freeze_clock(2023, 1, 4, 15, 0)
    actor = make_member(nickname="bookworm")
    recipient = make_member(gender="female", push_token="player-123")
    return actor, recipient


@pytest.mark.asyncio
async def test_notify_records_push_outcome(test_db, members, monkeypatch):
    actor, recipient = members
    calls = []

    async def fake_send(player_ids, heading, content, data=None, url=None):
        calls.append({"player_ids": player_ids, "content": content, "data": data, "url": url})
        return PushResult(status=PUSH_SENT, provider_id="os-1")

    monkeypatch.setattr(notifications_service, "send_push_notification_async", fake_send)

    notification = await notifications_service.notify(
        test_db,
        notification_type=NotificationType.MATCH_REQUEST,
        recipient_id=recipient.id,
        match_id=None,
        actor_id=actor.id,
    )

    assert calls[0]["player_ids"] == ["player-123"]
    assert "bookworm" in calls[0]["content"]
    assert calls[0]["data"]["notification_id"] == notification.id
    assert calls[0]["url"].endswith("/mailbox")

    test_db.expire_all()
    stored = test_db.query(Notification).one()
    assert stored.meta == {"push": {"status": "sent", "provider_id": "os-1"}}
    assert stored.is_read is False


@pytest.mark.asyncio
async def test_invalid_token_is_cleared(test_db, members, monkeypatch):
    actor, recipient = members

    async def fake_send(player_ids, heading, content, data=None, url=None):
        return PushResult(
            status=PUSH_ERROR, error="invalid_player_ids", invalid_player_ids=list(player_ids)
        )

    monkeypatch.setattr(notifications_service, "send_push_notification_async", fake_send)

    await notifications_service.notify(
        test_db,
        notification_type=NotificationType.MATCH_ACCEPTED,
        recipient_id=recipient.id,
        actor_id=actor.id,
    )

    test_db.expire_all()
    assert test_db.query(Member).filter(Member.id == recipient.id).one().push_token is None
    stored = test_db.query(Notification).one()
    assert stored.meta["push"]["status"] == "error"
    assert stored.meta["push"]["invalid_token"] is True


@pytest.mark.asyncio
async def test_push_crash_is_recorded_not_raised(test_db, members, monkeypatch):
    actor, recipient = members

    async def exploding_send(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(notifications_service, "send_push_notification_async", exploding_send)

    await notifications_service.notify(
        test_db,
        notification_type=NotificationType.CONTACT_REVEALED,
        recipient_id=recipient.id,
        actor_id=actor.id,
    )

    test_db.expire_all()
    stored = test_db.query(Notification).one()
    assert stored.meta["push"] == {"status": "error", "error": "RuntimeError"}


@pytest.mark.asyncio
async def test_member_without_token_gets_record_only(test_db, make_member, freeze_clock):
    freeze_clock(2023, 1, 4, 15, 0)
    recipient = make_member(push_token=None)

    await notifications_service.notify(
        test_db, notification_type=NotificationType.MATCH_REQUEST, recipient_id=recipient.id
    )

    # Push is disabled in tests, which is checked before the token
    assert test_db.query(Notification).one().meta["push"]["status"] == "disabled"


@pytest.mark.asyncio
async def test_notify_safely_swallows_failures(test_db, members, monkeypatch):
    _, recipient = members

    async def broken_notify(db, **kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr(notifications_service, "notify", broken_notify)

    result = await notify_safely(
        test_db, notification_type=NotificationType.MATCH_REQUEST, recipient_id=recipient.id
    )
    assert result is None


@pytest.mark.asyncio
async def test_unknown_type_is_rejected_by_notify(test_db, members):
    _, recipient = members

    with pytest.raises(ValueError):
        await notifications_service.notify(
            test_db, notification_type="mystery", recipient_id=recipient.id
        )
    assert test_db.query(Notification).count() == 0


# ======== OneSignal client ========


@pytest.fixture
def onesignal_enabled(monkeypatch):
    monkeypatch.setattr(config, "ONESIGNAL_ENABLED", True)
    monkeypatch.setattr(config, "ONESIGNAL_APP_ID", "app-id")
    monkeypatch.setattr(config, "ONESIGNAL_REST_API_KEY", "rest-key")


def _route_onesignal(monkeypatch, handler):
    real_client = httpx.AsyncClient
    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(
        onesignal_client.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(transport=transport, **kwargs),
    )


@pytest.mark.asyncio
async def test_onesignal_success(onesignal_enabled, monkeypatch):
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json={"id": "notif-1", "recipients": 1})

    _route_onesignal(monkeypatch, handler)

    result = await onesignal_client.send_push_notification_async(["p1"], "Hi", "Body")

    assert result.status == PUSH_SENT
    assert result.provider_id == "notif-1"
    assert seen["auth"] == "Basic rest-key"


@pytest.mark.asyncio
async def test_onesignal_reports_invalid_players(onesignal_enabled, monkeypatch):
    _route_onesignal(
        monkeypatch,
        lambda request: httpx.Response(200, json={"id": "", "errors": {"invalid_player_ids": ["p1"]}}),
    )

    result = await onesignal_client.send_push_notification_async(["p1"], "Hi", "Body")

    assert result.status == PUSH_ERROR
    assert result.invalid_player_ids == ["p1"]


@pytest.mark.asyncio
async def test_onesignal_http_error(onesignal_enabled, monkeypatch):
    _route_onesignal(monkeypatch, lambda request: httpx.Response(400, json={"errors": ["bad"]}))

    result = await onesignal_client.send_push_notification_async(["p1"], "Hi", "Body")

    assert result.status == PUSH_ERROR
    assert result.error == "http_400"


@pytest.mark.asyncio
async def test_onesignal_without_players(onesignal_enabled):
    result = await onesignal_client.send_push_notification_async([], "Hi", "Body")
    assert result.status == "no_token"
