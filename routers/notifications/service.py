"""Notifications domain service layer."""

import logging
from typing import Optional

import config
from core.errors import NotFoundError, ValidationError
from core.members import clear_push_token, get_members_by_ids, set_push_token
from models import NotificationType
from utils import cycle_clock
from utils.onesignal_client import PUSH_ERROR, PushResult, send_push_notification_async

from . import repository as notifications_repository
from .schemas import (
    MarkReadRequest,
    NotificationListResponse,
    NotificationResponse,
    RegisterPushTokenRequest,
)

logger = logging.getLogger(__name__)

# heading, body template, client path opened on click
PUSH_TEMPLATES = {
    NotificationType.MATCH_REQUEST: (
        "New match request",
        "{actor} sent you a letter.",
        "/mailbox",
    ),
    NotificationType.MATCH_ACCEPTED: (
        "Match accepted",
        "{actor} accepted your match request.",
        "/mailbox",
    ),
    NotificationType.CONTACT_REVEALED: (
        "Contact revealed",
        "{actor} unlocked the contact details for your match.",
        "/mailbox",
    ),
}


def _utcnow():
    return cycle_clock.to_utc_naive(cycle_clock.now())


async def notify(
    db,
    *,
    notification_type: str,
    recipient_id: int,
    match_id: Optional[int] = None,
    actor_id: Optional[int] = None,
):
    """
    Store a notification for ``recipient_id`` and try to push it.

    The record is committed before the push is attempted. The delivery outcome is
    written to ``metadata["push"]``; a token the provider rejects is cleared from
    the member so it is not retried.
    """
    if notification_type not in PUSH_TEMPLATES:
        raise ValueError(f"Unknown notification type: {notification_type}")

    notification = notifications_repository.create_notification(
        db,
        recipient_id=recipient_id,
        notification_type=notification_type,
        match_id=match_id,
        sender_id=actor_id,
        now=_utcnow(),
    )
    db.commit()
    db.refresh(notification)

    member_ids = [recipient_id] + ([actor_id] if actor_id else [])
    members = get_members_by_ids(db, member_ids=member_ids)
    recipient = members.get(recipient_id)
    actor = members.get(actor_id) if actor_id else None
    push_token = recipient.push_token if recipient else None

    heading, template, path = PUSH_TEMPLATES[notification_type]
    try:
        result = await send_push_notification_async(
            [push_token] if push_token else [],
            heading,
            template.format(actor=actor.nickname if actor else "Someone"),
            data={
                "type": notification_type,
                "notification_id": notification.id,
                "match_id": match_id,
            },
            url=f"{config.CLIENT_APP_URL.rstrip('/')}{path}",
        )
    except Exception as e:
        logger.error(f"Push delivery failed for notification {notification.id}: {e}", exc_info=True)
        result = PushResult(status=PUSH_ERROR, error=type(e).__name__)

    # Reassigned so the JSON column is flagged dirty
    notification.meta = {**(notification.meta or {}), "push": result.as_metadata()}

    if push_token and push_token in result.invalid_player_ids:
        if clear_push_token(db, member_id=recipient_id, push_token=push_token):
            logger.info(f"Removed invalid push token for member {recipient_id}")

    db.commit()
    logger.info(
        f"Notification {notification.id} ({notification_type}) -> member {recipient_id} | push={result.status}"
    )
    return notification


def get_notifications(
    db,
    *,
    member,
    limit: int,
    offset: int,
    unread_only: bool,
    current_cycle_only: bool,
) -> NotificationListResponse:
    since = None
    if current_cycle_only:
        since = cycle_clock.to_utc_naive(cycle_clock.interaction_cycle_start(cycle_clock.now()))

    total, unread_count = notifications_repository.get_notification_counts(
        db, recipient_id=member.id, since=since
    )
    if unread_only:
        total = unread_count

    notifications = notifications_repository.list_notifications(
        db,
        recipient_id=member.id,
        limit=limit,
        offset=offset,
        unread_only=unread_only,
        since=since,
    )

    senders = get_members_by_ids(
        db, member_ids=[n.sender_id for n in notifications if n.sender_id is not None]
    )

    return NotificationListResponse(
        notifications=[
            NotificationResponse(
                id=n.id,
                type=n.type,
                match_id=n.match_id,
                sender_id=n.sender_id,
                sender_nickname=senders[n.sender_id].nickname if n.sender_id in senders else None,
                is_read=n.is_read,
                read_at=n.read_at.isoformat() if n.read_at else None,
                metadata=n.meta or {},
                created_at=n.created_at.isoformat(),
            )
            for n in notifications
        ],
        total=total,
        unread_count=unread_count,
    )


def mark_notifications_read(db, *, member, request: MarkReadRequest):
    if not request.notification_ids:
        raise ValidationError("notification_ids cannot be empty")

    notification_ids = list(set(request.notification_ids))
    notifications_count = notifications_repository.count_notifications_for_member_by_ids(
        db, recipient_id=member.id, notification_ids=notification_ids
    )
    if notifications_count != len(notification_ids):
        raise NotFoundError("One or more notifications not found or not owned by member")

    updated_count = notifications_repository.mark_notifications_read(
        db, recipient_id=member.id, notification_ids=notification_ids, now=_utcnow()
    )
    db.commit()

    return {
        "message": f"Marked {updated_count} notification(s) as read",
        "marked_count": updated_count,
    }


def mark_all_notifications_read(db, *, member):
    updated_count = notifications_repository.mark_all_notifications_read(
        db, recipient_id=member.id, now=_utcnow()
    )
    db.commit()

    return {
        "message": f"Marked {updated_count} notification(s) as read",
        "marked_count": updated_count,
    }


def register_push_token(db, *, member, request: RegisterPushTokenRequest):
    push_token = request.push_token.strip()
    if not push_token:
        raise ValidationError("push_token cannot be empty")

    set_push_token(db, member_id=member.id, push_token=push_token)
    db.commit()

    logger.info(f"Registered push token for member {member.id}")
    return {"success": True}
