"""Notifications domain repository layer."""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session


def create_notification(
    db: Session,
    *,
    recipient_id: int,
    notification_type: str,
    match_id: Optional[int],
    sender_id: Optional[int],
    now: datetime,
):
    from models import Notification

    notification = Notification(
        recipient_id=recipient_id,
        type=notification_type,
        match_id=match_id,
        sender_id=sender_id,
        is_read=False,
        meta={},
        created_at=now,
    )
    db.add(notification)
    return notification


def _base_query(db: Session, *, recipient_id: int, since: Optional[datetime]):
    from models import Notification

    query = db.query(Notification).filter(Notification.recipient_id == recipient_id)
    if since is not None:
        query = query.filter(Notification.created_at >= since)
    return query


def get_notification_counts(db: Session, *, recipient_id: int, since: Optional[datetime] = None):
    from sqlalchemy import case, func

    from models import Notification

    query = db.query(
        func.count(Notification.id),
        func.sum(case((Notification.is_read == False, 1), else_=0)),
    ).filter(Notification.recipient_id == recipient_id)
    if since is not None:
        query = query.filter(Notification.created_at >= since)

    counts = query.first()
    total = counts[0] if counts and counts[0] is not None else 0
    unread = counts[1] if counts and counts[1] is not None else 0
    return total, unread


def list_notifications(
    db: Session,
    *,
    recipient_id: int,
    limit: int,
    offset: int,
    unread_only: bool,
    since: Optional[datetime] = None,
):
    from sqlalchemy import desc

    from models import Notification

    query = _base_query(db, recipient_id=recipient_id, since=since)
    if unread_only:
        query = query.filter(Notification.is_read == False)

    return (
        query.order_by(desc(Notification.created_at), desc(Notification.id))
        .offset(offset)
        .limit(limit)
        .all()
    )


def count_notifications_for_member_by_ids(db: Session, *, recipient_id: int, notification_ids):
    from sqlalchemy import func

    from models import Notification

    return (
        db.query(func.count(Notification.id))
        .filter(
            Notification.id.in_(notification_ids),
            Notification.recipient_id == recipient_id,
        )
        .scalar()
        or 0
    )


def mark_notifications_read(db: Session, *, recipient_id: int, notification_ids, now):
    from models import Notification

    return (
        db.query(Notification)
        .filter(
            Notification.id.in_(notification_ids),
            Notification.recipient_id == recipient_id,
            Notification.is_read == False,
        )
        .update({Notification.is_read: True, Notification.read_at: now}, synchronize_session=False)
    )


def mark_all_notifications_read(db: Session, *, recipient_id: int, now):
    from models import Notification

    return (
        db.query(Notification)
        .filter(Notification.recipient_id == recipient_id, Notification.is_read == False)
        .update({Notification.is_read: True, Notification.read_at: now}, synchronize_session=False)
    )
