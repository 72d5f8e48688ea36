"""Notification facade for other domains."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


async def notify_safely(
    db: Session,
    *,
    notification_type: str,
    recipient_id: int,
    match_id: Optional[int] = None,
    actor_id: Optional[int] = None,
):
    """
    Record and push a notification without ever raising.

    Call only after the primary transaction has committed; a failure here is
    logged and the notification is dropped.
    """
    from routers.notifications import service as notifications_service

    try:
        return await notifications_service.notify(
            db,
            notification_type=notification_type,
            recipient_id=recipient_id,
            match_id=match_id,
            actor_id=actor_id,
        )
    except Exception as e:
        db.rollback()
        logger.error(
            f"Failed to notify member {recipient_id} ({notification_type}, match={match_id}): {e}",
            exc_info=True,
        )
        return None
