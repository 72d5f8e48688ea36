import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.db import get_db
from routers.dependencies import get_current_member

from .schemas import MarkReadRequest, NotificationListResponse, RegisterPushTokenRequest
from .service import get_notifications as service_get_notifications
from .service import mark_all_notifications_read as service_mark_all_notifications_read
from .service import mark_notifications_read as service_mark_notifications_read
from .service import register_push_token as service_register_push_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse)
def get_notifications(
    limit: int = Query(
        50, ge=1, le=100, description="Maximum number of notifications to return"
    ),
    offset: int = Query(0, ge=0, description="Number of notifications to skip"),
    unread_only: bool = Query(
        False, description="If true, only return unread notifications"
    ),
    current_cycle_only: bool = Query(
        False, description="If true, only return notifications from the current weekly cycle"
    ),
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    """
    Get notifications for the current member, newest first.
    """
    return service_get_notifications(
        db,
        member=member,
        limit=limit,
        offset=offset,
        unread_only=unread_only,
        current_cycle_only=current_cycle_only,
    )


@router.put("/mark-read", response_model=dict)
def mark_notifications_read(
    request: MarkReadRequest,
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    """
    Mark one or more notifications as read.
    """
    return service_mark_notifications_read(db, member=member, request=request)


@router.put("/mark-all-read", response_model=dict)
def mark_all_notifications_read(
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    return service_mark_all_notifications_read(db, member=member)


@router.post("/token")
def register_push_token(
    request: RegisterPushTokenRequest,
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    """Register the device's OneSignal player ID for push delivery"""
    return service_register_push_token(db, member=member, request=request)
