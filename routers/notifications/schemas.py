"""Notifications domain schemas."""

from typing import List, Optional

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    id: int
    type: str
    match_id: Optional[int] = None
    sender_id: Optional[int] = None
    sender_nickname: Optional[str] = None
    is_read: bool
    read_at: Optional[str] = None
    metadata: dict = {}
    created_at: str


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    total: int
    unread_count: int


class MarkReadRequest(BaseModel):
    notification_ids: List[int] = Field(
        ..., description="List of notification IDs to mark as read"
    )


class RegisterPushTokenRequest(BaseModel):
    push_token: str = Field(..., min_length=1, max_length=255, description="OneSignal player ID")
