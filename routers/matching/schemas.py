"""Matching domain schemas."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# ======== Cycle ========


class CycleResponse(BaseModel):
    phase: str
    now: datetime
    current_batch_start: date
    target_batch_start: date
    application_window_start: datetime
    application_window_end: datetime
    interaction_cycle_start: datetime
    phase_ends_at: datetime


# ======== Applications ========


class ApplicationResponse(BaseModel):
    id: int
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class CurrentApplicationResponse(BaseModel):
    phase: str
    batch_start: date
    window_start: datetime
    window_end: datetime
    application: Optional[ApplicationResponse] = None


class CandidateResponse(BaseModel):
    id: int
    nickname: str
    gender: str
    book_titles: List[str] = []


class CandidateListResponse(BaseModel):
    phase: str
    batch_start: date
    candidates: List[CandidateResponse]


# ======== Match requests ========


class CreateMatchRequest(BaseModel):
    receiver_id: int = Field(..., description="Member the letter is addressed to")
    letter: str = Field(..., description="Letter shown to the receiver")


class MatchActionRequest(BaseModel):
    request_id: int


class MatchRequestResponse(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    letter: str
    status: str
    is_unlocked: bool
    created_at: datetime
    responded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MatchListItem(BaseModel):
    id: int
    counterpart_id: int
    counterpart_nickname: str
    letter: str
    status: str
    is_unlocked: bool
    created_at: datetime
    responded_at: Optional[datetime] = None
    partner_contact: Optional[str] = None


class MatchListResponse(BaseModel):
    cycle_start: datetime
    items: List[MatchListItem]
