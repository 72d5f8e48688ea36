from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.db import get_db
from routers.dependencies import get_current_member

from .schemas import (
    CreateMatchRequest,
    MatchActionRequest,
    MatchListItem,
    MatchListResponse,
    MatchRequestResponse,
)
from .service import accept_match_request as service_accept_match_request
from .service import create_match_request as service_create_match_request
from .service import get_match_request as service_get_match_request
from .service import list_matches as service_list_matches
from .service import list_received_requests as service_list_received_requests
from .service import list_sent_requests as service_list_sent_requests
from .service import reject_match_request as service_reject_match_request

router = APIRouter(prefix="/matches", tags=["Matches"])


@router.post("/requests", response_model=MatchRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_match_request(
    request: CreateMatchRequest,
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    """Send a letter to another member"""
    return await service_create_match_request(
        db, sender=member, receiver_id=request.receiver_id, letter=request.letter
    )


@router.post("/accept", response_model=MatchRequestResponse)
async def accept_match_request(
    request: MatchActionRequest,
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    return await service_accept_match_request(db, request_id=request.request_id, member=member)


@router.post("/reject", response_model=MatchRequestResponse)
def reject_match_request(
    request: MatchActionRequest,
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    return service_reject_match_request(db, request_id=request.request_id, member=member)


@router.get("/sent", response_model=MatchListResponse)
def list_sent_requests(
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    return service_list_sent_requests(db, member=member)


@router.get("/received", response_model=MatchListResponse)
def list_received_requests(
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    return service_list_received_requests(db, member=member)


@router.get("/matched", response_model=MatchListResponse)
def list_matches(
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    """Accepted matches of this cycle; unlocked ones carry the partner's contact"""
    return service_list_matches(db, member=member)


@router.get("/requests/{request_id}", response_model=MatchListItem)
def get_match_request(
    request_id: int,
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    return service_get_match_request(db, request_id=request_id, member=member)
