from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.db import get_db
from routers.dependencies import get_current_member

from .schemas import ApplicationResponse, CandidateListResponse, CurrentApplicationResponse
from .service import apply as service_apply
from .service import cancel_application as service_cancel_application
from .service import get_current_application as service_get_current_application
from .service import list_candidates as service_list_candidates

router = APIRouter(prefix="/applications", tags=["Applications"])


@router.post("", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
def apply(
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    """Register for the batch that is currently open for applications"""
    return service_apply(db, member=member)


@router.post("/cancel")
def cancel_application(
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    return service_cancel_application(db, member=member)


@router.get("/current", response_model=CurrentApplicationResponse)
def get_current_application(
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    return service_get_current_application(db, member=member)


@router.get("/candidates", response_model=CandidateListResponse)
def list_candidates(
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    """Candidates in the batch being matched; empty outside the matching phase"""
    return service_list_candidates(db, member=member)
