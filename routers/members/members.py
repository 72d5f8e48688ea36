from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.db import get_db
from routers.dependencies import get_current_claims, get_current_member

from .schemas import (
    AddBookRequest,
    BookResponse,
    MemberProfileResponse,
    SignupRequest,
    WithdrawResponse,
)
from .service import add_book as service_add_book
from .service import get_profile as service_get_profile
from .service import signup as service_signup
from .service import withdraw as service_withdraw

router = APIRouter(prefix="/members", tags=["Members"])


@router.post("", response_model=MemberProfileResponse, status_code=status.HTTP_201_CREATED)
def signup(
    request: SignupRequest,
    claims: dict = Depends(get_current_claims),
    db: Session = Depends(get_db),
):
    """Create the member profile for the authenticated identity"""
    return service_signup(db, claims=claims, request=request)


@router.get("/me", response_model=MemberProfileResponse)
def get_me(
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    return service_get_profile(db, member=member)


@router.post("/me/books", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
def add_book(
    request: AddBookRequest,
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    """Register a book the member has read"""
    return service_add_book(db, member=member, request=request)


@router.post("/withdraw", response_model=WithdrawResponse)
def withdraw(
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    return service_withdraw(db, member=member)
