"""Members domain service layer."""

import logging
from datetime import datetime
from typing import Dict, List

from sqlalchemy.exc import IntegrityError

from core.errors import ConflictError, NotFoundError
from core.matching import cancel_active_applications
from utils.encryption import encrypt_contact_handle

from . import repository as members_repository
from .schemas import (
    AddBookRequest,
    BookResponse,
    MemberProfileResponse,
    SignupRequest,
    WithdrawResponse,
)

logger = logging.getLogger(__name__)


# ======== Internal API (see core.members) ========


def get_member_by_id(db, *, member_id: int):
    return members_repository.get_member_by_id(db, member_id)


def get_member_by_external_id(db, *, external_id: str):
    return members_repository.get_member_by_external_id(db, external_id)


def get_members_by_ids(db, *, member_ids: List[int]) -> Dict[int, object]:
    members = members_repository.get_members_by_ids(db, list(set(member_ids)))
    return {member.id: member for member in members}


def list_candidate_members(db, *, member_ids: List[int], gender: str, exclude_member_id: int):
    return members_repository.list_candidate_members(
        db, member_ids=member_ids, gender=gender, exclude_member_id=exclude_member_id
    )


def set_push_token(db, *, member_id: int, push_token: str) -> bool:
    return members_repository.set_push_token(db, member_id=member_id, push_token=push_token) == 1


def clear_push_token(db, *, member_id: int, push_token: str) -> bool:
    return members_repository.clear_push_token(db, member_id=member_id, push_token=push_token) == 1


def consume_welcome_coupon(db, *, member_id: int) -> bool:
    return members_repository.consume_welcome_coupon(db, member_id=member_id) == 1


def restore_welcome_coupon(db, *, member_id: int) -> bool:
    return members_repository.restore_welcome_coupon(db, member_id=member_id) == 1


def consume_free_reveal(db, *, member_id: int) -> bool:
    return members_repository.consume_free_reveal(db, member_id=member_id) == 1


def get_free_reveals_count(db, *, member_id: int) -> int:
    return members_repository.get_free_reveals_count(db, member_id=member_id)


# ======== Endpoints ========


def _profile_response(db, member) -> MemberProfileResponse:
    books = members_repository.list_books(db, member_id=member.id)
    return MemberProfileResponse(
        id=member.id,
        nickname=member.nickname,
        gender=member.gender,
        has_contact_handle=bool(member.contact_handle),
        has_welcome_coupon=member.has_welcome_coupon,
        free_reveals_count=member.free_reveals_count,
        books=[BookResponse.model_validate(book) for book in books],
        created_at=member.created_at,
    )


def signup(db, *, claims: dict, request: SignupRequest) -> MemberProfileResponse:
    external_id = claims["userId"]
    if members_repository.get_member_by_external_id(db, external_id):
        raise ConflictError("Member profile already exists")

    member = members_repository.create_member(
        db,
        external_id=external_id,
        nickname=request.nickname.strip(),
        gender=request.gender,
        contact_handle=encrypt_contact_handle(request.contact_handle),
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Member profile already exists")
    db.refresh(member)

    logger.info(f"Created member {member.id} for identity {external_id}")
    return _profile_response(db, member)


def get_profile(db, *, member) -> MemberProfileResponse:
    return _profile_response(db, member)


def add_book(db, *, member, request: AddBookRequest) -> BookResponse:
    isbn = request.isbn.replace("-", "").strip()
    if members_repository.get_book(db, member_id=member.id, isbn=isbn):
        raise ConflictError("Book already registered", reason="book_exists")

    book = members_repository.create_book(
        db, member_id=member.id, isbn=isbn, title=request.title.strip()
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Book already registered", reason="book_exists")
    db.refresh(book)
    return BookResponse.model_validate(book)


def withdraw(db, *, member) -> WithdrawResponse:
    """
    Soft-withdraw a member.

    The row stays so past matches and payments keep their references; the identity,
    contact handle and push token are erased and active applications cancelled.
    """
    member_id = member.id
    cancelled = cancel_active_applications(db, member_id=member_id)
    updated = members_repository.withdraw_member(db, member_id=member_id, now=datetime.utcnow())
    if updated != 1:
        db.rollback()
        raise NotFoundError("Member profile not found", reason="member_not_found")
    db.commit()

    logger.info(f"Member {member_id} withdrew ({cancelled} active application(s) cancelled)")
    return WithdrawResponse(success=True, cancelled_applications=cancelled)
