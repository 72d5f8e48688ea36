"""Members domain repository layer."""

from datetime import datetime
from typing import List

from sqlalchemy.orm import Session


def get_member_by_id(db: Session, member_id: int):
    from models import Member

    return db.query(Member).filter(Member.id == member_id).first()


def get_member_by_external_id(db: Session, external_id: str):
    from models import Member

    return db.query(Member).filter(Member.external_id == external_id).first()


def get_members_by_ids(db: Session, member_ids: List[int]):
    from models import Member

    if not member_ids:
        return []
    return db.query(Member).filter(Member.id.in_(member_ids)).all()


def create_member(
    db: Session, *, external_id: str, nickname: str, gender: str, contact_handle: str
):
    from models import Member

    member = Member(
        external_id=external_id,
        nickname=nickname,
        gender=gender,
        contact_handle=contact_handle,
    )
    db.add(member)
    return member


def list_books(db: Session, *, member_id: int):
    from models import MemberBook

    return (
        db.query(MemberBook)
        .filter(MemberBook.member_id == member_id)
        .order_by(MemberBook.created_at, MemberBook.id)
        .all()
    )


def get_book(db: Session, *, member_id: int, isbn: str):
    from models import MemberBook

    return (
        db.query(MemberBook)
        .filter(MemberBook.member_id == member_id, MemberBook.isbn == isbn)
        .first()
    )


def create_book(db: Session, *, member_id: int, isbn: str, title: str):
    from models import MemberBook

    book = MemberBook(member_id=member_id, isbn=isbn, title=title)
    db.add(book)
    return book


def list_candidate_members(
    db: Session, *, member_ids: List[int], gender: str, exclude_member_id: int
):
    from sqlalchemy import exists

    from models import Member, MemberBook

    if not member_ids:
        return []

    has_book = exists().where(MemberBook.member_id == Member.id)
    return (
        db.query(Member)
        .filter(
            Member.id.in_(member_ids),
            Member.id != exclude_member_id,
            Member.gender == gender,
            Member.external_id.isnot(None),
            has_book,
        )
        .order_by(Member.id)
        .all()
    )


def withdraw_member(db: Session, *, member_id: int, now: datetime) -> int:
    from models import Member

    return (
        db.query(Member)
        .filter(Member.id == member_id, Member.external_id.isnot(None))
        .update(
            {
                Member.external_id: None,
                Member.contact_handle: None,
                Member.push_token: None,
                Member.withdrawn_at: now,
            },
            synchronize_session=False,
        )
    )


def set_push_token(db: Session, *, member_id: int, push_token: str) -> int:
    from models import Member

    return (
        db.query(Member)
        .filter(Member.id == member_id, Member.external_id.isnot(None))
        .update({Member.push_token: push_token}, synchronize_session=False)
    )


def clear_push_token(db: Session, *, member_id: int, push_token: str) -> int:
    from models import Member

    # Only clear the token that failed; a newer registration is left alone
    return (
        db.query(Member)
        .filter(Member.id == member_id, Member.push_token == push_token)
        .update({Member.push_token: None}, synchronize_session=False)
    )


def consume_welcome_coupon(db: Session, *, member_id: int) -> int:
    from models import Member

    return (
        db.query(Member)
        .filter(Member.id == member_id, Member.has_welcome_coupon == True)
        .update({Member.has_welcome_coupon: False}, synchronize_session=False)
    )


def restore_welcome_coupon(db: Session, *, member_id: int) -> int:
    from models import Member

    return (
        db.query(Member)
        .filter(Member.id == member_id, Member.has_welcome_coupon == False)
        .update({Member.has_welcome_coupon: True}, synchronize_session=False)
    )


def consume_free_reveal(db: Session, *, member_id: int) -> int:
    from models import Member

    return (
        db.query(Member)
        .filter(Member.id == member_id, Member.free_reveals_count > 0)
        .update(
            {Member.free_reveals_count: Member.free_reveals_count - 1},
            synchronize_session=False,
        )
    )


def get_free_reveals_count(db: Session, *, member_id: int) -> int:
    from models import Member

    value = db.query(Member.free_reveals_count).filter(Member.id == member_id).scalar()
    return value or 0
