"""Member lookup and mutation facade.

Domains should not query the `Member` model directly. Instead, call these helpers which
delegate to the Members domain internal service API. Mutating helpers only flush through
the caller's session; the caller owns the commit.
"""

from typing import Dict, List

from sqlalchemy.orm import Session


def get_member_by_id(db: Session, *, member_id: int):
    from routers.members import service as members_service

    return members_service.get_member_by_id(db, member_id=member_id)


def get_member_by_external_id(db: Session, *, external_id: str):
    from routers.members import service as members_service

    return members_service.get_member_by_external_id(db, external_id=external_id)


def get_members_by_ids(db: Session, *, member_ids: List[int]) -> Dict[int, object]:
    from routers.members import service as members_service

    return members_service.get_members_by_ids(db, member_ids=member_ids)


def list_candidate_members(
    db: Session, *, member_ids: List[int], gender: str, exclude_member_id: int
):
    from routers.members import service as members_service

    return members_service.list_candidate_members(
        db, member_ids=member_ids, gender=gender, exclude_member_id=exclude_member_id
    )


def set_push_token(db: Session, *, member_id: int, push_token: str) -> bool:
    from routers.members import service as members_service

    return members_service.set_push_token(db, member_id=member_id, push_token=push_token)


def clear_push_token(db: Session, *, member_id: int, push_token: str) -> bool:
    from routers.members import service as members_service

    return members_service.clear_push_token(db, member_id=member_id, push_token=push_token)


def consume_welcome_coupon(db: Session, *, member_id: int) -> bool:
    from routers.members import service as members_service

    return members_service.consume_welcome_coupon(db, member_id=member_id)


def restore_welcome_coupon(db: Session, *, member_id: int) -> bool:
    from routers.members import service as members_service

    return members_service.restore_welcome_coupon(db, member_id=member_id)


def consume_free_reveal(db: Session, *, member_id: int) -> bool:
    from routers.members import service as members_service

    return members_service.consume_free_reveal(db, member_id=member_id)


def get_free_reveals_count(db: Session, *, member_id: int) -> int:
    from routers.members import service as members_service

    return members_service.get_free_reveals_count(db, member_id=member_id)
