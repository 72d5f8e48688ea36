"""Matching domain repository layer."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, desc, or_
from sqlalchemy.orm import Session

from models import ApplicationStatus, DatingApplication, MatchRequest, MatchStatus


# ======== Match requests ========


def get_match_request(db: Session, request_id: int) -> Optional[MatchRequest]:
    return db.query(MatchRequest).filter(MatchRequest.id == request_id).first()


def create_match_request(
    db: Session, *, sender_id: int, receiver_id: int, letter: str, now: datetime
) -> MatchRequest:
    match_request = MatchRequest(
        sender_id=sender_id,
        receiver_id=receiver_id,
        letter=letter,
        status=MatchStatus.PENDING,
        created_at=now,
    )
    db.add(match_request)
    return match_request


def respond_to_pending(
    db: Session,
    *,
    request_id: int,
    status: str,
    now: datetime,
    sender_contact_snapshot: Optional[str] = None,
    receiver_contact_snapshot: Optional[str] = None,
) -> int:
    values = {MatchRequest.status: status, MatchRequest.responded_at: now}
    if status == MatchStatus.ACCEPTED:
        values[MatchRequest.sender_contact_snapshot] = sender_contact_snapshot
        values[MatchRequest.receiver_contact_snapshot] = receiver_contact_snapshot

    return (
        db.query(MatchRequest)
        .filter(MatchRequest.id == request_id, MatchRequest.status == MatchStatus.PENDING)
        .update(values, synchronize_session=False)
    )


def list_sent(db: Session, *, member_id: int, since: datetime) -> List[MatchRequest]:
    return (
        db.query(MatchRequest)
        .filter(MatchRequest.sender_id == member_id, MatchRequest.created_at >= since)
        .order_by(desc(MatchRequest.created_at), desc(MatchRequest.id))
        .all()
    )


def list_received(db: Session, *, member_id: int, since: datetime) -> List[MatchRequest]:
    return (
        db.query(MatchRequest)
        .filter(MatchRequest.receiver_id == member_id, MatchRequest.created_at >= since)
        .order_by(desc(MatchRequest.created_at), desc(MatchRequest.id))
        .all()
    )


def list_matched(db: Session, *, member_id: int, since: datetime) -> List[MatchRequest]:
    return (
        db.query(MatchRequest)
        .filter(
            or_(MatchRequest.sender_id == member_id, MatchRequest.receiver_id == member_id),
            MatchRequest.status == MatchStatus.ACCEPTED,
            MatchRequest.created_at >= since,
        )
        .order_by(desc(MatchRequest.responded_at), desc(MatchRequest.id))
        .all()
    )


def claim_unlock(
    db: Session, *, request_id: int, claim: str, now: datetime, stale_before: datetime
) -> int:
    return (
        db.query(MatchRequest)
        .filter(
            MatchRequest.id == request_id,
            MatchRequest.status == MatchStatus.ACCEPTED,
            MatchRequest.is_unlocked == False,
            or_(
                MatchRequest.unlock_claim.is_(None),
                MatchRequest.unlock_claimed_at < stale_before,
            ),
        )
        .update(
            {MatchRequest.unlock_claim: claim, MatchRequest.unlock_claimed_at: now},
            synchronize_session=False,
        )
    )


def release_unlock(db: Session, *, request_id: int, claim: str) -> int:
    return (
        db.query(MatchRequest)
        .filter(
            MatchRequest.id == request_id,
            MatchRequest.unlock_claim == claim,
            MatchRequest.is_unlocked == False,
        )
        .update(
            {MatchRequest.unlock_claim: None, MatchRequest.unlock_claimed_at: None},
            synchronize_session=False,
        )
    )


def commit_unlock(db: Session, *, request_id: int, claim: str, transaction_id: str) -> int:
    return (
        db.query(MatchRequest)
        .filter(
            MatchRequest.id == request_id,
            MatchRequest.unlock_claim == claim,
            MatchRequest.is_unlocked == False,
        )
        .update(
            {
                MatchRequest.is_unlocked: True,
                MatchRequest.payment_transaction_id: transaction_id,
                MatchRequest.unlock_claim: None,
                MatchRequest.unlock_claimed_at: None,
            },
            synchronize_session=False,
        )
    )


def hold_for_reconciliation(db: Session, *, request_id: int, hold: str) -> int:
    return (
        db.query(MatchRequest)
        .filter(MatchRequest.id == request_id, MatchRequest.is_unlocked == False)
        .update(
            {MatchRequest.unlock_claim: hold, MatchRequest.unlock_claimed_at: None},
            synchronize_session=False,
        )
    )


def unlock_unclaimed(db: Session, *, request_id: int, transaction_id: str) -> int:
    return (
        db.query(MatchRequest)
        .filter(
            MatchRequest.id == request_id,
            MatchRequest.status == MatchStatus.ACCEPTED,
            MatchRequest.is_unlocked == False,
            MatchRequest.unlock_claim.is_(None),
        )
        .update(
            {
                MatchRequest.is_unlocked: True,
                MatchRequest.payment_transaction_id: transaction_id,
            },
            synchronize_session=False,
        )
    )


# ======== Applications ========


def _in_window(start: datetime, end: datetime):
    return and_(DatingApplication.created_at >= start, DatingApplication.created_at <= end)


def get_active_application(
    db: Session, *, member_id: int, start: datetime, end: datetime
) -> Optional[DatingApplication]:
    return (
        db.query(DatingApplication)
        .filter(
            DatingApplication.member_id == member_id,
            DatingApplication.status == ApplicationStatus.ACTIVE,
            _in_window(start, end),
        )
        .first()
    )


def get_latest_application(
    db: Session, *, member_id: int, start: datetime, end: datetime
) -> Optional[DatingApplication]:
    return (
        db.query(DatingApplication)
        .filter(DatingApplication.member_id == member_id, _in_window(start, end))
        .order_by(desc(DatingApplication.created_at), desc(DatingApplication.id))
        .first()
    )


def create_application(
    db: Session, *, member_id: int, batch_key: str, now: datetime
) -> DatingApplication:
    application = DatingApplication(
        member_id=member_id, status=ApplicationStatus.ACTIVE, batch_key=batch_key, created_at=now
    )
    db.add(application)
    return application


_CANCELLED = {DatingApplication.status: ApplicationStatus.CANCELLED, DatingApplication.batch_key: None}


def cancel_active_application(
    db: Session, *, member_id: int, start: datetime, end: datetime
) -> int:
    return (
        db.query(DatingApplication)
        .filter(
            DatingApplication.member_id == member_id,
            DatingApplication.status == ApplicationStatus.ACTIVE,
            _in_window(start, end),
        )
        .update(_CANCELLED, synchronize_session=False)
    )


def cancel_all_active_applications(db: Session, *, member_id: int) -> int:
    return (
        db.query(DatingApplication)
        .filter(
            DatingApplication.member_id == member_id,
            DatingApplication.status == ApplicationStatus.ACTIVE,
        )
        .update(_CANCELLED, synchronize_session=False)
    )


def list_active_applicant_ids(db: Session, *, start: datetime, end: datetime) -> List[int]:
    rows = (
        db.query(DatingApplication.member_id)
        .filter(DatingApplication.status == ApplicationStatus.ACTIVE, _in_window(start, end))
        .distinct()
        .all()
    )
    return [row[0] for row in rows]
