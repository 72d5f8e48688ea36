"""Match ledger facade for other domains.

The unlock engine and member withdrawal touch match and application state only
through these helpers. Every write is a conditional update returning whether it
applied; none of them commit.
"""

from datetime import datetime

from sqlalchemy.orm import Session


def get_match_request(db: Session, *, request_id: int):
    from routers.matching import service as matching_service

    return matching_service.get_match_request_by_id(db, request_id=request_id)


def claim_unlock(
    db: Session, *, request_id: int, claim: str, now: datetime, stale_before: datetime
) -> bool:
    from routers.matching import service as matching_service

    return matching_service.claim_unlock(
        db, request_id=request_id, claim=claim, now=now, stale_before=stale_before
    )


def release_unlock(db: Session, *, request_id: int, claim: str) -> bool:
    from routers.matching import service as matching_service

    return matching_service.release_unlock(db, request_id=request_id, claim=claim)


def commit_unlock(
    db: Session, *, request_id: int, claim: str, transaction_id: str
) -> bool:
    from routers.matching import service as matching_service

    return matching_service.commit_unlock(
        db, request_id=request_id, claim=claim, transaction_id=transaction_id
    )


def hold_for_reconciliation(db: Session, *, request_id: int, hold: str) -> bool:
    from routers.matching import service as matching_service

    return matching_service.hold_for_reconciliation(db, request_id=request_id, hold=hold)


def unlock_unclaimed(db: Session, *, request_id: int, transaction_id: str) -> bool:
    from routers.matching import service as matching_service

    return matching_service.unlock_unclaimed(
        db, request_id=request_id, transaction_id=transaction_id
    )


def cancel_active_applications(db: Session, *, member_id: int) -> int:
    from routers.matching import service as matching_service

    return matching_service.cancel_active_applications(db, member_id=member_id)
