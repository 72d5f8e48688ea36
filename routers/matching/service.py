"""Matching domain service layer: the weekly cycle, applications and the match ledger."""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError

import config
from core.errors import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from core.members import get_member_by_id, get_members_by_ids, list_candidate_members
from core.notifications import notify_safely
from models import MatchStatus, NotificationType
from utils import cycle_clock
from utils.encryption import decrypt_contact_handle

from . import repository as matching_repository
from .schemas import (
    ApplicationResponse,
    CandidateListResponse,
    CandidateResponse,
    CurrentApplicationResponse,
    CycleResponse,
    MatchListItem,
    MatchListResponse,
    MatchRequestResponse,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return cycle_clock.to_utc_naive(cycle_clock.now())


# ======== Internal API (see core.matching) ========


def get_match_request_by_id(db, *, request_id: int):
    return matching_repository.get_match_request(db, request_id)


def claim_unlock(db, *, request_id: int, claim: str, now: datetime, stale_before: datetime) -> bool:
    return (
        matching_repository.claim_unlock(
            db, request_id=request_id, claim=claim, now=now, stale_before=stale_before
        )
        == 1
    )


def release_unlock(db, *, request_id: int, claim: str) -> bool:
    return matching_repository.release_unlock(db, request_id=request_id, claim=claim) == 1


def commit_unlock(db, *, request_id: int, claim: str, transaction_id: str) -> bool:
    return (
        matching_repository.commit_unlock(
            db, request_id=request_id, claim=claim, transaction_id=transaction_id
        )
        == 1
    )


def hold_for_reconciliation(db, *, request_id: int, hold: str) -> bool:
    return matching_repository.hold_for_reconciliation(db, request_id=request_id, hold=hold) == 1


def unlock_unclaimed(db, *, request_id: int, transaction_id: str) -> bool:
    return (
        matching_repository.unlock_unclaimed(
            db, request_id=request_id, transaction_id=transaction_id
        )
        == 1
    )


def cancel_active_applications(db, *, member_id: int) -> int:
    return matching_repository.cancel_all_active_applications(db, member_id=member_id)


# ======== Cycle ========


def get_cycle() -> CycleResponse:
    snapshot = cycle_clock.cycle_snapshot(cycle_clock.now())
    return CycleResponse(
        phase=snapshot.phase.value,
        now=snapshot.now,
        current_batch_start=snapshot.current_batch_start,
        target_batch_start=snapshot.target_batch_start,
        application_window_start=snapshot.application_window_start,
        application_window_end=snapshot.application_window_end,
        interaction_cycle_start=snapshot.interaction_cycle_start,
        phase_ends_at=snapshot.phase_ends_at,
    )


# ======== Applications ========


def apply(db, *, member) -> ApplicationResponse:
    now = cycle_clock.now()
    batch_start = cycle_clock.target_batch_start(now)
    window_start, window_end = cycle_clock.application_window_utc(batch_start)

    if matching_repository.get_active_application(
        db, member_id=member.id, start=window_start, end=window_end
    ):
        raise InvalidStateError("Already applied for this batch", reason="already_applied")

    application = matching_repository.create_application(
        db, member_id=member.id, batch_key=batch_start.isoformat(), now=cycle_clock.to_utc_naive(now)
    )
    try:
        db.commit()
    except IntegrityError:
        # a concurrent apply for the same batch won
        db.rollback()
        raise InvalidStateError("Already applied for this batch", reason="already_applied")
    db.refresh(application)

    logger.info(f"Member {member.id} applied for batch {batch_start.isoformat()}")
    return ApplicationResponse.model_validate(application)


def cancel_application(db, *, member) -> dict:
    now = cycle_clock.now()
    window_start, window_end = cycle_clock.application_window_utc(cycle_clock.target_batch_start(now))

    cancelled = matching_repository.cancel_active_application(
        db, member_id=member.id, start=window_start, end=window_end
    )
    if not cancelled:
        db.rollback()
        raise NotFoundError("No active application for this batch", reason="no_active_application")
    db.commit()

    return {"success": True, "cancelled": cancelled}


def get_current_application(db, *, member) -> CurrentApplicationResponse:
    now = cycle_clock.now()
    batch_start = cycle_clock.target_batch_start(now)
    window_start, window_end = cycle_clock.application_window(batch_start)
    utc_start, utc_end = cycle_clock.application_window_utc(batch_start)

    application = matching_repository.get_latest_application(
        db, member_id=member.id, start=utc_start, end=utc_end
    )
    return CurrentApplicationResponse(
        phase=cycle_clock.current_phase(now).value,
        batch_start=batch_start,
        window_start=window_start,
        window_end=window_end,
        application=ApplicationResponse.model_validate(application) if application else None,
    )


def list_candidates(db, *, member) -> CandidateListResponse:
    """
    Opposite-gender members with an active application in the batch being matched.

    Candidates exist only during MATCHING, and only for members who applied to that batch.
    """
    now = cycle_clock.now()
    phase = cycle_clock.current_phase(now)
    batch_start = cycle_clock.current_batch_start(now)

    if phase is cycle_clock.Phase.REGISTRATION:
        return CandidateListResponse(phase=phase.value, batch_start=batch_start, candidates=[])

    window_start, window_end = cycle_clock.application_window_utc(batch_start)
    if not matching_repository.get_active_application(
        db, member_id=member.id, start=window_start, end=window_end
    ):
        raise InvalidStateError(
            "No active application for the current batch", reason="no_active_application"
        )

    applicant_ids = matching_repository.list_active_applicant_ids(
        db, start=window_start, end=window_end
    )
    wanted_gender = "female" if member.gender == "male" else "male"
    candidates = list_candidate_members(
        db, member_ids=applicant_ids, gender=wanted_gender, exclude_member_id=member.id
    )

    return CandidateListResponse(
        phase=phase.value,
        batch_start=batch_start,
        candidates=[
            CandidateResponse(
                id=candidate.id,
                nickname=candidate.nickname,
                gender=candidate.gender,
                book_titles=[book.title for book in candidate.books],
            )
            for candidate in candidates
        ],
    )


# ======== Match requests ========


def _load_pending_for_receiver(db, *, request_id: int, member_id: int):
    match_request = matching_repository.get_match_request(db, request_id)
    if not match_request:
        raise NotFoundError("Match request not found")
    if match_request.receiver_id != member_id:
        raise AuthorizationError("Only the receiver can respond to this request")
    if match_request.status != MatchStatus.PENDING:
        raise InvalidStateError(
            f"Match request already {match_request.status}", reason="already_responded"
        )
    return match_request


async def create_match_request(db, *, sender, receiver_id: int, letter: str) -> MatchRequestResponse:
    if sender is None:
        raise NotFoundError("Sender profile not found", reason="member_not_found")
    if not letter or not letter.strip():
        raise ValidationError("Letter cannot be empty", reason="letter_empty")
    if len(letter) > config.MATCH_LETTER_MAX_LENGTH:
        raise ValidationError(
            f"Letter too long (max {config.MATCH_LETTER_MAX_LENGTH} chars)", reason="letter_too_long"
        )
    if receiver_id == sender.id:
        raise ValidationError("Cannot send a match request to yourself", reason="self_request")

    receiver = get_member_by_id(db, member_id=receiver_id)
    if not receiver or receiver.is_withdrawn:
        raise NotFoundError("Receiver not found", reason="member_not_found")

    match_request = matching_repository.create_match_request(
        db,
        sender_id=sender.id,
        receiver_id=receiver.id,
        letter=letter,
        now=_utcnow(),
    )
    db.commit()
    db.refresh(match_request)
    response = MatchRequestResponse.model_validate(match_request)

    logger.info(f"Match request {response.id} created: {sender.id} -> {receiver.id}")
    await notify_safely(
        db,
        notification_type=NotificationType.MATCH_REQUEST,
        recipient_id=response.receiver_id,
        match_id=response.id,
        actor_id=response.sender_id,
    )
    return response


async def accept_match_request(db, *, request_id: int, member) -> MatchRequestResponse:
    match_request = _load_pending_for_receiver(db, request_id=request_id, member_id=member.id)
    sender = get_member_by_id(db, member_id=match_request.sender_id)

    updated = matching_repository.respond_to_pending(
        db,
        request_id=request_id,
        status=MatchStatus.ACCEPTED,
        now=_utcnow(),
        sender_contact_snapshot=sender.contact_handle if sender else None,
        receiver_contact_snapshot=member.contact_handle,
    )
    if updated != 1:
        db.rollback()
        raise InvalidStateError("Match request already responded", reason="already_responded")
    db.commit()

    db.refresh(match_request)
    response = MatchRequestResponse.model_validate(match_request)

    logger.info(f"Match request {request_id} accepted by member {member.id}")
    await notify_safely(
        db,
        notification_type=NotificationType.MATCH_ACCEPTED,
        recipient_id=response.sender_id,
        match_id=response.id,
        actor_id=member.id,
    )
    return response


def reject_match_request(db, *, request_id: int, member) -> MatchRequestResponse:
    match_request = _load_pending_for_receiver(db, request_id=request_id, member_id=member.id)

    updated = matching_repository.respond_to_pending(
        db, request_id=request_id, status=MatchStatus.REJECTED, now=_utcnow()
    )
    if updated != 1:
        db.rollback()
        raise InvalidStateError("Match request already responded", reason="already_responded")
    db.commit()

    db.refresh(match_request)
    logger.info(f"Match request {request_id} rejected by member {member.id}")
    return MatchRequestResponse.model_validate(match_request)


def _partner_contact(match_request, member_id: int) -> Optional[str]:
    if not match_request.is_unlocked:
        return None
    if member_id == match_request.sender_id:
        return decrypt_contact_handle(match_request.receiver_contact_snapshot)
    return decrypt_contact_handle(match_request.sender_contact_snapshot)


def _list_items(db, match_requests, *, member_id: int) -> List[MatchListItem]:
    counterpart_ids = [mr.other_party(member_id) for mr in match_requests]
    counterparts: Dict[int, object] = get_members_by_ids(db, member_ids=counterpart_ids)

    items = []
    for mr in match_requests:
        counterpart = counterparts.get(mr.other_party(member_id))
        if counterpart is None or counterpart.is_withdrawn:
            continue
        items.append(
            MatchListItem(
                id=mr.id,
                counterpart_id=counterpart.id,
                counterpart_nickname=counterpart.nickname,
                letter=mr.letter,
                status=mr.status,
                is_unlocked=mr.is_unlocked,
                created_at=mr.created_at,
                responded_at=mr.responded_at,
                partner_contact=_partner_contact(mr, member_id),
            )
        )
    return items


def _listing(db, *, member, fetch) -> MatchListResponse:
    cycle_start = cycle_clock.interaction_cycle_start(cycle_clock.now())
    match_requests = fetch(
        db, member_id=member.id, since=cycle_clock.to_utc_naive(cycle_start)
    )
    return MatchListResponse(
        cycle_start=cycle_start,
        items=_list_items(db, match_requests, member_id=member.id),
    )


def list_sent_requests(db, *, member) -> MatchListResponse:
    return _listing(db, member=member, fetch=matching_repository.list_sent)


def list_received_requests(db, *, member) -> MatchListResponse:
    return _listing(db, member=member, fetch=matching_repository.list_received)


def list_matches(db, *, member) -> MatchListResponse:
    return _listing(db, member=member, fetch=matching_repository.list_matched)


def get_match_request(db, *, request_id: int, member) -> MatchListItem:
    match_request = matching_repository.get_match_request(db, request_id)
    if not match_request:
        raise NotFoundError("Match request not found")
    if not match_request.is_party(member.id):
        raise AuthorizationError("Not a party to this match request")

    counterpart = get_member_by_id(db, member_id=match_request.other_party(member.id))
    return MatchListItem(
        id=match_request.id,
        counterpart_id=counterpart.id,
        counterpart_nickname=counterpart.nickname,
        letter=match_request.letter,
        status=match_request.status,
        is_unlocked=match_request.is_unlocked,
        created_at=match_request.created_at,
        responded_at=match_request.responded_at,
        partner_contact=_partner_contact(match_request, member.id),
    )
