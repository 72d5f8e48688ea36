"""Payments domain service layer: the contact unlock engine."""

import logging
import uuid
from datetime import timedelta
from typing import Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

import config
from core.errors import (
    AuthorizationError,
    ExternalServiceError,
    InvalidStateError,
    NotFoundError,
    PaymentReconciliationError,
    ValidationError,
)
from core.matching import (
    claim_unlock,
    commit_unlock,
    get_match_request,
    hold_for_reconciliation,
    release_unlock,
    unlock_unclaimed,
)
from core.members import (
    consume_free_reveal,
    consume_welcome_coupon,
    get_free_reveals_count,
    get_member_by_id,
    restore_welcome_coupon,
)
from core.notifications import notify_safely
from models import MatchStatus, NotificationType
from utils import cycle_clock
from utils.nicepay_client import (
    RESULT_OK,
    NicePayClient,
    PaymentDeclined,
    PaymentGatewayError,
    PaymentGatewayTimeout,
)

from . import repository as payments_repository
from .schemas import FreeRevealResponse, PaymentCallback, UnlockResult

logger = logging.getLogger(__name__)

FREE_REVEAL_METHOD = "free_reveal"
RECONCILE_HOLD_PREFIX = "reconcile:"


def _utcnow():
    return cycle_clock.to_utc_naive(cycle_clock.now())


def parse_order_reference(order_id) -> Tuple[int, int]:
    """Split ``"{matchRequestId}_{payerMemberId}"`` into two positive integers."""
    parts = str(order_id or "").split("_")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise ValidationError("Invalid order reference", reason="invalid_order")
    match_id, payer_id = int(parts[0]), int(parts[1])
    if match_id <= 0 or payer_id <= 0:
        raise ValidationError("Invalid order reference", reason="invalid_order")
    return match_id, payer_id


def idempotency_key(match_id: int, tid: str) -> str:
    return f"unlock-{match_id}-{tid}"


def _validate_amount(amount, payer) -> bool:
    """Returns whether the amount is the coupon-discounted tier."""
    if amount == config.UNLOCK_PRICE_FULL:
        return False
    if amount == config.UNLOCK_PRICE_DISCOUNTED:
        if not payer.has_welcome_coupon:
            raise ValidationError("invalid coupon usage", reason="invalid_coupon")
        return True
    raise ValidationError(f"Invalid payment amount: {amount}", reason="invalid_amount")


def _release_claim(db, *, match_id: int, claim: str, payer_id: int, coupon_used: bool) -> None:
    """Undo a claim whose capture did not happen. A claim that cannot be released expires."""
    try:
        release_unlock(db, request_id=match_id, claim=claim)
        if coupon_used:
            restore_welcome_coupon(db, member_id=payer_id)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Failed to release unlock claim for match {match_id} (expires after "
            f"{config.UNLOCK_CLAIM_TTL_SECONDS}s): {e}"
        )


def _hold_for_reconciliation(db, *, match_id: int, tid: str) -> None:
    """Park a match whose capture went through but was not recorded. Only an operator clears it."""
    try:
        hold_for_reconciliation(db, request_id=match_id, hold=f"{RECONCILE_HOLD_PREFIX}{tid}")
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.critical(f"OPERATOR ALERT: could not hold match {match_id} for reconciliation: {e}")


async def process_payment_callback(
    db, *, gateway: NicePayClient, callback: PaymentCallback
) -> UnlockResult:
    """
    Capture the payment for a contact unlock and unlock the match.

    Every check runs before the gateway is called, and the match is claimed so that
    concurrent or retried callbacks capture at most once. Funds captured but not
    recorded raise PaymentReconciliationError.
    """
    # 1. card authentication
    if callback.auth_result_code != RESULT_OK:
        message = callback.auth_result_msg or "Payment authentication failed"
        logger.info(f"Payment authentication failed: {callback.auth_result_code} {message}")
        raise ExternalServiceError(message, reason=message)

    # 2. order reference
    match_id, payer_id = parse_order_reference(callback.order_id)
    tid = (callback.tid or "").strip()
    if not tid:
        raise ValidationError("Missing transaction reference", reason="missing_tid")
    if callback.amount is None:
        raise ValidationError("Missing payment amount", reason="invalid_amount")
    amount = callback.amount

    # 3. match and payer
    match_request = get_match_request(db, request_id=match_id)
    if not match_request:
        raise NotFoundError("Match request not found", reason="match_not_found")
    if not match_request.is_party(payer_id):
        raise AuthorizationError("Payer is not a party to this match", reason="not_a_party")
    if match_request.status != MatchStatus.ACCEPTED:
        raise InvalidStateError("Match request is not accepted", reason="match_not_accepted")
    recipient_id = match_request.other_party(payer_id)

    # 4. idempotency guard
    if match_request.is_unlocked:
        raise InvalidStateError("already unlocked", reason="already_unlocked")

    # 5. amount tier
    payer = get_member_by_id(db, member_id=payer_id)
    if not payer:
        raise NotFoundError("Payer not found", reason="member_not_found")
    coupon_used = _validate_amount(amount, payer)

    # 6. claim, then capture
    claim = uuid.uuid4().hex
    now = _utcnow()
    stale_before = now - timedelta(seconds=config.UNLOCK_CLAIM_TTL_SECONDS)
    if not claim_unlock(db, request_id=match_id, claim=claim, now=now, stale_before=stale_before):
        db.rollback()
        raise InvalidStateError("Unlock already in progress or completed", reason="unlock_in_progress")
    if coupon_used and not consume_welcome_coupon(db, member_id=payer_id):
        db.rollback()
        raise ValidationError("invalid coupon usage", reason="invalid_coupon")
    db.commit()

    try:
        capture = await gateway.approve(
            tid=tid,
            amount=amount,
            order_id=callback.order_id,
            idempotency_key=idempotency_key(match_id, tid),
        )
    except PaymentGatewayError as e:
        _release_claim(db, match_id=match_id, claim=claim, payer_id=payer_id, coupon_used=coupon_used)
        if isinstance(e, PaymentGatewayTimeout):
            reason = "payment_timeout"
        elif isinstance(e, PaymentDeclined):
            reason = "payment_declined"
        else:
            reason = "payment_gateway_error"
        logger.warning(f"Capture failed for match {match_id} (tid={tid}): {e}")
        raise ExternalServiceError(str(e), reason=reason) from e

    # 7. reconcile
    if capture.amount != amount:
        logger.critical(
            f"OPERATOR ALERT: captured amount mismatch | match={match_id} | tid={capture.tid} "
            f"| expected={amount} | captured={capture.amount} | coupon={coupon_used}"
        )
        _hold_for_reconciliation(db, match_id=match_id, tid=capture.tid)
        raise ValidationError("captured amount mismatch", reason="amount_mismatch")

    # 8. commit
    try:
        if not commit_unlock(db, request_id=match_id, claim=claim, transaction_id=capture.tid):
            raise PaymentReconciliationError(
                f"Unlock claim lost for match {match_id} after capture"
            )
        payments_repository.create_payment(
            db,
            payer_id=payer_id,
            match_id=match_id,
            amount=capture.amount,
            payment_method=capture.pay_method or callback.pay_method or "card",
            transaction_id=capture.tid,
            coupon_used=coupon_used,
            now=_utcnow(),
        )
        db.commit()
    except PaymentReconciliationError:
        db.rollback()
        logger.critical(
            f"RECONCILIATION REQUIRED: match={match_id} payer={payer_id} tid={capture.tid} "
            f"amount={capture.amount} coupon={coupon_used}: claim lost after capture"
        )
        _hold_for_reconciliation(db, match_id=match_id, tid=capture.tid)
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.critical(
            f"RECONCILIATION REQUIRED: match={match_id} payer={payer_id} tid={capture.tid} "
            f"amount={capture.amount} coupon={coupon_used}: {e}"
        )
        _hold_for_reconciliation(db, match_id=match_id, tid=capture.tid)
        raise PaymentReconciliationError(
            f"Payment captured but unlock for match {match_id} was not recorded"
        ) from e

    logger.info(
        f"Match {match_id} unlocked by member {payer_id} | amount={capture.amount} "
        f"| coupon={coupon_used} | tid={capture.tid}"
    )

    # 9. tell the other party
    await notify_safely(
        db,
        notification_type=NotificationType.CONTACT_REVEALED,
        recipient_id=recipient_id,
        match_id=match_id,
        actor_id=payer_id,
    )

    return UnlockResult(
        match_id=match_id,
        payer_id=payer_id,
        amount=capture.amount,
        coupon_used=coupon_used,
        transaction_id=capture.tid,
    )


async def use_free_reveal(db, *, member, match_id: int) -> FreeRevealResponse:
    match_request = get_match_request(db, request_id=match_id)
    if not match_request:
        raise NotFoundError("Match request not found", reason="match_not_found")
    if not match_request.is_party(member.id):
        raise AuthorizationError("Not a party to this match", reason="not_a_party")
    if match_request.status != MatchStatus.ACCEPTED:
        raise InvalidStateError("Match request is not accepted", reason="match_not_accepted")
    if match_request.is_unlocked:
        raise InvalidStateError("already unlocked", reason="already_unlocked")
    if member.free_reveals_count <= 0:
        raise ValidationError("No free reveals remaining", reason="no_free_reveals")

    member_id = member.id
    recipient_id = match_request.other_party(member_id)
    transaction_id = f"free_{match_id}_{member_id}"

    if not consume_free_reveal(db, member_id=member_id):
        db.rollback()
        raise ValidationError("No free reveals remaining", reason="no_free_reveals")
    if not unlock_unclaimed(db, request_id=match_id, transaction_id=transaction_id):
        db.rollback()
        raise InvalidStateError("Unlock already in progress or completed", reason="unlock_in_progress")

    payments_repository.create_payment(
        db,
        payer_id=member_id,
        match_id=match_id,
        amount=0,
        payment_method=FREE_REVEAL_METHOD,
        transaction_id=transaction_id,
        coupon_used=False,
        now=_utcnow(),
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvalidStateError("already unlocked", reason="already_unlocked")

    remaining = get_free_reveals_count(db, member_id=member_id)
    logger.info(f"Match {match_id} unlocked by member {member_id} with a free reveal ({remaining} left)")

    await notify_safely(
        db,
        notification_type=NotificationType.CONTACT_REVEALED,
        recipient_id=recipient_id,
        match_id=match_id,
        actor_id=member_id,
    )
    return FreeRevealResponse(success=True, remaining=remaining)
