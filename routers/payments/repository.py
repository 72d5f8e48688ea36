"""Payments domain repository layer."""

from datetime import datetime

from sqlalchemy.orm import Session

from models import Payment


def create_payment(
    db: Session,
    *,
    payer_id: int,
    match_id: int,
    amount: int,
    payment_method: str,
    transaction_id: str,
    coupon_used: bool,
    now: datetime,
) -> Payment:
    payment = Payment(
        payer_id=payer_id,
        match_id=match_id,
        amount=amount,
        status="completed",
        payment_method=payment_method,
        transaction_id=transaction_id,
        coupon_used=coupon_used,
        completed_at=now,
        created_at=now,
    )
    db.add(payment)
    return payment

