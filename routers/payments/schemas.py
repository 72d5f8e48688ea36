"""Payments domain schemas."""

from typing import Optional

from pydantic import BaseModel, Field


class PaymentCallback(BaseModel):
    """Browser-redirect callback posted by the payment gateway after card authentication."""

    auth_result_code: str = Field(..., alias="authResultCode")
    auth_result_msg: Optional[str] = Field(None, alias="authResultMsg")
    tid: Optional[str] = None
    order_id: Optional[str] = Field(None, alias="orderId")
    amount: Optional[int] = None
    pay_method: Optional[str] = Field(None, alias="payMethod")

    class Config:
        populate_by_name = True


class UnlockResult(BaseModel):
    match_id: int
    payer_id: int
    amount: int
    coupon_used: bool
    transaction_id: str


class FreeRevealRequest(BaseModel):
    match_id: int


class FreeRevealResponse(BaseModel):
    success: bool
    remaining: int
