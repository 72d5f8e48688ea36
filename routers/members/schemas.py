"""Members domain schemas."""

from datetime import datetime
from typing import List, Literal

from pydantic import BaseModel, Field


class SignupRequest(BaseModel):
    nickname: str = Field(..., min_length=1, max_length=30)
    gender: Literal["male", "female"]
    contact_handle: str = Field(
        ..., min_length=1, max_length=100, description="Private messenger handle revealed on unlock"
    )


class AddBookRequest(BaseModel):
    isbn: str = Field(..., min_length=10, max_length=17)
    title: str = Field(..., min_length=1, max_length=200)


class BookResponse(BaseModel):
    id: int
    isbn: str
    title: str
    created_at: datetime

    class Config:
        from_attributes = True


class MemberProfileResponse(BaseModel):
    id: int
    nickname: str
    gender: str
    has_contact_handle: bool
    has_welcome_coupon: bool
    free_reveals_count: int
    books: List[BookResponse] = []
    created_at: datetime


class WithdrawResponse(BaseModel):
    success: bool
    cancelled_applications: int
