from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from core.db import Base


class MatchStatus:
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ApplicationStatus:
    ACTIVE = "active"
    FAILED = "failed"
    CANCELLED = "cancelled"


class NotificationType:
    MATCH_REQUEST = "match_request"
    MATCH_ACCEPTED = "match_accepted"
    CONTACT_REVEALED = "contact_revealed"


# =================================
#  Members Table
# =================================
class Member(Base):
    __tablename__ = "members"
    __table_args__ = (
        CheckConstraint("free_reveals_count >= 0", name="ck_members_free_reveals_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String, unique=True, index=True, nullable=True)  # identity provider user id, nulled on withdrawal
    nickname = Column(String, nullable=False)
    gender = Column(String, nullable=False)  # "male", "female"
    contact_handle = Column(String, nullable=True)  # Fernet-encrypted
    push_token = Column(String, nullable=True)

    # Monetization flags, written only by the unlock engine
    has_welcome_coupon = Column(Boolean, default=True, nullable=False)
    free_reveals_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    withdrawn_at = Column(DateTime, nullable=True)

    books = relationship("MemberBook", back_populates="member")

    @property
    def is_withdrawn(self) -> bool:
        return self.external_id is None


class MemberBook(Base):
    __tablename__ = "member_books"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    isbn = Column(String, nullable=False)
    title = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    member = relationship("Member", back_populates="books")

    __table_args__ = (
        UniqueConstraint("member_id", "isbn", name="uq_member_books_member_isbn"),
    )


# =================================
#  Dating Applications Table
# =================================
class DatingApplication(Base):
    __tablename__ = "dating_applications"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False)
    status = Column(String, default=ApplicationStatus.ACTIVE, nullable=False)
    # The only link to a batch; read through the cycle clock's application window
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    # Batch start date while active, NULL once cancelled
    batch_key = Column(String, nullable=True)

    __table_args__ = (
        Index("ix_dating_applications_member_created", "member_id", "created_at"),
        UniqueConstraint("member_id", "batch_key", name="uq_dating_applications_member_batch"),
    )


# =================================
#  Match Requests Table
# =================================
class MatchRequest(Base):
    __tablename__ = "match_requests"

    id = Column(Integer, primary_key=True, index=True)
    sender_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    receiver_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    letter = Column(Text, nullable=False)
    status = Column(String, default=MatchStatus.PENDING, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    responded_at = Column(DateTime, nullable=True)

    # Contact snapshots taken at acceptance, still encrypted
    sender_contact_snapshot = Column(String, nullable=True)
    receiver_contact_snapshot = Column(String, nullable=True)

    is_unlocked = Column(Boolean, default=False, nullable=False)
    payment_transaction_id = Column(String, nullable=True)
    # In-flight gateway capture. "reconcile:<tid>" with no timestamp marks a capture an
    # operator has to resolve; the stale-claim takeover never matches it.
    unlock_claim = Column(String, nullable=True)
    unlock_claimed_at = Column(DateTime, nullable=True)

    sender = relationship("Member", foreign_keys=[sender_id])
    receiver = relationship("Member", foreign_keys=[receiver_id])

    def other_party(self, member_id: int) -> int:
        """Counterpart of ``member_id``; raises ValueError for a non-party."""
        if member_id == self.sender_id:
            return self.receiver_id
        if member_id == self.receiver_id:
            return self.sender_id
        raise ValueError(f"Member {member_id} is not a party to match request {self.id}")

    def is_party(self, member_id: int) -> bool:
        return member_id in (self.sender_id, self.receiver_id)


# =================================
#  Notifications Table
# =================================
class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    type = Column(String, nullable=False)
    match_id = Column(Integer, ForeignKey("match_requests.id"), nullable=True)
    sender_id = Column(Integer, ForeignKey("members.id"), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)
    meta = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    sender = relationship("Member", foreign_keys=[sender_id])


# =================================
#  Payments Table
# =================================
class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    payer_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    match_id = Column(Integer, ForeignKey("match_requests.id"), nullable=False, unique=True)
    amount = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="completed")
    payment_method = Column(String, nullable=False)  # "card", gateway method, or "free_reveal"
    transaction_id = Column(String, nullable=False, unique=True)
    coupon_used = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
