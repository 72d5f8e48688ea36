import os

os.environ["TESTING"] = "true"
os.environ.setdefault("ONESIGNAL_ENABLED", "false")

from datetime import datetime

import pytest
import pytz
from sqlalchemy.orm import sessionmaker

import config
from core.db import Base, build_engine
from models import DatingApplication, MatchRequest, MatchStatus, Member, MemberBook
from utils import cycle_clock
from utils.encryption import encrypt_contact_handle

KST = pytz.timezone("Asia/Seoul")


@pytest.fixture
def test_engine(tmp_path):
    """File-backed SQLite so separate sessions see each other's commits"""
    db_path = tmp_path / "bookmatch_tests.db"
    engine = build_engine(f"sqlite:///{db_path}", slow_query_ms=0)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(bind=test_engine, autocommit=False, autoflush=False)


@pytest.fixture
def test_db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def push_disabled(monkeypatch):
    monkeypatch.setattr(config, "ONESIGNAL_ENABLED", False)


@pytest.fixture
def freeze_clock(monkeypatch):
    """Pin the cycle clock to a civil (Asia/Seoul) wall time."""

    def _freeze(year, month, day, hour=12, minute=0, second=0, microsecond=0):
        frozen = KST.localize(datetime(year, month, day, hour, minute, second, microsecond))
        monkeypatch.setattr(cycle_clock, "now", lambda: frozen)
        return frozen

    return _freeze


@pytest.fixture
def make_member(test_db):
    counter = {"n": 0}

    def _make(
        *,
        nickname=None,
        gender="male",
        contact_handle="kakao_handle",
        has_welcome_coupon=True,
        free_reveals_count=0,
        push_token=None,
        books=("9788937460449",),
        db=None,
    ):
        session = db or test_db
        counter["n"] += 1
        n = counter["n"]
        member = Member(
            external_id=f"descope_user_{n}",
            nickname=nickname or f"reader{n}",
            gender=gender,
            contact_handle=encrypt_contact_handle(f"{contact_handle}_{n}") if contact_handle else None,
            has_welcome_coupon=has_welcome_coupon,
            free_reveals_count=free_reveals_count,
            push_token=push_token,
        )
        session.add(member)
        session.flush()
        for isbn in books:
            session.add(MemberBook(member_id=member.id, isbn=isbn, title=f"Book {isbn}"))
        session.commit()
        session.refresh(member)
        return member

    return _make


@pytest.fixture
def make_match(test_db):
    def _make(sender, receiver, *, status=MatchStatus.PENDING, letter="Hello from a fellow reader", created_at=None):
        match_request = MatchRequest(
            sender_id=sender.id,
            receiver_id=receiver.id,
            letter=letter,
            status=status,
            created_at=created_at or cycle_clock.to_utc_naive(cycle_clock.now()),
        )
        if status == MatchStatus.ACCEPTED:
            match_request.sender_contact_snapshot = sender.contact_handle
            match_request.receiver_contact_snapshot = receiver.contact_handle
            match_request.responded_at = match_request.created_at
        test_db.add(match_request)
        test_db.commit()
        test_db.refresh(match_request)
        return match_request

    return _make


@pytest.fixture
def make_application(test_db):
    def _make(member, *, status="active", created_at=None):
        application = DatingApplication(
            member_id=member.id,
            status=status,
            created_at=created_at or cycle_clock.to_utc_naive(cycle_clock.now()),
        )
        test_db.add(application)
        test_db.commit()
        test_db.refresh(application)
        return application

    return _make
