import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.db import get_db
from core.errors import register_error_handlers
from models import ApplicationStatus, DatingApplication, Member
from routers.dependencies import get_current_claims, get_current_member
from routers.members import members as members_router
from utils.encryption import decrypt_contact_handle


@pytest.fixture
def current_member(make_member, freeze_clock):
    freeze_clock(2023, 1, 4, 15, 0)
    return make_member(nickname="reader", push_token="player-1")


@pytest.fixture
def client(test_db, current_member):
    app = FastAPI()
    register_error_handlers(app)
    app.include_router(members_router.router)

    def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_member] = lambda: current_member
    app.dependency_overrides[get_current_claims] = lambda: {
        "userId": "descope_new_user",
        "loginIds": ["new@bookmatch.test"],
    }

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides = {}


def test_signup_creates_profile_with_encrypted_contact(client, test_db):
    response = client.post(
        "/members",
        json={"nickname": "  Jiwoo ", "gender": "female", "contact_handle": "kakao_jiwoo"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["nickname"] == "Jiwoo"
    assert data["has_contact_handle"] is True
    assert data["has_welcome_coupon"] is True
    assert data["free_reveals_count"] == 0
    assert data["books"] == []

    stored = test_db.query(Member).filter(Member.external_id == "descope_new_user").one()
    assert stored.contact_handle != "kakao_jiwoo"
    assert decrypt_contact_handle(stored.contact_handle) == "kakao_jiwoo"


def test_signup_twice_conflicts(client):
    payload = {"nickname": "Jiwoo", "gender": "female", "contact_handle": "kakao_jiwoo"}
    client.post("/members", json=payload)

    response = client.post("/members", json=payload)

    assert response.status_code == 409
    assert response.json()["reason"] == "already_exists"


def test_signup_rejects_unknown_gender(client):
    response = client.post(
        "/members", json={"nickname": "Jiwoo", "gender": "other", "contact_handle": "kakao_jiwoo"}
    )
    assert response.status_code == 422


def test_get_me(client, current_member):
    response = client.get("/members/me")

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == current_member.id
    assert [book["isbn"] for book in data["books"]] == ["9788937460449"]


def test_add_book_normalizes_isbn(client):
    response = client.post("/members/me/books", json={"isbn": "978-89-546-5113-4", "title": "Almond"})
    assert response.status_code == 201
    assert response.json()["isbn"] == "9788954651134"

    response = client.post("/members/me/books", json={"isbn": "978-89-374-6044-9", "title": "Demian"})
    assert response.status_code == 409
    assert response.json()["reason"] == "book_exists"


def test_withdraw_erases_identity_and_cancels_applications(
    client, test_db, current_member, make_application
):
    make_application(current_member)

    response = client.post("/members/withdraw")

    assert response.status_code == 200
    assert response.json() == {"success": True, "cancelled_applications": 1}

    test_db.expire_all()
    stored = test_db.query(Member).filter(Member.id == current_member.id).one()
    assert stored.external_id is None
    assert stored.contact_handle is None
    assert stored.push_token is None
    assert stored.withdrawn_at is not None
    assert test_db.query(DatingApplication).one().status == ApplicationStatus.CANCELLED
