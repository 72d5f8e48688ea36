import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from auth import validate_descope_jwt
from core.db import get_db
from core.errors import AuthenticationError, NotFoundError
from core.members import get_member_by_external_id

logger = logging.getLogger(__name__)


def validate_jwt_dependency(request: Request) -> dict:
    auth_header = request.headers.get("Authorization") or request.headers.get("authorization")
    if not auth_header or not auth_header.lower().startswith("bearer "):
        raise AuthenticationError("Authorization token missing.")
    token = auth_header.split(" ", 1)[1].strip()
    return validate_descope_jwt(token)


def get_current_claims(claims: dict = Depends(validate_jwt_dependency)) -> dict:
    return claims


def get_current_member(
    claims: dict = Depends(validate_jwt_dependency),
    db: Session = Depends(get_db),
):
    """
    Resolve the calling Member from the bearer token.

    Withdrawn members have no external id, so they resolve to nothing.
    """
    member = get_member_by_external_id(db, external_id=claims["userId"])
    if not member:
        raise NotFoundError("Member profile not found", reason="member_not_found")
    return member
