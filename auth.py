import base64
import json
import logging
from typing import Optional

from descope.descope_client import DescopeClient

import config
from core.errors import AuthenticationError

logger = logging.getLogger(__name__)

_client: Optional[DescopeClient] = None


def get_descope_client() -> DescopeClient:
    """Build the Descope client on first use; it refuses an empty project id."""
    global _client
    if _client is None:
        if not config.DESCOPE_PROJECT_ID:
            raise AuthenticationError("Token validation is not configured")
        _client = DescopeClient(
            project_id=config.DESCOPE_PROJECT_ID,
            jwt_validation_leeway=config.DESCOPE_JWT_LEEWAY,
        )
        logger.info(f"Descope client initialized with JWT leeway: {config.DESCOPE_JWT_LEEWAY}s")
    return _client


def decode_jwt_payload(token: str) -> dict:
    """Decode JWT payload without verification for debugging purposes."""
    try:
        parts = token.split('.')
        if len(parts) != 3:
            return {}

        payload = parts[1]
        padding = len(payload) % 4
        if padding:
            payload += '=' * (4 - padding)

        decoded_bytes = base64.urlsafe_b64decode(payload)
        return json.loads(decoded_bytes.decode('utf-8'))
    except (ValueError, UnicodeDecodeError) as e:
        logger.debug(f"Failed to decode JWT payload: {e}")
        return {}


def validate_descope_jwt(token: str) -> dict:
    """
    Validate a Descope session JWT and return the identity claims.

    Args:
        token (str): Descope session JWT token

    Returns:
        dict: ``{"userId": ..., "loginIds": [...]}``; ``userId`` is the member's external id

    Raises:
        AuthenticationError: If token validation fails or the user id is missing
    """
    logger.debug(f"JWT payload (decoded): {json.dumps(decode_jwt_payload(token), default=str)}")

    client = get_descope_client()
    try:
        session = client.validate_session(token)
    except Exception as e:
        # The SDK raises AuthException and friends; every failure is a 401 here
        logger.warning(f"Descope JWT validation failed: {e}")
        raise AuthenticationError("Invalid or expired token") from e

    if not isinstance(session, dict):
        logger.error("Descope session validation failed: session is not a dictionary")
        raise AuthenticationError("Invalid session format")

    user_id = session.get('userId') or session.get('sub')
    if not user_id:
        logger.error("Descope JWT validation failed: missing userId in session")
        raise AuthenticationError("Invalid token: missing user ID")

    login_ids = session.get('loginIds')
    if not isinstance(login_ids, list):
        login_ids = [session['email']] if session.get('email') else []

    return {'userId': user_id, 'loginIds': login_ids}
