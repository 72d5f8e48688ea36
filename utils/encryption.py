import base64
import logging
import os
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

import config

logger = logging.getLogger(__name__)

ENCRYPTION_KEY = config.ENCRYPTION_KEY
if not ENCRYPTION_KEY:
    # Development only: handles encrypted with this key do not survive a restart
    logger.warning("ENCRYPTION_KEY not set - using an ephemeral contact handle key")
    salt = os.urandom(16)
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=100000,
    )
    ENCRYPTION_KEY = base64.urlsafe_b64encode(kdf.derive(b"bookmatch-default-key"))

fernet = Fernet(ENCRYPTION_KEY)


def encrypt_contact_handle(handle: Optional[str]) -> Optional[str]:
    """
    Encrypt a member's private contact handle for storage.

    Args:
        handle (str): The plain contact handle

    Returns:
        str: The Fernet token, or None for an empty handle
    """
    if not handle:
        return None

    return fernet.encrypt(handle.strip().encode()).decode()


def decrypt_contact_handle(encrypted_handle: Optional[str]) -> Optional[str]:
    """
    Decrypt a stored contact handle. Undecryptable values yield None.
    """
    if not encrypted_handle:
        return None

    try:
        return fernet.decrypt(encrypted_handle.encode()).decode()
    except InvalidToken:
        logger.error("Failed to decrypt contact handle: invalid token")
        return None
