"""Symmetric encryption for tokens that must be shown to their owner again."""

import base64
import hashlib
import logging

from cryptography.fernet import Fernet, InvalidToken

from agri_rental.config import settings

logger = logging.getLogger(__name__)


def _get_fernet_key() -> bytes:
    """Derive a Fernet-compatible key from the app's SECRET_KEY."""
    key_bytes = settings.SECRET_KEY.encode("utf-8")
    return base64.urlsafe_b64encode(hashlib.sha256(key_bytes).digest())


def encrypt_value(plaintext: str) -> str:
    """Encrypt a plaintext string. Returns base64-encoded ciphertext."""
    return Fernet(_get_fernet_key()).encrypt(plaintext.encode("utf-8")).decode("utf-8")


def decrypt_value(ciphertext: str) -> str | None:
    """Decrypt a ciphertext string. Returns None if the key has rotated or the value is corrupt."""
    try:
        return Fernet(_get_fernet_key()).decrypt(ciphertext.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        logger.warning("Failed to decrypt stored credential")
        return None
