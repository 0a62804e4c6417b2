"""
At-rest encryption for calendar provider tokens (Fernet, TOKEN_ENCRYPTION_KEY).

Outside production a missing key is replaced by a per-process key, so tokens
stored by a local run cannot be read after a restart.
"""

from functools import lru_cache
from typing import Optional
import logging

from cryptography.fernet import Fernet, InvalidToken

from core.config import settings

logger = logging.getLogger(__name__)


def _resolve_key(key: Optional[str]) -> bytes:
    key = key or settings.TOKEN_ENCRYPTION_KEY
    if key:
        return key.encode()
    if settings.ENVIRONMENT == "production":
        raise RuntimeError(
            "TOKEN_ENCRYPTION_KEY is required in production "
            "(python scripts/generate_encryption_key.py)"
        )
    logger.warning("TOKEN_ENCRYPTION_KEY missing; using an ephemeral key for this process")
    return Fernet.generate_key()


class TokenEncryption:
    def __init__(self, key: Optional[str] = None):
        try:
            self.cipher = Fernet(_resolve_key(key))
        except ValueError as e:
            raise ValueError(f"Invalid encryption key format: {e}") from e

    def encrypt(self, plaintext: str) -> str:
        return self.cipher.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> Optional[str]:
        """None when the ciphertext is corrupt or was sealed with another key."""
        try:
            return self.cipher.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            logger.error("Stored token could not be decrypted with the current key")
            return None


@lru_cache(maxsize=1)
def get_token_encryption() -> TokenEncryption:
    return TokenEncryption()


def encrypt_token(token: Optional[str]) -> Optional[str]:
    return get_token_encryption().encrypt(token) if token else None


def decrypt_token(token: Optional[str]) -> Optional[str]:
    return get_token_encryption().decrypt(token) if token else None
