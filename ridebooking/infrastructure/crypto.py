"""Encryption at rest for secret settings (Fernet)."""

from __future__ import annotations

import base64
import hashlib
import logging

from cryptography.fernet import Fernet, InvalidToken

from ridebooking.config import settings

logger = logging.getLogger(__name__)


def _fernet(secret: str) -> Fernet:
    # Any passphrase works: derive the 32-byte urlsafe key Fernet needs
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


class SecretBox:
    def __init__(self, secret: str | None = None):
        self._fernet = _fernet(secret or settings.encryption_key)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        """Return the plaintext, or *token* unchanged when it cannot be decrypted."""
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError):
            logger.warning("Could not decrypt stored secret; returning it as stored")
            return token
