"""Fernet encryption for the free-text parts of a snapshot.

Metric values stay in plain columns so history can be queried and charted;
user-written health notes and the raw pass-through payload are encrypted.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when a key is unusable or a token cannot be decrypted."""


class FieldEncryptor:
    """Encrypts optional text and JSON fields with a single Fernet key.

    ``None`` and empty values round-trip as ``None`` without touching the
    cipher, so optional columns stay NULL-friendly.

    Usage::

        enc = FieldEncryptor(FieldEncryptor.generate_key())
        token = enc.encrypt_text("felt dizzy after lunch")
        enc.decrypt_text(token)
    """

    def __init__(self, key: str) -> None:
        """
        Raises:
            EncryptionError: If the key is empty or not a valid Fernet key.
        """
        if not key or not key.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(key.strip().encode("utf-8"))
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    def encrypt_text(self, text: str | None) -> str | None:
        if not text:
            return None
        return self._fernet.encrypt(text.encode("utf-8")).decode("ascii")

    def decrypt_text(self, token: str | None) -> str | None:
        """
        Raises:
            EncryptionError: If the token was not produced with this key.
        """
        if not token:
            return None
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc

    def encrypt_json(self, data: Any) -> str | None:
        """
        Raises:
            EncryptionError: If ``data`` is not JSON-serializable.
        """
        if data is None:
            return None
        try:
            payload = json.dumps(data, sort_keys=True, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Cannot serialize payload: {exc}") from exc
        return self.encrypt_text(payload)

    def decrypt_json(self, token: str | None) -> Any:
        text = self.decrypt_text(token)
        return json.loads(text) if text is not None else None

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode("ascii")
