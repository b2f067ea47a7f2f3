"""Organization secrets at rest.

Settings values such as ERP API keys or SMTP passwords are stored as
``enc:<fernet token>``, keyed off ``SECRET_KEY``. Anything without the prefix
is plaintext and passes through untouched, so settings written by hand keep
working. Automations only ever see the map returned by ``decrypt_settings``.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

from bpmflow.config import settings

logger = logging.getLogger(__name__)

ENCRYPTED_PREFIX = "enc:"


def _fernet() -> Fernet:
    # SHA-256 of the app secret, urlsafe-b64 encoded, is a valid 32-byte Fernet key
    digest = hashlib.sha256(settings.SECRET_KEY.encode()).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def is_encrypted(value: str) -> bool:
    return bool(value) and value.startswith(ENCRYPTED_PREFIX)


def encrypt_value(plaintext: str) -> str:
    if not plaintext:
        return plaintext
    return ENCRYPTED_PREFIX + _fernet().encrypt(plaintext.encode()).decode()


def decrypt_value(stored: str) -> str:
    """Plaintext for ``stored``; an undecryptable secret comes back as ``""``."""
    if not is_encrypted(stored):
        return stored
    token = stored.removeprefix(ENCRYPTED_PREFIX).encode()
    try:
        return _fernet().decrypt(token).decode()
    except InvalidToken:
        logger.error("Organization secret could not be decrypted; SECRET_KEY may have changed")
        return ""


def decrypt_settings(stored: dict[str, Any] | None) -> dict[str, Any]:
    """Copy of an organization's settings map with every secret decrypted."""
    return {
        key: decrypt_value(value) if isinstance(value, str) else value
        for key, value in (stored or {}).items()
    }
