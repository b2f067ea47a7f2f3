"""Bearer token handling for caller identity.

Tokens are issued by the external authentication service; this module only
verifies them. ``create_access_token`` mirrors the issuer's format and is used
by tests and local tooling.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import jwt

from bpmflow.config import settings

ALGORITHM = "HS256"
ISSUER = "bpmflow"
AUDIENCE = "bpmflow"


def create_access_token(user_id: uuid.UUID | str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iss": ISSUER,
        "aud": AUDIENCE,
        "iat": now,
        "exp": now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Return the verified claims, or None when the token is invalid or expired."""
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[ALGORITHM],
            audience=AUDIENCE,
            issuer=ISSUER,
        )
    except jwt.PyJWTError:
        return None
