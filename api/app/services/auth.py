"""Bearer token creation and verification (HS256 JWT)."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from app.config import Settings

ACCESS_TOKEN_EXPIRE_DAYS = 30


class TokenError(Exception):
    """Raised when a token is missing its subject, expired or malformed."""


def create_access_token(
    settings: Settings,
    user_id: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + (expires_delta or timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS)),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(settings: Settings, token: str) -> str:
    """Return the user id carried by ``token``."""
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")
    user_id = payload.get("sub") or payload.get("id")
    if not user_id:
        raise TokenError("Token has no subject")
    return str(user_id)
