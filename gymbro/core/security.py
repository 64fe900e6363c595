"""JWT verification.

Tokens are issued by the auth provider; this service only checks them.
"""

from typing import Any

from jose import JWTError, jwt

from gymbro.core.config import settings


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT. Returns payload or None if invalid."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None
