"""
Security utilities for JWT verification.

Tokens are issued by the external auth provider; this service only
verifies them and reads the subject (user id).
"""
from typing import Optional
from jose import JWTError, jwt
from app.core.config import settings


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and verify a JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            audience=settings.JWT_AUDIENCE or None,
            options={"verify_aud": bool(settings.JWT_AUDIENCE)},
        )
        return payload
    except JWTError:
        return None
