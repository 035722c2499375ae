"""
Bearer token handling.

Tokens are issued by the identity provider; the engine validates them and
reads the caller's id and role. `create_access_token` mints tokens with the
same shape for local tooling and tests.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from backend.app.core.config import settings
from backend.app.models.enums import UserRole


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    role: Optional[UserRole]
    subject: Optional[str] = None


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed access token.

    Args:
        data: Claims to encode (sub, user_id, role)
        expires_delta: Lifetime, defaults to `access_token_expire_minutes`

    Returns:
        Encoded token
    """
    claims = dict(data)
    claims["exp"] = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[TokenClaims]:
    """
    Validate a token and extract the caller's claims.

    Returns None when the signature or expiry is invalid, the user id is
    missing, or the role is not one the engine knows.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None

    try:
        user_id = int(payload["user_id"])
        role = UserRole(payload["role"]) if payload.get("role") else None
    except (KeyError, TypeError, ValueError):
        return None
    return TokenClaims(user_id=user_id, role=role, subject=payload.get("sub"))
