"""
JWT session tokens: issue and verify signed bearer tokens for members.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt

from guildhall.config import settings


def create_access_token(member, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed access token for a member.

    Args:
        member: Member model (id, role)
        expires_delta: Lifetime override; defaults to settings.jwt_expire_minutes

    Returns:
        JWT token string
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))

    payload = {
        "sub": str(member.id),
        "role": member.role,
        "exp": expire,
        "iat": now,
    }

    return jwt.encode(
        payload,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a token's signature and expiry.

    Raises:
        jose.JWTError if the token is invalid or expired
    """
    return jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
    )
