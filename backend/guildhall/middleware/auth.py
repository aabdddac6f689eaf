"""
Guildhall Backend — Session/Auth Gate
=======================================

What:  FastAPI dependencies that turn a bearer token into the acting member.
How:   Verify the JWT, parse `sub` as a member id, then re-load the member
       and require status `active` on every request.
Who:   Every /api route depends on get_current_member; admin-only routes
       add require_role(...).

The ledger performs no authentication of its own. Whatever member this
gate returns is the `acting_member_id` for the whole request.
"""

import logging
from typing import Callable, Optional
from uuid import UUID

from fastapi import Depends, Request
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from guildhall.database import get_db_session
from guildhall.exceptions import AuthenticationError, PermissionDeniedError
from guildhall.middleware.jwt_session import decode_access_token
from guildhall.models.member import Member
from guildhall.services.member_directory import member_directory

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


def _extract_bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if not header.lower().startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX):].strip()
    return token or None


async def get_current_member(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> Member:
    """
    Resolve the bearer token to an active member.

    Raises:
        AuthenticationError: no token, bad signature, expired, malformed
                             `sub`, unknown member, or member not active
    """
    token = _extract_bearer_token(request)
    if token is None:
        raise AuthenticationError(message="Access denied. No token provided.")

    try:
        payload = decode_access_token(token)
        member_id = UUID(str(payload.get("sub")))
    except (JWTError, ValueError) as e:
        logger.info("Rejected bearer token: %s", type(e).__name__)
        raise AuthenticationError(message="Token is not valid.") from e

    member = await member_directory.find_active_member(db, member_id)
    if member is None:
        logger.info("Token for member %s rejected: member missing or not active", member_id)
        raise AuthenticationError(message="Token is not valid or account is not active.")

    request.state.member_id = str(member.id)
    return member


def require_role(*roles: str) -> Callable:
    """
    Dependency factory for boundary capability checks.

    Example:
        @router.get("/admin/...", dependencies=[Depends(require_role("admin"))])
    """
    allowed = set(roles)

    async def _check(member: Member = Depends(get_current_member)) -> Member:
        if member.role not in allowed:
            logger.warning(
                "Member %s (role=%s) denied; requires one of %s",
                member.id, member.role, sorted(allowed),
            )
            raise PermissionDeniedError(required_roles=sorted(allowed))
        return member

    return _check
