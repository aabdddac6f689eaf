"""
Guildhall Backend — Connection Route Handlers
===============================================

What:  HTTP surface of the ConnectionLedger.
How:   Each handler resolves the acting member through the auth gate,
       delegates to the ledger, and shapes the JSON response.

Route Inventory:
    POST /api/connections/requests                  send a request (201)
    GET  /api/connections/requests                  inbox / outbox
    GET  /api/connections/requests/pending-count    badge counter
    PUT  /api/connections/requests/{id}/accept      addressee only
    PUT  /api/connections/requests/{id}/reject      addressee only
    PUT  /api/connections/requests/{id}/cancel      sender only
    GET  /api/connections                           accepted connections
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from guildhall.database import commit_unit_of_work, get_db_session
from guildhall.middleware.auth import get_current_member
from guildhall.models.member import Member
from guildhall.schemas.common import ErrorResponse
from guildhall.schemas.connection import (
    ConnectionItem,
    ConnectionRequestActionResponse,
    ConnectionRequestCreate,
    ConnectionRequestList,
    ConnectionRequestResponse,
    PendingCountResponse,
)
from guildhall.services.connection_ledger import DIRECTION_RECEIVED, connection_ledger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/connections", tags=["Connections"])

_AUTH_ERRORS = {
    401: {"description": "Missing or invalid bearer token", "model": ErrorResponse},
}
_NOT_PENDING = {
    404: {"description": "No pending request matching this member", "model": ErrorResponse},
}


@router.post(
    "/requests",
    status_code=201,
    response_model=ConnectionRequestActionResponse,
    responses={
        **_AUTH_ERRORS,
        400: {"description": "Self request or message too long", "model": ErrorResponse},
        404: {"description": "Target member not found or not active", "model": ErrorResponse},
        409: {"description": "Already pending or already connected", "model": ErrorResponse},
    },
    summary="Send a connection request",
)
async def send_request(
    body: ConnectionRequestCreate,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db_session),
) -> ConnectionRequestActionResponse:
    request = await connection_ledger.create_request(
        db,
        from_member_id=member.id,
        to_member_id=body.to_member_id,
        message=body.message,
    )
    await commit_unit_of_work(db)
    return ConnectionRequestActionResponse(
        message="Connection request sent successfully",
        request=ConnectionRequestResponse.model_validate(request),
    )


@router.get(
    "/requests",
    response_model=ConnectionRequestList,
    responses={**_AUTH_ERRORS, 400: {"description": "Invalid filter", "model": ErrorResponse}},
    summary="List received or sent connection requests",
)
async def list_requests(
    response: Response,
    direction: str = Query(
        default=DIRECTION_RECEIVED,
        description="'received' (addressed to me) or 'sent' (sent by me)",
    ),
    status: Optional[str] = Query(
        default=None,
        description="Only requests in this status: pending, accepted, rejected, cancelled",
    ),
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db_session),
) -> ConnectionRequestList:
    items = await connection_ledger.list_requests(
        db, member_id=member.id, direction=direction, status=status
    )
    response.headers["X-Total-Count"] = str(len(items))
    return ConnectionRequestList(requests=items, total_count=len(items))


@router.get(
    "/requests/pending-count",
    response_model=PendingCountResponse,
    responses=_AUTH_ERRORS,
    summary="Count pending requests addressed to me",
)
async def pending_count(
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db_session),
) -> PendingCountResponse:
    count = await connection_ledger.count_pending_received(db, member_id=member.id)
    return PendingCountResponse(count=count)


@router.put(
    "/requests/{request_id}/accept",
    response_model=ConnectionRequestActionResponse,
    responses={**_AUTH_ERRORS, **_NOT_PENDING},
    summary="Accept a pending request addressed to me",
)
async def accept_request(
    request_id: UUID,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db_session),
) -> ConnectionRequestActionResponse:
    request = await connection_ledger.accept(db, request_id, acting_member_id=member.id)
    await commit_unit_of_work(db)
    return ConnectionRequestActionResponse(
        message="Connection request accepted",
        request=ConnectionRequestResponse.model_validate(request),
    )


@router.put(
    "/requests/{request_id}/reject",
    response_model=ConnectionRequestActionResponse,
    responses={**_AUTH_ERRORS, **_NOT_PENDING},
    summary="Reject a pending request addressed to me",
)
async def reject_request(
    request_id: UUID,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db_session),
) -> ConnectionRequestActionResponse:
    request = await connection_ledger.reject(db, request_id, acting_member_id=member.id)
    await commit_unit_of_work(db)
    return ConnectionRequestActionResponse(
        message="Connection request rejected",
        request=ConnectionRequestResponse.model_validate(request),
    )


@router.put(
    "/requests/{request_id}/cancel",
    response_model=ConnectionRequestActionResponse,
    responses={**_AUTH_ERRORS, **_NOT_PENDING},
    summary="Cancel a pending request I sent",
)
async def cancel_request(
    request_id: UUID,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db_session),
) -> ConnectionRequestActionResponse:
    request = await connection_ledger.cancel(db, request_id, acting_member_id=member.id)
    await commit_unit_of_work(db)
    return ConnectionRequestActionResponse(
        message="Connection request cancelled",
        request=ConnectionRequestResponse.model_validate(request),
    )


@router.get(
    "",
    response_model=List[ConnectionItem],
    responses=_AUTH_ERRORS,
    summary="List my accepted connections",
)
async def list_connections(
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db_session),
) -> List[ConnectionItem]:
    return await connection_ledger.list_connections(db, member_id=member.id)
