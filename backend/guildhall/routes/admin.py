"""
Guildhall Backend — Admin Route Handlers
==========================================

Moderation views over the connection ledger. Role gating happens here at
the boundary via require_role; the ledger itself knows nothing of roles.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from guildhall.database import get_db_session
from guildhall.middleware.auth import require_role
from guildhall.models.member import MemberRole
from guildhall.schemas.common import ErrorResponse
from guildhall.schemas.connection import ConnectionStatsResponse
from guildhall.services.connection_ledger import connection_ledger

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get(
    "/connections/stats",
    response_model=ConnectionStatsResponse,
    dependencies=[Depends(require_role(MemberRole.ADMIN.value))],
    responses={403: {"description": "Admin role required", "model": ErrorResponse}},
    summary="Connection request counts by status",
)
async def connection_stats(
    db: AsyncSession = Depends(get_db_session),
) -> ConnectionStatsResponse:
    counts = await connection_ledger.status_counts(db)
    return ConnectionStatsResponse(by_status=counts, total=sum(counts.values()))
