"""
Guildhall Backend — Notification Route Handlers
=================================================

What:  The addressee's view of their notifications.

    GET /api/notifications                 feed (newest first)
    GET /api/notifications/unread-count    badge counter
    PUT /api/notifications/{id}/read       mark one as read

Members only ever see and modify their own notifications.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from guildhall.database import commit_unit_of_work, get_db_session
from guildhall.middleware.auth import get_current_member
from guildhall.models.member import Member
from guildhall.schemas.common import ErrorResponse
from guildhall.schemas.notification import (
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from guildhall.services.notification_emitter import notification_emitter

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List my notifications",
)
async def list_notifications(
    unread_only: bool = Query(default=False, description="Only unread notifications"),
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationListResponse:
    notifications = await notification_emitter.list_for_member(
        db, member_id=member.id, unread_only=unread_only
    )
    unread = await notification_emitter.count_unread(db, member_id=member.id)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=unread,
    )


@router.get(
    "/unread-count",
    response_model=UnreadCountResponse,
    summary="Count my unread notifications",
)
async def unread_count(
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db_session),
) -> UnreadCountResponse:
    return UnreadCountResponse(count=await notification_emitter.count_unread(db, member_id=member.id))


@router.put(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    responses={404: {"description": "Notification not found", "model": ErrorResponse}},
    summary="Mark a notification as read",
)
async def mark_read(
    notification_id: UUID,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationResponse:
    notification = await notification_emitter.mark_read(
        db, notification_id=notification_id, member_id=member.id
    )
    await commit_unit_of_work(db)
    return NotificationResponse.model_validate(notification)
