"""
Guildhall Backend — Notification Emitter
==========================================

What:  Appends notifications for ledger transitions and serves the
       addressee's notification feed.
Who:   emit() is called only by ConnectionLedger; the feed methods are
       called by routes/notifications.py on behalf of the addressee.

Transaction Contract:
    emit() adds the row to the caller's session and flushes. It never
    commits. The request-scoped session commits the transition and its
    notification together, so a failed emit also undoes the transition.

No deduplication: every transition that calls for a notification gets a
fresh row, even if an identical one already exists.
"""

import logging
from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from guildhall.config import settings
from guildhall.exceptions import NotFoundError, PersistenceError, ValidationError
from guildhall.models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)

_VALID_TYPES = {t.value for t in NotificationType}


class NotificationEmitter:
    """
    Responsibilities:
        - emit(): append one notification inside the caller's unit of work
        - list_for_member() / count_unread(): addressee feed
        - mark_read(): the only mutation a notification ever sees
    """

    async def emit(
        self,
        db: AsyncSession,
        member_id: UUID,
        notification_type: Union[NotificationType, str],
        title: str,
        message: str,
        related_id: Optional[UUID] = None,
    ) -> Notification:
        """
        Record a notification addressed to `member_id`.

        Raises:
            ValidationError: `notification_type` is not a known notification type
            PersistenceError: the insert failed; the caller's transaction
                              must not be considered successful
        """
        type_value = (
            notification_type.value
            if isinstance(notification_type, NotificationType)
            else notification_type
        )
        if type_value not in _VALID_TYPES:
            raise ValidationError(
                message=f"Unknown notification type '{type_value}'",
                field="type",
                context={"allowed_types": sorted(_VALID_TYPES)},
            )

        notification = Notification(
            member_id=member_id,
            type=type_value,
            title=title,
            message=message,
            related_id=related_id,
            is_read=False,
        )
        try:
            db.add(notification)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to record %s notification for member %s: %s",
                type_value, member_id, str(e),
            )
            raise PersistenceError(
                context={"member_id": str(member_id), "type": type_value},
            ) from e

        logger.info(
            "Notification %s (%s) emitted to member %s",
            notification.id, type_value, member_id,
        )
        return notification

    async def list_for_member(
        self,
        db: AsyncSession,
        member_id: UUID,
        unread_only: bool = False,
        limit: Optional[int] = None,
    ) -> List[Notification]:
        """Newest first, capped at `limit` (default: settings.notification_list_limit)."""
        limit = limit or settings.notification_list_limit
        query = select(Notification).where(Notification.member_id == member_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.order_by(Notification.created_at.desc()).limit(limit)

        try:
            result = await db.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing notifications for %s: %s", member_id, str(e))
            raise PersistenceError(context={"member_id": str(member_id)}) from e

    async def count_unread(self, db: AsyncSession, member_id: UUID) -> int:
        try:
            result = await db.execute(
                select(func.count(Notification.id)).where(
                    Notification.member_id == member_id,
                    Notification.is_read.is_(False),
                )
            )
            return result.scalar() or 0
        except SQLAlchemyError as e:
            logger.error("Database error counting notifications for %s: %s", member_id, str(e))
            raise PersistenceError(context={"member_id": str(member_id)}) from e

    async def mark_read(
        self, db: AsyncSession, notification_id: UUID, member_id: UUID
    ) -> Notification:
        """
        Mark one of the caller's notifications as read.

        Someone else's notification is reported as not found, the same as a
        missing one. Marking an already-read notification is a no-op.
        """
        try:
            result = await db.execute(
                select(Notification).where(
                    Notification.id == notification_id,
                    Notification.member_id == member_id,
                )
            )
            notification = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error loading notification %s: %s", notification_id, str(e))
            raise PersistenceError(context={"notification_id": str(notification_id)}) from e

        if notification is None:
            raise NotFoundError(resource="notification", resource_id=str(notification_id))

        if not notification.is_read:
            notification.is_read = True
            try:
                await db.flush()
            except SQLAlchemyError as e:
                logger.error("Failed to mark notification %s read: %s", notification_id, str(e))
                raise PersistenceError(
                    context={"notification_id": str(notification_id)},
                ) from e

        return notification


notification_emitter = NotificationEmitter()
