"""
Guildhall Backend — Notification SQLAlchemy Model
===================================================

What:  ORM model for the `notifications` table.
Who:   Written by NotificationEmitter.emit(); read and marked read by the addressee.

Rows are append-only. The one permitted mutation is `is_read`, toggled by
the addressee. `related_id` points at the triggering ConnectionRequest.
It is a plain column, not a foreign key, so `general` notifications can
reference other kinds of records later.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from guildhall.database import Base


class NotificationType(str, Enum):
    CONNECTION_REQUEST = "connection_request"
    CONNECTION_ACCEPTED = "connection_accepted"
    GENERAL = "general"


class Notification(Base):
    """An addressed record informing a member of a ledger event."""

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
    )

    type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=NotificationType.GENERAL.value,
        server_default=text("'general'"),
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    related_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    is_read: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        CheckConstraint(
            "type IN ('connection_request', 'connection_accepted', 'general')",
            name="ck_notifications_type",
        ),
        # Feed query: WHERE member_id = ? [AND is_read = false] ORDER BY created_at DESC
        Index("idx_notifications_member_created", "member_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, member_id={self.member_id}, "
            f"type='{self.type}', is_read={self.is_read})>"
        )
