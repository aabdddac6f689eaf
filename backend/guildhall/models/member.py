"""
Guildhall Backend — Member SQLAlchemy Model
=============================================

What:  ORM model for the `members` table (the Member Directory's rows).
Who:   Read by MemberDirectory and the auth gate; referenced by foreign
       keys from connection_requests and notifications.

Registration, approval and profile editing are handled elsewhere. Code in
this package only reads members; it never changes status or role.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from guildhall.database import Base


class MemberStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    ARCHIVED = "archived"


class MemberRole(str, Enum):
    MEMBER = "member"
    MODERATOR = "moderator"
    EDITOR = "editor"
    ADMIN = "admin"


class Member(Base):
    """
    A registered person in the association directory.

    Only `active` members can authenticate, and only `active` members can
    be the target of a connection request.
    """

    __tablename__ = "members"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=MemberStatus.PENDING.value,
        server_default=text("'pending'"),
        comment="pending, active, suspended, archived",
    )

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=MemberRole.MEMBER.value,
        server_default=text("'member'"),
        comment="member, moderator, editor, admin",
    )

    # ── Public profile ────────────────────────────────────────────────────
    # Projected into MemberSummary when decorating request/connection lists
    profession: Mapped[str | None] = mapped_column(String(255), nullable=True)
    district: Mapped[str | None] = mapped_column(String(100), nullable=True)
    area: Mapped[str | None] = mapped_column(String(100), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    profile_image: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'active', 'suspended', 'archived')",
            name="ck_members_status",
        ),
        CheckConstraint(
            "role IN ('member', 'moderator', 'editor', 'admin')",
            name="ck_members_role",
        ),
        Index("idx_members_status", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<Member(id={self.id}, status='{self.status}', role='{self.role}')>"
