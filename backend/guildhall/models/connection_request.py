"""
Guildhall Backend — ConnectionRequest SQLAlchemy Model
========================================================

What:  ORM model for the `connection_requests` table owned by the ConnectionLedger.
Why:   A directed proposal from one member to another. Accepted rows are
       the only source of the (undirected) connection graph.

State Machine:
    pending ──▶ accepted
       │
       ├──────▶ rejected
       │
       └──────▶ cancelled

    Every row starts as `pending`. All three other states are terminal.

Pair Invariants (enforced by partial unique indexes, not just app code):
    - At most one `pending` row per unordered member pair
      → uq_connection_requests_pending_pair
    - At most one `accepted` row per unordered member pair
      → uq_connection_requests_accepted_pair

    Both indexes key on `pair_key`, a direction-free string built from the
    two member ids, so A→B and B→A collide. The ledger's pre-checks give
    friendly errors; these indexes close the race window between the
    check and the insert.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
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


class ConnectionStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


def make_pair_key(member_a: uuid.UUID, member_b: uuid.UUID) -> str:
    """Direction-free key for a member pair: make_pair_key(a, b) == make_pair_key(b, a)."""
    low, high = sorted((str(member_a), str(member_b)))
    return f"{low}:{high}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConnectionRequest(Base):
    """
    A connection proposal and its current lifecycle state.

    Query Patterns:
        - Received list / pending count: WHERE to_member_id = ? AND status = ?
          → idx_connection_requests_to_status
        - Sent list: WHERE from_member_id = ? [AND status = ?]
          → idx_connection_requests_from_status
        - Pair checks: WHERE pair_key = ? AND status IN (...)
          → the two partial unique indexes
    """

    __tablename__ = "connection_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    from_member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
    )

    to_member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
    )

    # "<lower id>:<higher id>": 2 × 36 chars + separator
    pair_key: Mapped[str] = mapped_column(String(73), nullable=False)

    # Stored trimmed; NULL when the sender left it blank
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ConnectionStatus.PENDING.value,
        server_default=text("'pending'"),
        comment="pending, accepted, rejected, cancelled",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    # Last transition time. For accepted rows this is the "connected at" moment.
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        CheckConstraint(
            "from_member_id <> to_member_id",
            name="ck_connection_requests_not_self",
        ),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'cancelled')",
            name="ck_connection_requests_status",
        ),
        Index(
            "uq_connection_requests_pending_pair",
            "pair_key",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index(
            "uq_connection_requests_accepted_pair",
            "pair_key",
            unique=True,
            postgresql_where=text("status = 'accepted'"),
            sqlite_where=text("status = 'accepted'"),
        ),
        Index("idx_connection_requests_to_status", "to_member_id", "status"),
        Index("idx_connection_requests_from_status", "from_member_id", "status"),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == ConnectionStatus.PENDING.value

    def peer_of(self, member_id: uuid.UUID) -> uuid.UUID:
        """The other party of this request, seen from `member_id`."""
        return self.to_member_id if self.from_member_id == member_id else self.from_member_id

    def __repr__(self) -> str:
        return (
            f"<ConnectionRequest(id={self.id}, {self.from_member_id} -> {self.to_member_id}, "
            f"status='{self.status}')>"
        )
