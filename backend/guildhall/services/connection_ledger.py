"""
Guildhall Backend — Connection Ledger (Business Logic)
========================================================

What:  Owns connection requests: creates them, moves them through their
       lifecycle, and derives the accepted-connection graph from them.
Who:   Called by routes/connections.py with the acting member id supplied
       by the auth gate. The ledger trusts that id completely.

Transition Flow:
    ┌────────────┐    ┌──────────────┐    ┌──────────────┐    ┌──────────┐
    │ Pre-checks │───▶│ Insert/Update│───▶│ Emit notif.  │───▶│ Commit   │
    │ (member,   │    │ (flush)      │    │ (flush)      │    │ (route   │
    │  pair)     │    │              │    │              │    │  handler)│
    └────────────┘    └──────────────┘    └──────────────┘    └──────────┘

    Nothing commits inside the ledger. If any step raises, the request-scoped
    session rolls back and neither the transition nor its notification exists.

Races:
    - Two concurrent create_request calls for the same pair: both pass the
      pre-check, one insert hits uq_connection_requests_pending_pair and is
      reported as DuplicatePendingError.
    - Concurrent accept/reject/cancel of one request: the pending row is
      selected FOR UPDATE; the loser re-reads it as non-pending and gets
      NotFoundError. This is the expected outcome, not a bug.

Open product question kept as-is: rejected and cancelled requests never
block a new request between the same pair (no cooldown).
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from guildhall.config import settings
from guildhall.exceptions import (
    AlreadyConnectedError,
    DuplicatePendingError,
    NotFoundError,
    PersistenceError,
    SelfReferenceError,
    ValidationError,
)
from guildhall.models.connection_request import (
    ConnectionRequest,
    ConnectionStatus,
    make_pair_key,
)
from guildhall.models.member import Member
from guildhall.models.notification import NotificationType
from guildhall.schemas.connection import ConnectionItem, ConnectionRequestListItem
from guildhall.services.member_directory import member_directory
from guildhall.services.notification_emitter import notification_emitter

logger = logging.getLogger(__name__)

DIRECTION_SENT = "sent"
DIRECTION_RECEIVED = "received"
DIRECTIONS = (DIRECTION_SENT, DIRECTION_RECEIVED)

_VALID_STATUSES = {s.value for s in ConnectionStatus}

PENDING_PAIR_INDEX = "uq_connection_requests_pending_pair"
ACCEPTED_PAIR_INDEX = "uq_connection_requests_accepted_pair"


def normalize_message(message: Optional[str]) -> Optional[str]:
    """Trim surrounding whitespace; blank becomes None."""
    if message is None:
        return None
    trimmed = message.strip()
    return trimmed or None


def is_pair_conflict(error: IntegrityError, index_name: str) -> bool:
    """True if `error` was raised by the pair index `index_name`."""
    detail = str(error.orig)
    # PostgreSQL reports the index name, SQLite only the indexed column
    return index_name in detail or "connection_requests.pair_key" in detail


class ConnectionLedger:
    """
    Responsibilities:
        - create_request(): new pending request + `connection_request` notification
        - accept() / reject() / cancel(): the three exits from `pending`
        - list_requests() / count_pending_received(): request inbox and outbox
        - list_connections(): accepted graph from one member's side
        - status_counts(): administrative overview

    Error Handling Strategy:
        Domain errors (SelfReferenceError, NotFoundError, ...) propagate as
        raised. Any other SQLAlchemyError is logged and wrapped in
        PersistenceError so no driver detail reaches the client.
    """

    # ── Creation ──────────────────────────────────────────────────────────

    async def create_request(
        self,
        db: AsyncSession,
        from_member_id: UUID,
        to_member_id: UUID,
        message: Optional[str] = None,
    ) -> ConnectionRequest:
        """
        Send a connection request from `from_member_id` to `to_member_id`.

        Checks run in this order, and the first failure wins:
            1. Same member on both sides     → SelfReferenceError
            2. Message over the length limit → ValidationError
            3. Target not an active member   → NotFoundError
            4. Pending request for the pair  → DuplicatePendingError
            5. Pair already connected        → AlreadyConnectedError

        Not idempotent: a blind retry after PersistenceError may report
        DuplicatePendingError if the first attempt did commit.
        """
        if from_member_id == to_member_id:
            raise SelfReferenceError(member_id=str(from_member_id))

        max_length = settings.connection_message_max_length
        if message is not None and len(message) > max_length:
            raise ValidationError(
                message=f"Message must be at most {max_length} characters",
                field="message",
                context={"max_length": max_length, "length": len(message)},
            )

        target = await member_directory.find_active_member(db, to_member_id)
        if target is None:
            raise NotFoundError(resource="member", resource_id=str(to_member_id))

        pair_key = make_pair_key(from_member_id, to_member_id)
        blocking = await self._pair_statuses(db, pair_key)
        if ConnectionStatus.PENDING.value in blocking:
            raise DuplicatePendingError(context={"to_member_id": str(to_member_id)})
        if ConnectionStatus.ACCEPTED.value in blocking:
            raise AlreadyConnectedError(context={"to_member_id": str(to_member_id)})

        request = ConnectionRequest(
            from_member_id=from_member_id,
            to_member_id=to_member_id,
            pair_key=pair_key,
            message=normalize_message(message),
            status=ConnectionStatus.PENDING.value,
        )
        db.add(request)
        try:
            await db.flush()
        except IntegrityError as e:
            if not is_pair_conflict(e, PENDING_PAIR_INDEX):
                logger.error("Integrity error inserting connection request: %s", str(e))
                raise PersistenceError(context={"operation": "create_request"}) from e
            # Lost the race to a concurrent request for the same pair
            logger.warning(
                "Pending-pair constraint rejected request %s -> %s",
                from_member_id, to_member_id,
            )
            raise DuplicatePendingError(context={"to_member_id": str(to_member_id)}) from e
        except SQLAlchemyError as e:
            logger.error("Failed to insert connection request: %s", str(e), exc_info=True)
            raise PersistenceError(context={"operation": "create_request"}) from e

        sender = await member_directory.get_member(db, from_member_id)
        await notification_emitter.emit(
            db,
            member_id=to_member_id,
            notification_type=NotificationType.CONNECTION_REQUEST,
            title="New Connection Request",
            message=f"{self._display_name(sender)} wants to connect with you",
            related_id=request.id,
        )

        logger.info(
            "Connection request %s created: %s -> %s",
            request.id, from_member_id, to_member_id,
        )
        return request

    # ── Transitions ───────────────────────────────────────────────────────

    async def accept(
        self, db: AsyncSession, request_id: UUID, acting_member_id: UUID
    ) -> ConnectionRequest:
        """
        Accept a pending request addressed to `acting_member_id`.

        Notifies the original sender with a `connection_accepted` notification.
        """
        request = await self._load_pending(
            db, request_id, ConnectionRequest.to_member_id, acting_member_id
        )
        await self._transition(db, request, ConnectionStatus.ACCEPTED)

        acceptor = await member_directory.get_member(db, acting_member_id)
        await notification_emitter.emit(
            db,
            member_id=request.from_member_id,
            notification_type=NotificationType.CONNECTION_ACCEPTED,
            title="Connection Request Accepted",
            message=f"{self._display_name(acceptor)} accepted your connection request",
            related_id=request.id,
        )
        return request

    async def reject(
        self, db: AsyncSession, request_id: UUID, acting_member_id: UUID
    ) -> ConnectionRequest:
        """Reject a pending request addressed to `acting_member_id`. No notification."""
        request = await self._load_pending(
            db, request_id, ConnectionRequest.to_member_id, acting_member_id
        )
        await self._transition(db, request, ConnectionStatus.REJECTED)
        return request

    async def cancel(
        self, db: AsyncSession, request_id: UUID, acting_member_id: UUID
    ) -> ConnectionRequest:
        """Withdraw a pending request sent by `acting_member_id`. No notification."""
        request = await self._load_pending(
            db, request_id, ConnectionRequest.from_member_id, acting_member_id
        )
        await self._transition(db, request, ConnectionStatus.CANCELLED)
        return request

    # ── Queries ───────────────────────────────────────────────────────────

    async def list_requests(
        self,
        db: AsyncSession,
        member_id: UUID,
        direction: str = DIRECTION_RECEIVED,
        status: Optional[str] = None,
    ) -> List[ConnectionRequestListItem]:
        """
        Requests sent or received by `member_id`, newest first.

        Each item carries the counterpart's public profile: the sender for
        `received`, the addressee for `sent`.
        """
        if direction not in DIRECTIONS:
            raise ValidationError(
                message=f"Invalid direction '{direction}'. Must be one of: {list(DIRECTIONS)}",
                field="direction",
            )
        if status is not None and status not in _VALID_STATUSES:
            raise ValidationError(
                message=f"Invalid status '{status}'. Must be one of: {sorted(_VALID_STATUSES)}",
                field="status",
            )

        if direction == DIRECTION_RECEIVED:
            owner_col, counterpart_col = ConnectionRequest.to_member_id, ConnectionRequest.from_member_id
        else:
            owner_col, counterpart_col = ConnectionRequest.from_member_id, ConnectionRequest.to_member_id

        query = (
            select(ConnectionRequest, Member)
            .outerjoin(Member, Member.id == counterpart_col)
            .where(owner_col == member_id)
        )
        if status is not None:
            query = query.where(ConnectionRequest.status == status)
        query = query.order_by(ConnectionRequest.created_at.desc())

        rows = await self._execute(db, query, "list_requests")
        return [
            ConnectionRequestListItem.model_validate(request).model_copy(
                update={"counterpart": member_directory.summarize(member)}
            )
            for request, member in rows.all()
        ]

    async def count_pending_received(self, db: AsyncSession, member_id: UUID) -> int:
        """Number of pending requests addressed to `member_id` (the inbox badge)."""
        result = await self._execute(
            db,
            select(func.count(ConnectionRequest.id)).where(
                ConnectionRequest.to_member_id == member_id,
                ConnectionRequest.status == ConnectionStatus.PENDING.value,
            ),
            "count_pending_received",
        )
        return result.scalar() or 0

    async def list_connections(self, db: AsyncSession, member_id: UUID) -> List[ConnectionItem]:
        """
        Accepted connections of `member_id`, most recently connected first.

        Derived by query every time. `connected_at` is the accepted row's
        `updated_at`, i.e. the moment of acceptance.
        """
        result = await self._execute(
            db,
            select(ConnectionRequest)
            .where(
                ConnectionRequest.status == ConnectionStatus.ACCEPTED.value,
                or_(
                    ConnectionRequest.from_member_id == member_id,
                    ConnectionRequest.to_member_id == member_id,
                ),
            )
            .order_by(ConnectionRequest.updated_at.desc()),
            "list_connections",
        )
        accepted = list(result.scalars().all())

        peers = await member_directory.get_members(
            db, (request.peer_of(member_id) for request in accepted)
        )
        return [
            ConnectionItem(
                request_id=request.id,
                peer_member_id=request.peer_of(member_id),
                member=member_directory.summarize(peers.get(request.peer_of(member_id))),
                connected_at=request.updated_at,
            )
            for request in accepted
        ]

    async def status_counts(self, db: AsyncSession) -> Dict[str, int]:
        """Number of requests in each status; statuses with no rows report 0."""
        result = await self._execute(
            db,
            select(ConnectionRequest.status, func.count(ConnectionRequest.id))
            .group_by(ConnectionRequest.status),
            "status_counts",
        )
        counts = {status.value: 0 for status in ConnectionStatus}
        counts.update({status: count for status, count in result.all()})
        return counts

    # ── Internals ─────────────────────────────────────────────────────────

    async def _pair_statuses(self, db: AsyncSession, pair_key: str) -> set:
        """Blocking statuses (pending/accepted) present for the pair, in either direction."""
        result = await self._execute(
            db,
            select(ConnectionRequest.status).where(
                ConnectionRequest.pair_key == pair_key,
                ConnectionRequest.status.in_(
                    [ConnectionStatus.PENDING.value, ConnectionStatus.ACCEPTED.value]
                ),
            ),
            "pair_check",
        )
        return set(result.scalars().all())

    async def _load_pending(
        self, db: AsyncSession, request_id: UUID, actor_column, acting_member_id: UUID
    ) -> ConnectionRequest:
        """
        The pending request `request_id` on which `acting_member_id` sits in
        `actor_column`, locked for update. NotFoundError otherwise.
        """
        result = await self._execute(
            db,
            select(ConnectionRequest)
            .where(
                ConnectionRequest.id == request_id,
                actor_column == acting_member_id,
                ConnectionRequest.status == ConnectionStatus.PENDING.value,
            )
            .with_for_update(),
            "load_pending",
        )
        request = result.scalar_one_or_none()
        if request is None:
            raise NotFoundError(resource="connection request", resource_id=str(request_id))
        return request

    async def _transition(
        self, db: AsyncSession, request: ConnectionRequest, new_status: ConnectionStatus
    ) -> None:
        previous = request.status
        request.status = new_status.value
        request.updated_at = datetime.now(timezone.utc)
        try:
            await db.flush()
        except IntegrityError as e:
            if new_status is not ConnectionStatus.ACCEPTED or not is_pair_conflict(
                e, ACCEPTED_PAIR_INDEX
            ):
                logger.error("Integrity error moving request %s: %s", request.id, str(e))
                raise PersistenceError(context={"request_id": str(request.id)}) from e
            # The pair already has an accepted row
            logger.warning("Accepted-pair constraint rejected request %s", request.id)
            raise AlreadyConnectedError(context={"request_id": str(request.id)}) from e
        except SQLAlchemyError as e:
            logger.error(
                "Failed to move request %s from %s to %s: %s",
                request.id, previous, new_status.value, str(e), exc_info=True,
            )
            raise PersistenceError(context={"request_id": str(request.id)}) from e

        logger.info("Connection request %s: %s -> %s", request.id, previous, new_status.value)

    async def _execute(self, db: AsyncSession, query, operation: str):
        try:
            return await db.execute(query)
        except SQLAlchemyError as e:
            logger.error("Database error in %s: %s", operation, str(e), exc_info=True)
            raise PersistenceError(context={"operation": operation}) from e

    @staticmethod
    def _display_name(member: Optional[Member]) -> str:
        return member.full_name if member is not None else "A member"


# ── Singleton Instance ────────────────────────────────────────────────────
connection_ledger = ConnectionLedger()
