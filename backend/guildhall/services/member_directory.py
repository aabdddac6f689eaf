"""
Guildhall Backend — Member Directory (read side)
==================================================

What:  Lookups against the `members` table for the ledger and the auth gate.
Who:   ConnectionLedger (target must be active, names for notification
       text, counterpart decoration) and middleware.auth (session resolution).

Read only. Status and role changes belong to the registration/approval
workflow, which lives outside this service.
"""

import logging
from typing import Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from guildhall.exceptions import PersistenceError
from guildhall.models.member import Member, MemberStatus
from guildhall.schemas.connection import MemberSummary

logger = logging.getLogger(__name__)


class MemberDirectory:

    async def get_member(self, db: AsyncSession, member_id: UUID) -> Optional[Member]:
        """Any member by id, whatever their status."""
        try:
            return await db.get(Member, member_id)
        except SQLAlchemyError as e:
            logger.error("Database error loading member %s: %s", member_id, str(e))
            raise PersistenceError(context={"member_id": str(member_id)}) from e

    async def find_active_member(self, db: AsyncSession, member_id: UUID) -> Optional[Member]:
        """The member with this id if their status is `active`, else None."""
        try:
            result = await db.execute(
                select(Member).where(
                    Member.id == member_id,
                    Member.status == MemberStatus.ACTIVE.value,
                )
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error looking up active member %s: %s", member_id, str(e))
            raise PersistenceError(context={"member_id": str(member_id)}) from e

    async def get_members(
        self, db: AsyncSession, member_ids: Iterable[UUID]
    ) -> Dict[UUID, Member]:
        """
        Bulk fetch keyed by id, for decorating lists in one query.

        Ids with no row are simply absent from the result.
        """
        ids = set(member_ids)
        if not ids:
            return {}
        try:
            result = await db.execute(select(Member).where(Member.id.in_(ids)))
            return {member.id: member for member in result.scalars().all()}
        except SQLAlchemyError as e:
            logger.error("Database error loading %d members: %s", len(ids), str(e))
            raise PersistenceError(context={"member_count": len(ids)}) from e

    @staticmethod
    def summarize(member: Optional[Member]) -> Optional[MemberSummary]:
        if member is None:
            return None
        return MemberSummary.model_validate(member)


member_directory = MemberDirectory()
