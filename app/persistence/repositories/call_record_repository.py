"""Call record repository for persistence operations."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.models.call_record import CallRecord
from app.persistence.repositories.base import BaseRepository


class CallRecordRepository(BaseRepository[CallRecord]):
    """Repository for CallRecord entities."""

    def __init__(self, session: AsyncSession):
        super().__init__(CallRecord, session)

    async def get_by_provider_call_id(self, provider_call_id: str) -> CallRecord | None:
        """Get a call record by the provider's call ID."""
        stmt = select(CallRecord).where(CallRecord.provider_call_id == provider_call_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(
        self,
        user_id: int,
        skip: int = 0,
        limit: int = 50,
        direction: str | None = None,
        status: str | None = None,
    ) -> tuple[list[CallRecord], int]:
        """List a user's calls, newest first.

        Returns:
            Tuple of (records, total count before pagination)
        """
        conditions = [CallRecord.user_id == user_id]
        if direction:
            conditions.append(CallRecord.direction == direction)
        if status:
            conditions.append(CallRecord.status == status)

        count_stmt = select(func.count(CallRecord.id)).where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            select(CallRecord)
            .where(*conditions)
            .order_by(CallRecord.created_at.desc(), CallRecord.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total
