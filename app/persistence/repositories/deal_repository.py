"""Deal repository."""

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.models.deal import TERMINAL_STAGE_NAMES, Deal, DealStage
from app.persistence.repositories.base import BaseRepository


class DealRepository(BaseRepository[Deal]):
    """Repository for Deal entities."""

    def __init__(self, session: AsyncSession):
        super().__init__(Deal, session)

    async def list_open_by_contact(self, contact_id: int) -> list[Deal]:
        """List a contact's deals not in a Won/Lost stage, newest first."""
        stmt = (
            select(Deal)
            .outerjoin(DealStage, Deal.stage_id == DealStage.id)
            .where(
                Deal.contact_id == contact_id,
                or_(
                    DealStage.id.is_(None),
                    func.lower(func.trim(DealStage.name)).not_in(sorted(TERMINAL_STAGE_NAMES)),
                ),
            )
            .order_by(Deal.created_at.desc(), Deal.id.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.unique().scalars().all())

    async def find_open_by_contact(self, contact_id: int) -> Deal | None:
        """Most recent open deal for a contact."""
        deals = await self.list_open_by_contact(contact_id)
        return deals[0] if deals else None
