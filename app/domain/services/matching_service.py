"""Contact and open-deal matching by phone number."""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.phone import phone_match_key
from app.domain.exceptions import MatchingFailure
from app.persistence.models.contact import Contact
from app.persistence.models.deal import Deal
from app.persistence.repositories.contact_repository import ContactRepository
from app.persistence.repositories.deal_repository import DealRepository

logger = logging.getLogger(__name__)


@dataclass
class MatchResult:
    """Matched contact and its most recent open deal. Falsy when nothing matched."""

    contact: Contact | None = None
    deal: Deal | None = None

    def __bool__(self) -> bool:
        return self.contact is not None

    @property
    def contact_id(self) -> int | None:
        return self.contact.id if self.contact else None

    @property
    def deal_id(self) -> int | None:
        return self.deal.id if self.deal else None


class MatchingService:
    """Finds the CRM contact and open deal behind a phone number."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.contact_repo = ContactRepository(session)
        self.deal_repo = DealRepository(session)

    async def match_by_phone(self, phone: str | None) -> MatchResult:
        """Match a phone number to a contact and its newest open deal.

        Args:
            phone: Phone number in any format

        Returns:
            MatchResult; empty when the number is unusable or unknown
        """
        if not phone_match_key(phone):
            return MatchResult()

        contact = await self.contact_repo.find_by_phone(phone)
        if contact is None:
            return MatchResult()

        deal = await self.deal_repo.find_open_by_contact(contact.id)
        return MatchResult(contact=contact, deal=deal)

    async def safe_match(self, phone: str | None) -> MatchResult:
        """Like :meth:`match_by_phone` but never raises.

        A lookup failure is logged and treated as no match.
        """
        try:
            return await self.match_by_phone(phone)
        except SQLAlchemyError as e:
            await self.session.rollback()
            failure = MatchingFailure(f"Contact lookup failed: {type(e).__name__}")
            logger.warning(str(failure), exc_info=True)
            return MatchResult()
