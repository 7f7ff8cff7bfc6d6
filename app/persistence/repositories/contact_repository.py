"""Contact repository with phone-number lookup."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.phone import phone_match_key, phone_suffix
from app.persistence.models.contact import Contact
from app.persistence.repositories.base import BaseRepository


class ContactRepository(BaseRepository[Contact]):
    """Repository for Contact entities."""

    def __init__(self, session: AsyncSession):
        super().__init__(Contact, session)

    async def find_by_phone(self, phone: str) -> Contact | None:
        """Find the oldest contact whose stored phone denotes the same number.

        Stored phones are free-form, so candidates are narrowed in SQL by the
        trailing digits and then compared on their canonical key.
        """
        key = phone_match_key(phone)
        # Stored punctuation can split longer runs, the last 4 digits stay contiguous
        suffix = phone_suffix(phone, length=4)
        if not key or not suffix:
            return None

        stmt = (
            select(Contact)
            .where(Contact.phone.is_not(None), Contact.phone.contains(suffix))
            .order_by(Contact.created_at.asc(), Contact.id.asc())
        )
        result = await self.session.execute(stmt)
        for contact in result.scalars():
            if phone_match_key(contact.phone) == key:
                return contact
        return None
