"""Repository for per-user telephony credentials."""

from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import to_naive_utc, utcnow
from app.persistence.models.telephony_identity import TelephonyIdentity
from app.persistence.repositories.base import BaseRepository


class TelephonyIdentityRepository(BaseRepository[TelephonyIdentity]):
    """Repository for TelephonyIdentity entities."""

    def __init__(self, session: AsyncSession):
        super().__init__(TelephonyIdentity, session)

    async def get_by_user_id(self, user_id: int) -> TelephonyIdentity | None:
        """Get the telephony identity for a user."""
        stmt = select(TelephonyIdentity).where(TelephonyIdentity.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(
        self,
        user_id: int,
        access_token: str,
        refresh_token: str,
        token_expires_at: datetime,
        **kwargs: Any,
    ) -> TelephonyIdentity:
        """Create or replace the credentials for a user.

        Extra keyword arguments set optional columns such as
        ``provider_account_id``. Values of None leave the existing column alone.
        """
        values: dict[str, Any] = {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_expires_at": to_naive_utc(token_expires_at),
        }
        for key, value in kwargs.items():
            if value is None or not hasattr(TelephonyIdentity, key):
                continue
            values[key] = to_naive_utc(value) if isinstance(value, datetime) else value

        existing = await self.get_by_user_id(user_id)
        if existing:
            for key, value in values.items():
                setattr(existing, key, value)
            existing.updated_at = utcnow()
            await self.session.commit()
            await self.session.refresh(existing)
            return existing

        identity = TelephonyIdentity(user_id=user_id, **values)
        self.session.add(identity)
        await self.session.commit()
        await self.session.refresh(identity)
        return identity

    async def delete_by_user_id(self, user_id: int) -> bool:
        """Remove a user's credentials. Returns True if a row was deleted."""
        stmt = delete(TelephonyIdentity).where(TelephonyIdentity.user_id == user_id)
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount > 0

    async def list_all(self) -> list[TelephonyIdentity]:
        """List every connected identity, for the refresh sweep."""
        stmt = select(TelephonyIdentity).order_by(TelephonyIdentity.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
