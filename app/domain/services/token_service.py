"""Token lifecycle service for connected telephony accounts."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.domain.exceptions import NotConnectedError, RefreshFailedError, TokenExchangeError
from app.infrastructure.telephony.base import ProviderError, TelephonyProviderProtocol, TokenSet
from app.infrastructure.telephony.ringcentral_client import RingCentralClient
from app.persistence.models.telephony_identity import TelephonyIdentity
from app.persistence.repositories.telephony_identity_repository import (
    TelephonyIdentityRepository,
)
from app.settings import settings

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., TelephonyProviderProtocol]


@dataclass
class ConnectionStatus:
    """Connection state of a user's telephony account."""

    connected: bool
    token_expires_at: datetime | None = None
    provider_account_id: str | None = None
    needs_reconnect: bool = False


class TokenService:
    """Issues valid access tokens, refreshing them against the provider as needed.

    Tokens are read from and written to the database on every call so that
    concurrent workers always see the latest token set.
    """

    def __init__(
        self,
        session: AsyncSession,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.session = session
        self.identity_repo = TelephonyIdentityRepository(session)
        self.client_factory = client_factory or RingCentralClient

    async def get_valid_access_token(self, user_id: int) -> str:
        """Return an access token that has not expired.

        Raises:
            NotConnectedError: If the user has no stored token
            RefreshFailedError: If the token expired and could not be refreshed
        """
        identity = await self._require_identity(user_id)
        if identity.is_expired(utcnow()):
            logger.info("Access token expired, refreshing", extra={"user_id": user_id})
            identity = await self._refresh(identity)
        return identity.access_token

    async def refresh_if_near_expiry(
        self,
        user_id: int,
        window: timedelta | None = None,
    ) -> bool:
        """Refresh the token if it expires within ``window``.

        Returns:
            True if a refresh was performed
        """
        if window is None:
            window = timedelta(hours=settings.telephony_refresh_window_hours)

        identity = await self.identity_repo.get_by_user_id(user_id)
        if identity is None or not identity.access_token:
            return False
        if identity.token_expires_at - utcnow() > window:
            return False

        await self._refresh(identity)
        return True

    async def force_refresh(self, user_id: int) -> str:
        """Refresh unconditionally and return the new access token."""
        identity = await self._require_identity(user_id)
        identity = await self._refresh(identity)
        return identity.access_token

    def build_authorization_url(self, state: str) -> str:
        """Consent URL for connecting a telephony account."""
        return self.client_factory().authorization_url(state)

    async def exchange_code(self, user_id: int, code: str) -> TelephonyIdentity:
        """Exchange an OAuth authorization code and store the resulting tokens.

        Raises:
            TokenExchangeError: If the provider rejects the code
        """
        if not code:
            raise TokenExchangeError("Authorization code is required")
        try:
            tokens = await self.client_factory().exchange_code(code)
        except ProviderError as e:
            logger.warning(
                "Authorization code exchange failed",
                extra={"user_id": user_id, "status_code": e.status_code},
            )
            raise TokenExchangeError("Failed to exchange authorization code") from e

        identity = await self._store(user_id, tokens)
        logger.info(
            "Telephony account connected",
            extra={"user_id": user_id, "provider_account_id": identity.provider_account_id},
        )
        return identity

    async def disconnect(self, user_id: int) -> bool:
        """Remove stored credentials. Returns False if none existed."""
        deleted = await self.identity_repo.delete_by_user_id(user_id)
        logger.info("Telephony account disconnected", extra={"user_id": user_id, "deleted": deleted})
        return deleted

    async def is_connected(self, user_id: int) -> bool:
        """True if the user has a stored token that has not expired."""
        identity = await self.identity_repo.get_by_user_id(user_id)
        return bool(identity and identity.access_token and not identity.is_expired(utcnow()))

    async def get_status(self, user_id: int) -> ConnectionStatus:
        identity = await self.identity_repo.get_by_user_id(user_id)
        if identity is None:
            return ConnectionStatus(connected=False)
        expired = identity.is_expired(utcnow())
        return ConnectionStatus(
            connected=bool(identity.access_token) and not expired,
            token_expires_at=identity.token_expires_at,
            provider_account_id=identity.provider_account_id,
            needs_reconnect=expired,
        )

    async def _require_identity(self, user_id: int) -> TelephonyIdentity:
        identity = await self.identity_repo.get_by_user_id(user_id)
        if identity is None or not identity.access_token:
            raise NotConnectedError("Telephony account not connected")
        return identity

    async def _refresh(self, identity: TelephonyIdentity) -> TelephonyIdentity:
        user_id = identity.user_id
        if not identity.refresh_token:
            raise RefreshFailedError("No refresh token stored")
        try:
            tokens = await self.client_factory().refresh_tokens(identity.refresh_token)
        except ProviderError as e:
            # Keep the identity so the user can still see the broken connection
            logger.warning(
                "Token refresh failed",
                extra={"user_id": user_id, "status_code": e.status_code},
            )
            raise RefreshFailedError("Failed to refresh access token") from e

        refreshed = await self._store(user_id, tokens)
        logger.info(
            "Access token refreshed",
            extra={"user_id": user_id, "token_expires_at": refreshed.token_expires_at.isoformat()},
        )
        return refreshed

    async def _store(self, user_id: int, tokens: TokenSet) -> TelephonyIdentity:
        now = utcnow()
        return await self.identity_repo.upsert(
            user_id=user_id,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_expires_at=tokens.expires_at(now),
            refresh_token_expires_at=tokens.refresh_expires_at(now),
            provider_account_id=tokens.owner_id,
        )
