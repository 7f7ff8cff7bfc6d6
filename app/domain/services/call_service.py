"""Outbound call placement via ring-out."""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.phone import normalize_phone_e164
from app.domain.exceptions import CallFailedError, UnauthorizedError
from app.domain.services.call_log_service import CallLogService, CallRecordData
from app.domain.services.matching_service import MatchingService
from app.domain.services.token_service import ClientFactory, TokenService
from app.infrastructure.telephony.base import ProviderError, RingOutResult
from app.infrastructure.telephony.ringcentral_client import RingCentralClient
from app.persistence.models.call_record import DIRECTION_OUTBOUND, STATUS_INITIATED
from app.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class PlaceCallResult:
    """Result of placing an outbound call."""

    provider_call_id: str | None
    to_number: str
    from_number: str
    call_record_id: int | None = None


class CallService:
    """Places outbound calls on behalf of a user."""

    def __init__(
        self,
        session: AsyncSession,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.session = session
        self.client_factory = client_factory or RingCentralClient
        self.token_service = TokenService(session, client_factory=self.client_factory)
        self.matching_service = MatchingService(session)
        self.call_log_service = CallLogService(session, client_factory=self.client_factory)

    async def place_call(
        self,
        user_id: int,
        to_number: str,
        from_number: str | None = None,
    ) -> PlaceCallResult:
        """Ring the user's phone, then connect to ``to_number``.

        Args:
            user_id: Calling user
            to_number: Customer number in any format
            from_number: Caller number, defaults to the configured main number

        Returns:
            PlaceCallResult with the provider call ID and normalized numbers

        Raises:
            ValueError: If ``to_number`` is empty or has no digits
            NotConnectedError: If the user has no telephony account
            RefreshFailedError: If the expired token could not be refreshed
            UnauthorizedError: If the provider keeps rejecting the token
            CallFailedError: If the provider rejects the call
        """
        if not to_number or not to_number.strip():
            raise ValueError("Destination phone number is required")
        to_e164 = normalize_phone_e164(to_number)
        if not to_e164:
            raise ValueError("Destination phone number is invalid")

        from_e164 = normalize_phone_e164(from_number or settings.ringcentral_main_number)
        if not from_e164:
            raise CallFailedError("No caller number configured for ring-out")

        access_token = await self.token_service.get_valid_access_token(user_id)
        ring_out = await self._ring_out(user_id, access_token, to_e164, from_e164)

        logger.info(
            "Ring-out placed",
            extra={"user_id": user_id, "provider_call_id": ring_out.call_id, "status": ring_out.status},
        )

        call_record_id = await self._record_call(user_id, ring_out, to_e164, from_e164)
        return PlaceCallResult(
            provider_call_id=ring_out.call_id,
            to_number=to_e164,
            from_number=from_e164,
            call_record_id=call_record_id,
        )

    async def _ring_out(
        self,
        user_id: int,
        access_token: str,
        to_number: str,
        from_number: str,
    ) -> RingOutResult:
        try:
            return await self.client_factory(access_token=access_token).ring_out(
                to_number, from_number
            )
        except ProviderError as e:
            if not e.is_unauthorized:
                raise CallFailedError("Provider rejected the call", status_code=e.status_code) from e
            if not settings.telephony_retry_on_unauthorized:
                raise UnauthorizedError("Provider rejected the access token") from e

        # Token was revoked or rotated upstream: refresh once and retry once
        logger.info("Ring-out unauthorized, forcing token refresh", extra={"user_id": user_id})
        access_token = await self.token_service.force_refresh(user_id)
        try:
            return await self.client_factory(access_token=access_token).ring_out(
                to_number, from_number
            )
        except ProviderError as e:
            if e.is_unauthorized:
                raise UnauthorizedError("Provider rejected the refreshed access token") from e
            raise CallFailedError("Provider rejected the call", status_code=e.status_code) from e

    async def _record_call(
        self,
        user_id: int,
        ring_out: RingOutResult,
        to_number: str,
        from_number: str,
    ) -> int | None:
        match = await self.matching_service.safe_match(to_number)
        data = CallRecordData(
            direction=DIRECTION_OUTBOUND,
            status=STATUS_INITIATED,
            from_number=from_number,
            to_number=to_number,
            provider_call_id=ring_out.call_id,
            matched_contact_id=match.contact_id,
            matched_deal_id=match.deal_id,
            user_id=user_id,
        )
        try:
            record = await self.call_log_service.upsert(data)
        except SQLAlchemyError:
            # The call is already ringing; a bookkeeping failure must not fail it
            await self.session.rollback()
            logger.error(
                "Failed to record outbound call",
                extra={"user_id": user_id, "provider_call_id": ring_out.call_id},
                exc_info=True,
            )
            return None
        return record.id
