"""Call record reconciliation.

Every call event (ring-out placement, webhook notification, call-log sync)
ends up here. Records are deduplicated on the provider call ID so repeated
or out-of-order deliveries converge on a single row.
"""

import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import to_naive_utc
from app.core.phone import normalize_phone_e164
from app.domain.exceptions import TelephonyError, UnauthorizedError
from app.domain.services.matching_service import MatchingService
from app.domain.services.token_service import ClientFactory, TokenService
from app.infrastructure.telephony.base import ProviderError
from app.infrastructure.telephony.ringcentral_client import RingCentralClient
from app.infrastructure.telephony.schemas import CallLogRecord
from app.persistence.models.call_record import (
    DIRECTION_INBOUND,
    DIRECTION_OUTBOUND,
    NON_TERMINAL_STATUSES,
    STATUS_BUSY,
    STATUS_COMPLETED,
    STATUS_MISSED,
    STATUS_REJECTED,
    STATUS_RINGING,
    STATUS_UNKNOWN,
    TERMINAL_STATUSES,
    CallRecord,
)
from app.persistence.repositories.call_record_repository import CallRecordRepository

logger = logging.getLogger(__name__)

# Provider result strings (lower-cased) mapped to internal statuses
PROVIDER_STATUS_MAP: dict[str, str] = {
    "call connected": STATUS_COMPLETED,
    "call finished": STATUS_COMPLETED,
    "hang up": STATUS_COMPLETED,
    "accepted": STATUS_COMPLETED,
    "no answer": STATUS_MISSED,
    "missed": STATUS_MISSED,
    "busy": STATUS_BUSY,
    "rejected": STATUS_REJECTED,
    "declined": STATUS_REJECTED,
    "ringing": STATUS_RINGING,
}


def map_call_status(result: str | None) -> str:
    """Map a provider call result to an internal status.

    Unrecognised results pass through lower-cased.
    """
    if not result or not result.strip():
        return STATUS_UNKNOWN
    normalized = result.strip().lower()
    return PROVIDER_STATUS_MAP.get(normalized, normalized)


def map_direction(direction: str | None) -> str:
    if direction and direction.strip().lower() == DIRECTION_OUTBOUND:
        return DIRECTION_OUTBOUND
    return DIRECTION_INBOUND


def parse_provider_time(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return to_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        logger.debug("Unparseable provider timestamp", extra={"value": value})
        return None


def should_replace_status(current: str | None, incoming: str) -> bool:
    """A late non-terminal event must not undo a terminal status."""
    return not (current in TERMINAL_STATUSES and incoming in NON_TERMINAL_STATUSES)


@dataclass
class CallRecordData:
    """Values for creating or updating a call record."""

    direction: str
    status: str
    from_number: str | None = None
    to_number: str | None = None
    provider_call_id: str | None = None
    duration_seconds: int | None = None
    recording_url: str | None = None
    matched_contact_id: int | None = None
    matched_deal_id: int | None = None
    started_at: datetime | None = None
    user_id: int | None = None

    @property
    def customer_number(self) -> str | None:
        """The far-end number: ``to`` for outbound calls, ``from`` for inbound."""
        return self.to_number if self.direction == DIRECTION_OUTBOUND else self.from_number


class CallLogService:
    """Creates and updates call records."""

    def __init__(
        self,
        session: AsyncSession,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.session = session
        self.call_repo = CallRecordRepository(session)
        self.matching_service = MatchingService(session)
        self.client_factory = client_factory or RingCentralClient

    async def upsert(self, data: CallRecordData) -> CallRecord:
        """Insert a call record, or merge into the row with the same provider call ID."""
        if not data.provider_call_id:
            return await self._insert(data)

        existing = await self.call_repo.get_by_provider_call_id(data.provider_call_id)
        if existing is not None:
            return await self._merge(existing, data)

        try:
            async with self.session.begin_nested():
                record = CallRecord(**asdict(data))
                self.session.add(record)
        except IntegrityError:
            # A concurrent delivery inserted the same call first
            logger.info(
                "Concurrent insert for call record, merging instead",
                extra={"provider_call_id": data.provider_call_id},
            )
            existing = await self.call_repo.get_by_provider_call_id(data.provider_call_id)
            if existing is None:
                raise
            return await self._merge(existing, data)

        await self.session.commit()
        await self.session.refresh(record)
        logger.info(
            "Created call record",
            extra={"call_record_id": record.id, "provider_call_id": record.provider_call_id},
        )
        return record

    async def process_record(
        self,
        record: CallLogRecord,
        user_id: int | None = None,
    ) -> CallRecord:
        """Normalize a provider call-log record, match it and reconcile it."""
        direction = map_direction(record.direction)
        data = CallRecordData(
            direction=direction,
            status=map_call_status(record.result),
            from_number=normalize_phone_e164(record.raw_from_number),
            to_number=normalize_phone_e164(record.raw_to_number),
            provider_call_id=record.id,
            duration_seconds=record.duration,
            recording_url=record.resolved_recording_url,
            started_at=parse_provider_time(record.start_time),
            user_id=user_id,
        )

        match = await self.matching_service.safe_match(data.customer_number)
        data.matched_contact_id = match.contact_id
        data.matched_deal_id = match.deal_id

        return await self.upsert(data)

    async def sync_from_provider(
        self,
        user_id: int,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> int:
        """Pull the user's call log from the provider and reconcile every record.

        Returns:
            Number of records reconciled

        Raises:
            NotConnectedError: If the user has no telephony account
            RefreshFailedError: If the token could not be refreshed
            UnauthorizedError: If the provider rejects the token
            TelephonyError: On other provider failures
        """
        token_service = TokenService(self.session, client_factory=self.client_factory)
        access_token = await token_service.get_valid_access_token(user_id)

        try:
            raw_records = await self.client_factory(access_token=access_token).get_call_log(
                date_from=date_from, date_to=date_to
            )
        except ProviderError as e:
            if e.is_unauthorized:
                raise UnauthorizedError("Provider rejected the access token") from e
            raise TelephonyError(f"Call log fetch failed: {e}") from e

        reconciled = 0
        for raw in raw_records:
            try:
                record = CallLogRecord.model_validate(raw)
            except ValidationError:
                logger.warning("Skipping malformed call-log record", exc_info=True)
                continue
            try:
                await self.process_record(record, user_id=user_id)
            except SQLAlchemyError:
                await self.session.rollback()
                logger.error(
                    "Failed to reconcile call-log record",
                    extra={"provider_call_id": record.id},
                    exc_info=True,
                )
                continue
            reconciled += 1

        logger.info(
            "Call log synced",
            extra={"user_id": user_id, "fetched": len(raw_records), "reconciled": reconciled},
        )
        return reconciled

    async def _insert(self, data: CallRecordData) -> CallRecord:
        record = CallRecord(**asdict(data))
        self.session.add(record)
        await self.session.commit()
        await self.session.refresh(record)
        logger.info("Created call record without provider id", extra={"call_record_id": record.id})
        return record

    async def _merge(self, record: CallRecord, data: CallRecordData) -> CallRecord:
        if should_replace_status(record.status, data.status):
            record.status = data.status
        else:
            logger.info(
                "Ignoring status regression",
                extra={
                    "provider_call_id": record.provider_call_id,
                    "current_status": record.status,
                    "incoming_status": data.status,
                },
            )

        for field_name in (
            "duration_seconds",
            "recording_url",
            "matched_contact_id",
            "matched_deal_id",
            "started_at",
        ):
            value = getattr(data, field_name)
            if value is not None:
                setattr(record, field_name, value)

        # Fill in identity fields an earlier partial event left empty
        for field_name in ("from_number", "to_number", "user_id"):
            if getattr(record, field_name) is None and getattr(data, field_name) is not None:
                setattr(record, field_name, getattr(data, field_name))

        await self.session.commit()
        await self.session.refresh(record)
        logger.info(
            "Updated call record",
            extra={"call_record_id": record.id, "provider_call_id": record.provider_call_id},
        )
        return record
