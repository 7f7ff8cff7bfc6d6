"""Inbound telephony webhook handling."""

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from enum import Enum

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.exceptions import InvalidSignatureError
from app.domain.services.call_log_service import CallLogService
from app.infrastructure.telephony.schemas import CallLogBody, CallLogRecord, WebhookEnvelope
from app.settings import settings

logger = logging.getLogger(__name__)


class WebhookStatus(str, Enum):
    PROCESSED = "processed"
    IGNORED = "ignored"
    REJECTED = "rejected"


@dataclass
class WebhookOutcome:
    """What happened to a webhook delivery."""

    status: WebhookStatus
    processed: int = 0
    failed: int = 0
    call_record_ids: list[int] = field(default_factory=list)
    reason: str | None = None

    @property
    def accepted(self) -> bool:
        return self.status != WebhookStatus.REJECTED


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the raw request body."""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature: str | None, secret: str | None) -> None:
    """Verify a webhook signature.

    Without a secret, verification is skipped outside production and
    refused in production.

    Raises:
        InvalidSignatureError: If the signature is missing or wrong
    """
    if not secret:
        if settings.is_production:
            logger.error("Webhook secret not configured, rejecting webhook")
            raise InvalidSignatureError("Webhook secret not configured")
        logger.warning("Webhook secret not configured, skipping signature verification")
        return

    if not signature:
        raise InvalidSignatureError("Missing signature")

    expected = compute_signature(raw_body, secret)
    provided = signature.strip().lower().encode("utf-8", "replace")
    if not hmac.compare_digest(expected.encode(), provided):
        raise InvalidSignatureError("Signature mismatch")


class WebhookService:
    """Verifies, parses and dispatches provider notifications."""

    def __init__(self, session: AsyncSession, secret: str | None = None) -> None:
        self.session = session
        self.secret = secret if secret is not None else settings.ringcentral_webhook_secret
        self.call_log_service = CallLogService(session)

    async def handle(self, raw_body: bytes, signature: str | None) -> WebhookOutcome:
        """Handle a raw webhook delivery.

        Only a bad signature is reported as rejected. Every other failure
        is logged and acknowledged so the provider does not retry forever.
        """
        try:
            verify_signature(raw_body, signature, self.secret)
        except InvalidSignatureError as e:
            logger.warning("Webhook signature verification failed", extra={"reason": str(e)})
            return WebhookOutcome(status=WebhookStatus.REJECTED, reason=str(e))

        try:
            return await self._dispatch(raw_body)
        except Exception:
            logger.exception("Unhandled error processing webhook")
            return WebhookOutcome(status=WebhookStatus.IGNORED, reason="processing error")

    async def _dispatch(self, raw_body: bytes) -> WebhookOutcome:
        try:
            envelope = WebhookEnvelope.model_validate(json.loads(raw_body or b"{}"))
        except (ValueError, ValidationError):
            logger.warning("Webhook body is not a valid notification")
            return WebhookOutcome(status=WebhookStatus.IGNORED, reason="invalid payload")

        if not envelope.is_call_log_event:
            logger.info("Ignoring unhandled webhook event", extra={"event": envelope.event})
            return WebhookOutcome(status=WebhookStatus.IGNORED, reason="unhandled event")

        try:
            body = CallLogBody.model_validate(envelope.body)
        except ValidationError:
            logger.warning("Invalid call-log body", extra={"event": envelope.event})
            return WebhookOutcome(status=WebhookStatus.IGNORED, reason="invalid call-log body")

        return await self._process_records(body.records)

    async def _process_records(self, raw_records: list[dict]) -> WebhookOutcome:
        outcome = WebhookOutcome(status=WebhookStatus.PROCESSED)
        for raw in raw_records:
            try:
                record = CallLogRecord.model_validate(raw)
                call_record = await self.call_log_service.process_record(record)
            except ValidationError:
                outcome.failed += 1
                logger.warning("Skipping malformed call-log record", exc_info=True)
                continue
            except SQLAlchemyError:
                outcome.failed += 1
                await self.session.rollback()
                logger.error(
                    "Failed to store call-log record",
                    extra={"provider_call_id": raw.get("id")},
                    exc_info=True,
                )
                continue
            outcome.processed += 1
            outcome.call_record_ids.append(call_record.id)

        logger.info(
            "Processed call-log webhook",
            extra={"processed": outcome.processed, "failed": outcome.failed},
        )
        return outcome
