"""Telephony provider webhook endpoint."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.services.webhook_service import WebhookService
from app.persistence.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter()

SIGNATURE_HEADER = "X-RingCentral-Signature"
VALIDATION_TOKEN_HEADER = "Validation-Token"


@router.post("/webhook")
async def telephony_webhook(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    signature: Annotated[str | None, Header(alias=SIGNATURE_HEADER)] = None,
    validation_token: Annotated[str | None, Header(alias=VALIDATION_TOKEN_HEADER)] = None,
) -> JSONResponse:
    """Receive call notifications.

    Answers 401 only for signature failures and 200 otherwise, so the
    provider does not keep retrying deliveries we cannot use.
    """
    # Subscription handshake: echo the token back with an empty body
    if validation_token:
        logger.info("Telephony webhook validation request")
        return JSONResponse(
            content={},
            headers={VALIDATION_TOKEN_HEADER: validation_token},
        )

    raw_body = await request.body()
    outcome = await WebhookService(db).handle(raw_body, signature)

    if not outcome.accepted:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "Invalid signature"},
        )

    return JSONResponse(
        content={"success": True, "status": outcome.status.value, "processed": outcome.processed}
    )
