"""Telephony token refresh worker.

Runs periodically via an external scheduler. Refreshes access tokens that
expire within the refresh window so calls never wait on a refresh.
"""

import logging
from datetime import timedelta
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_telephony_client_factory
from app.core.encryption import EncryptionError
from app.domain.exceptions import TelephonyError
from app.domain.services.token_service import ClientFactory, TokenService
from app.persistence.database import get_db
from app.persistence.repositories.telephony_identity_repository import (
    TelephonyIdentityRepository,
)
from app.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/refresh-telephony-tokens")
async def refresh_telephony_tokens_task(
    db: Annotated[AsyncSession, Depends(get_db)],
    client_factory: Annotated[ClientFactory, Depends(get_telephony_client_factory)],
) -> dict[str, Any]:
    """Refresh every telephony token that is close to expiry."""
    window = timedelta(hours=settings.telephony_refresh_window_hours)
    identities = await TelephonyIdentityRepository(db).list_all()
    user_ids = [identity.user_id for identity in identities]

    token_service = TokenService(db, client_factory=client_factory)
    refreshed = 0
    errors = 0

    for user_id in user_ids:
        try:
            if await token_service.refresh_if_near_expiry(user_id, window=window):
                refreshed += 1
        except (TelephonyError, EncryptionError) as e:
            logger.error(
                f"Token refresh failed for user {user_id}: {e}",
                extra={"user_id": user_id},
            )
            errors += 1
        except SQLAlchemyError:
            await db.rollback()
            logger.error(
                f"Token refresh failed for user {user_id}: database error",
                extra={"user_id": user_id},
                exc_info=True,
            )
            errors += 1

    logger.info(
        f"Token refresh worker complete: {refreshed} refreshed, {errors} errors",
        extra={"checked": len(user_ids)},
    )
    return {"checked": len(user_ids), "refreshed": refreshed, "errors": errors}
