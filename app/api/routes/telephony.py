"""Telephony account connection and outbound calling endpoints."""

import logging
from datetime import datetime
from typing import Annotated
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_telephony_client_factory
from app.core.auth import create_oauth_state, decode_oauth_state
from app.domain.exceptions import (
    CallFailedError,
    NotConnectedError,
    RefreshFailedError,
    TelephonyError,
    TokenExchangeError,
    UnauthorizedError,
)
from app.domain.services.call_log_service import CallLogService
from app.domain.services.call_service import CallService
from app.domain.services.token_service import ClientFactory, TokenService
from app.infrastructure.redis import redis_client
from app.persistence.database import get_db
from app.persistence.models.user import User
from app.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter()

OAUTH_STATE_KEY_PREFIX = "telephony:oauth_state:"


# Request/Response Models

class PlaceCallRequest(BaseModel):
    """Request to place an outbound call."""
    to: str
    from_: str | None = Field(default=None, alias="from")


class PlaceCallResponse(BaseModel):
    """Response from placing a call."""
    success: bool
    call_id: str | None = None
    call_record_id: int | None = None
    message: str


class DisconnectResponse(BaseModel):
    success: bool


class ConnectionStatusResponse(BaseModel):
    """Connection state of the user's telephony account."""
    connected: bool
    needs_reconnect: bool
    token_expires_at: datetime | None = None
    provider_account_id: str | None = None


class SyncResponse(BaseModel):
    success: bool
    synced: int


def _settings_redirect(**params: str) -> RedirectResponse:
    url = f"{settings.frontend_url.rstrip('/')}/settings?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


def _raise_for_telephony_error(e: TelephonyError) -> None:
    """Translate a domain error into an HTTP error the UI can act on."""
    if isinstance(e, NotConnectedError):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Telephony account not connected. Connect it in settings.",
        ) from e
    if isinstance(e, (UnauthorizedError, RefreshFailedError)):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Telephony authorization expired. Please reconnect your account.",
        ) from e
    if isinstance(e, CallFailedError):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Call could not be placed: {e}",
        ) from e
    raise HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Telephony provider error: {e}",
    ) from e


# Endpoints

@router.get("/auth")
async def start_oauth(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    client_factory: Annotated[ClientFactory, Depends(get_telephony_client_factory)],
) -> RedirectResponse:
    """Redirect to the provider's consent screen."""
    if not settings.ringcentral_client_id or not settings.ringcentral_redirect_uri:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Telephony integration is not configured",
        )

    state, nonce = create_oauth_state(current_user.id)
    await redis_client.remember(
        f"{OAUTH_STATE_KEY_PREFIX}{nonce}", ttl=settings.telephony_oauth_state_ttl_seconds
    )

    url = TokenService(db, client_factory=client_factory).build_authorization_url(state)
    logger.info("Starting telephony OAuth", extra={"user_id": current_user.id})
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


@router.get("/callback")
async def oauth_callback(
    db: Annotated[AsyncSession, Depends(get_db)],
    client_factory: Annotated[ClientFactory, Depends(get_telephony_client_factory)],
    code: Annotated[str | None, Query()] = None,
    state: Annotated[str | None, Query()] = None,
    error: Annotated[str | None, Query()] = None,
) -> RedirectResponse:
    """Handle the provider's OAuth redirect and store the tokens."""
    if error:
        logger.warning("Telephony OAuth denied", extra={"error": error})
        return _settings_redirect(error=error)

    if not code or not state:
        return _settings_redirect(error="missing_code")

    decoded = decode_oauth_state(state)
    if decoded is None:
        logger.warning("Invalid or expired OAuth state")
        return _settings_redirect(error="invalid_state")
    user_id, nonce = decoded

    if not await redis_client.consume(f"{OAUTH_STATE_KEY_PREFIX}{nonce}"):
        logger.warning("OAuth state already used", extra={"user_id": user_id})
        return _settings_redirect(error="invalid_state")

    try:
        await TokenService(db, client_factory=client_factory).exchange_code(user_id, code)
    except TokenExchangeError:
        return _settings_redirect(error="token_exchange_failed")

    return _settings_redirect(rc="connected")


@router.post("/call", response_model=PlaceCallResponse)
async def place_call(
    request: PlaceCallRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    client_factory: Annotated[ClientFactory, Depends(get_telephony_client_factory)],
) -> PlaceCallResponse:
    """Place an outbound ring-out call."""
    try:
        result = await CallService(db, client_factory=client_factory).place_call(
            user_id=current_user.id,
            to_number=request.to,
            from_number=request.from_,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except TelephonyError as e:
        _raise_for_telephony_error(e)

    return PlaceCallResponse(
        success=True,
        call_id=result.provider_call_id,
        call_record_id=result.call_record_id,
        message=f"Calling {result.to_number}",
    )


@router.post("/disconnect", response_model=DisconnectResponse)
async def disconnect(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DisconnectResponse:
    """Remove the user's telephony connection."""
    await TokenService(db).disconnect(current_user.id)
    return DisconnectResponse(success=True)


@router.get("/status", response_model=ConnectionStatusResponse)
async def connection_status(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ConnectionStatusResponse:
    """Get the user's telephony connection state."""
    conn = await TokenService(db).get_status(current_user.id)
    return ConnectionStatusResponse(
        connected=conn.connected,
        needs_reconnect=conn.needs_reconnect,
        token_expires_at=conn.token_expires_at,
        provider_account_id=conn.provider_account_id,
    )


@router.post("/sync", response_model=SyncResponse)
async def sync_call_log(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    client_factory: Annotated[ClientFactory, Depends(get_telephony_client_factory)],
    date_from: Annotated[datetime | None, Query()] = None,
    date_to: Annotated[datetime | None, Query()] = None,
) -> SyncResponse:
    """Pull the user's call log from the provider."""
    try:
        synced = await CallLogService(db, client_factory=client_factory).sync_from_provider(
            current_user.id, date_from=date_from, date_to=date_to
        )
    except TelephonyError as e:
        _raise_for_telephony_error(e)
    return SyncResponse(success=True, synced=synced)
