"""Call record listing endpoints."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.persistence.database import get_db
from app.persistence.models.user import User
from app.persistence.repositories.call_record_repository import CallRecordRepository

router = APIRouter()


class CallRecordResponse(BaseModel):
    """Call record for list views."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    direction: str
    status: str
    from_number: str | None
    to_number: str | None
    duration_seconds: int | None
    recording_url: str | None
    provider_call_id: str | None
    matched_contact_id: int | None
    matched_deal_id: int | None
    started_at: datetime | None
    created_at: datetime


class CallListResponse(BaseModel):
    """Paginated call records."""
    calls: list[CallRecordResponse]
    total: int
    page: int
    page_size: int


@router.get("", response_model=CallListResponse)
async def list_calls(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    direction: str | None = Query(None, description="Filter by direction (inbound/outbound)"),
    call_status: str | None = Query(None, alias="status", description="Filter by call status"),
) -> CallListResponse:
    """List the current user's calls, newest first."""
    records, total = await CallRecordRepository(db).list_for_user(
        current_user.id,
        skip=(page - 1) * page_size,
        limit=page_size,
        direction=direction,
        status=call_status,
    )
    return CallListResponse(
        calls=[CallRecordResponse.model_validate(r) for r in records],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{call_id}", response_model=CallRecordResponse)
async def get_call(
    call_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CallRecordResponse:
    """Get a single call record owned by the current user."""
    record = await CallRecordRepository(db).get_by_id(call_id)
    if record is None or record.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Call not found",
        )
    return CallRecordResponse.model_validate(record)
