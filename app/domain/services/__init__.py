"""Domain services."""

from app.domain.services.call_log_service import CallLogService, CallRecordData
from app.domain.services.call_service import CallService, PlaceCallResult
from app.domain.services.matching_service import MatchingService, MatchResult
from app.domain.services.token_service import TokenService
from app.domain.services.webhook_service import WebhookOutcome, WebhookService

__all__ = [
    "CallLogService",
    "CallRecordData",
    "CallService",
    "MatchResult",
    "MatchingService",
    "PlaceCallResult",
    "TokenService",
    "WebhookOutcome",
    "WebhookService",
]
