"""Telephony provider infrastructure."""

from app.infrastructure.telephony.base import (
    ProviderError,
    RingOutResult,
    TelephonyProviderProtocol,
    TokenSet,
)
from app.infrastructure.telephony.ringcentral_client import RingCentralClient

__all__ = [
    "ProviderError",
    "RingCentralClient",
    "RingOutResult",
    "TelephonyProviderProtocol",
    "TokenSet",
]
