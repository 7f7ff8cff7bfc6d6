"""Base telephony provider interfaces."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any


class ProviderError(Exception):
    """Provider HTTP call failed.

    ``status_code`` is None for timeouts and transport failures.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401


@dataclass
class TokenSet:
    """Tokens returned by the provider's OAuth token endpoint."""

    access_token: str
    refresh_token: str
    expires_in: int
    refresh_token_expires_in: int | None = None
    owner_id: str | None = None
    raw_response: dict | None = None

    def expires_at(self, now: datetime) -> datetime:
        return now + timedelta(seconds=self.expires_in)

    def refresh_expires_at(self, now: datetime) -> datetime | None:
        if self.refresh_token_expires_in is None:
            return None
        return now + timedelta(seconds=self.refresh_token_expires_in)


@dataclass
class RingOutResult:
    """Result of a ring-out request."""

    call_id: str | None
    status: str | None
    raw_response: dict = field(default_factory=dict)


class TelephonyProviderProtocol(ABC):
    """Protocol for telephony provider implementations."""

    @abstractmethod
    def authorization_url(self, state: str) -> str:
        """Build the consent URL the user is redirected to."""
        pass

    @abstractmethod
    async def exchange_code(self, code: str) -> TokenSet:
        """Exchange an authorization code for tokens."""
        pass

    @abstractmethod
    async def refresh_tokens(self, refresh_token: str) -> TokenSet:
        """Obtain a new token set with a refresh token."""
        pass

    @abstractmethod
    async def ring_out(self, to_number: str, from_number: str) -> RingOutResult:
        """Place a two-legged call: ring the user, then connect to ``to_number``.

        Args:
            to_number: Customer number (E.164 format)
            from_number: Caller ID / user's number (E.164 format)
        """
        pass

    @abstractmethod
    async def get_call_log(
        self,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch call-log records for the authenticated extension."""
        pass
