"""RingCentral REST client.

A client is built per request with an explicit access token; no
authenticated client is shared between users.
"""

import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlencode

import httpx

from app.infrastructure.telephony.base import (
    ProviderError,
    RingOutResult,
    TelephonyProviderProtocol,
    TokenSet,
)
from app.settings import settings

logger = logging.getLogger(__name__)

TOKEN_PATH = "/restapi/oauth/token"
AUTHORIZE_PATH = "/restapi/oauth/authorize"
RING_OUT_PATH = "/restapi/v1.0/account/~/extension/~/ring-out"
CALL_LOG_PATH = "/restapi/v1.0/account/~/extension/~/call-log"

CALL_LOG_PAGE_SIZE = 250
CALL_LOG_MAX_PAGES = 20


def _format_provider_datetime(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


class RingCentralClient(TelephonyProviderProtocol):
    """RingCentral OAuth, ring-out and call-log operations."""

    def __init__(
        self,
        access_token: str | None = None,
        server_url: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        redirect_uri: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize RingCentral client.

        Args:
            access_token: Bearer token for REST calls (not needed for OAuth calls)
            server_url: Platform base URL, defaults to settings
            client_id: OAuth client ID, defaults to settings
            client_secret: OAuth client secret, defaults to settings
            redirect_uri: OAuth redirect URI, defaults to settings
            timeout: Request timeout in seconds, defaults to settings
            transport: Optional httpx transport (used by tests)
        """
        self.access_token = access_token
        self.server_url = (server_url or settings.ringcentral_server_url).rstrip("/")
        self.client_id = client_id or settings.ringcentral_client_id
        self.client_secret = client_secret or settings.ringcentral_client_secret
        self.redirect_uri = redirect_uri or settings.ringcentral_redirect_uri
        self.timeout = timeout if timeout is not None else settings.telephony_http_timeout_seconds
        self._transport = transport

    def _get_client(self, headers: dict[str, str] | None = None) -> httpx.AsyncClient:
        """Create HTTP client for the platform."""
        return httpx.AsyncClient(
            base_url=self.server_url,
            headers={"Accept": "application/json", **(headers or {})},
            timeout=self.timeout,
            transport=self._transport,
        )

    def _bearer_headers(self) -> dict[str, str]:
        if not self.access_token:
            raise ProviderError("Access token required for this operation")
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _request(
        self,
        method: str,
        path: str,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Send a request and return the decoded JSON body.

        Raises:
            ProviderError: On non-2xx responses, timeouts and transport errors
        """
        try:
            async with self._get_client(headers) as client:
                response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("RingCentral request timed out", extra={"path": path})
            raise ProviderError(f"Request to {path} timed out") from e
        except httpx.HTTPError as e:
            logger.warning(
                "RingCentral transport error",
                extra={"path": path, "error_type": type(e).__name__},
            )
            raise ProviderError(f"Request to {path} failed: {type(e).__name__}") from e

        if response.is_error:
            logger.warning(
                "RingCentral returned error status",
                extra={"path": path, "status_code": response.status_code},
            )
            raise ProviderError(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"{method} {path} returned invalid JSON") from e

    async def _token_request(self, form: dict[str, str]) -> TokenSet:
        data = await self._request(
            "POST",
            TOKEN_PATH,
            data=form,
            auth=(self.client_id or "", self.client_secret or ""),
        )
        try:
            return TokenSet(
                access_token=data["access_token"],
                refresh_token=data["refresh_token"],
                expires_in=int(data["expires_in"]),
                refresh_token_expires_in=(
                    int(data["refresh_token_expires_in"])
                    if data.get("refresh_token_expires_in") is not None
                    else None
                ),
                owner_id=str(data["owner_id"]) if data.get("owner_id") is not None else None,
                raw_response=data,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError("Token response missing required fields") from e

    def authorization_url(self, state: str) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id or "",
            "redirect_uri": self.redirect_uri or "",
            "state": state,
        }
        if settings.ringcentral_oauth_scope:
            params["scope"] = settings.ringcentral_oauth_scope
        return f"{self.server_url}{AUTHORIZE_PATH}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenSet:
        return await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri or "",
            }
        )

    async def refresh_tokens(self, refresh_token: str) -> TokenSet:
        return await self._token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )

    async def ring_out(self, to_number: str, from_number: str) -> RingOutResult:
        payload = {
            "to": {"phoneNumber": to_number},
            "from": {"phoneNumber": from_number},
            "playPrompt": True,
        }
        data = await self._request(
            "POST", RING_OUT_PATH, headers=self._bearer_headers(), json=payload
        )
        call_status = data.get("status") or {}
        return RingOutResult(
            call_id=str(data["id"]) if data.get("id") is not None else None,
            status=call_status.get("callStatus") if isinstance(call_status, dict) else None,
            raw_response=data,
        )

    async def get_call_log(
        self,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"view": "Simple", "perPage": CALL_LOG_PAGE_SIZE}
        if date_from:
            params["dateFrom"] = _format_provider_datetime(date_from)
        if date_to:
            params["dateTo"] = _format_provider_datetime(date_to)

        records: list[dict[str, Any]] = []
        headers = self._bearer_headers()
        for page in range(1, CALL_LOG_MAX_PAGES + 1):
            data = await self._request(
                "GET", CALL_LOG_PATH, headers=headers, params={**params, "page": page}
            )
            records.extend(data.get("records") or [])
            if not (data.get("navigation") or {}).get("nextPage"):
                break
        else:
            logger.warning("Call log truncated", extra={"max_pages": CALL_LOG_MAX_PAGES})

        return records
