"""Telephony domain exceptions."""


class TelephonyError(Exception):
    """Base exception for telephony operations."""


class NotConnectedError(TelephonyError):
    """User has no telephony identity or it holds no access token."""


class RefreshFailedError(TelephonyError):
    """Refreshing the access token failed. The stored identity is kept."""


class TokenExchangeError(TelephonyError):
    """Exchanging an authorization code for tokens failed."""


class UnauthorizedError(TelephonyError):
    """Provider rejected a token that is still valid locally."""


class CallFailedError(TelephonyError):
    """Provider did not accept a ring-out request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class InvalidSignatureError(TelephonyError):
    """Webhook signature missing or does not match the body."""


class MatchingFailure(TelephonyError):
    """Contact/deal lookup failed. Logged, never propagated to callers."""
