"""Exception types raised by the Garmin client.

Everything the client raises for expected remote failures derives from
``GarminClientException`` so the facade can turn it into a result value.
``MFAStateError`` is deliberately outside that hierarchy: it signals a
programming error and is never absorbed.
"""
from __future__ import annotations


class GarminClientException(Exception):
    """Base class for recoverable client failures."""

    def __init__(self, message: str, diagnostic: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.diagnostic = diagnostic


class AuthenticationError(GarminClientException):
    """Login rejected or the SSO pages did not look as expected."""


class TokenExchangeError(AuthenticationError):
    """Ticket -> OAuth1 or OAuth1 -> OAuth2 exchange failed."""


class TransportError(GarminClientException):
    """HTTP request failed or returned a status that was not allowed."""

    def __init__(self, message: str, status: int | None = None, body: str | None = None) -> None:
        super().__init__(message, diagnostic=body)
        self.status = status
        self.body = body


class EncodingError(GarminClientException):
    """The upload payload could not be built."""


class NoTokenError(GarminClientException, LookupError):
    """No OAuth2 token has been stored yet."""


class MFAStateError(RuntimeError):
    """``complete_mfa`` called without a pending MFA challenge."""
