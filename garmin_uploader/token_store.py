"""In-memory holder for the OAuth2 bearer token of a client session.

Tokens are never written to disk; a new process has to log in again.
"""
from __future__ import annotations

import logging
import time
from typing import Callable

from .errors import NoTokenError
from .models import OAuth2Token

logger = logging.getLogger(__name__)


class TokenStore:
    """Current OAuth2 token and its validity.

    Not thread-safe. A client instance serves one logical session and
    callers are expected to serialise access to it.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._token: OAuth2Token | None = None

    def set(self, token: OAuth2Token) -> None:
        """Replace the stored token."""
        self._token = token
        logger.debug("Stored OAuth2 token, expires_at=%s", token.expires_at)

    def clear(self) -> None:
        self._token = None

    def is_valid(self) -> bool:
        if self._token is None or not self._token.access_token:
            return False
        return self._clock() < self._token.expires_at

    def current(self) -> OAuth2Token:
        if self._token is None:
            raise NoTokenError("No OAuth2 token available")
        return self._token
