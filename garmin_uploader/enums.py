"""Enumerations used by the client.

``AuthStatus`` tracks where the SSO login of a client instance stands; it
is reported back to callers on every upload result.
"""
from enum import Enum, auto


class AuthStatus(Enum):
    """Authentication state of a client session."""
    NOT_AUTHENTICATED = auto()
    NEEDS_MFA = auto()
    AUTHENTICATED = auto()
    FAILED = auto()
