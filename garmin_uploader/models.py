"""Value objects passed between the auth flow, the uploader and callers."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .enums import AuthStatus


@dataclass(frozen=True)
class Credentials:
    """Garmin account credentials for a single login attempt."""
    identifier: str
    secret: str = field(repr=False)


@dataclass(frozen=True)
class OAuth1Token:
    token: str
    secret: str = field(repr=False)
    mfa_token: str | None = None


@dataclass(frozen=True)
class OAuth2Token:
    """Bearer token returned by the OAuth1 -> OAuth2 exchange.

    ``expires_at`` is an absolute unix timestamp in seconds.
    """
    access_token: str = field(repr=False)
    expires_at: float
    refresh_token: str | None = field(default=None, repr=False)
    scope: str | None = None
    token_type: str = "Bearer"


@dataclass(frozen=True)
class AuthResult:
    is_success: bool
    mfa_requested: bool = False


@dataclass(frozen=True)
class UploadMessage:
    code: int
    text: str


@dataclass(frozen=True)
class UploadOutcome:
    """Classified upload response.

    ``success`` only reflects whether Garmin assigned an ``upload_id``;
    ``messages`` keeps every failure message in response order.
    """
    success: bool
    upload_id: str | None = None
    file_name: str | None = None
    messages: tuple[UploadMessage, ...] = ()


@dataclass(frozen=True)
class StageResult:
    """Tagged result of one stage of the encode -> upload pipeline."""
    stage: str
    ok: bool
    value: Any = None
    error: BaseException | None = None


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    level: str
    message: str


@dataclass(frozen=True)
class OperationResult:
    """What ``GarminClient.upload_weight`` hands back to its caller.

    Attributes
    ----------
    is_success: bool
        True only when Garmin accepted the upload and returned an id.
    auth_status: AuthStatus
        Session state after the call.
    mfa_requested: bool
        Login stopped at an MFA challenge; call again with the code.
    upload_id: str | None
        Garmin upload id when present.
    logs, error_logs: tuple[LogEntry, ...]
        Diagnostics captured up to the moment the result was built.
    stages: tuple[StageResult, ...]
        Encode/upload stage results, in the order they ran.
    """
    is_success: bool
    auth_status: AuthStatus
    mfa_requested: bool = False
    upload_id: str | None = None
    logs: tuple[LogEntry, ...] = ()
    error_logs: tuple[LogEntry, ...] = ()
    stages: tuple[StageResult, ...] = ()


@dataclass(frozen=True)
class UserProfileSettings:
    """Athlete profile written into the FIT file.

    ``gender`` is ``"male"`` or ``"female"``; ``height`` is in centimetres.
    """
    gender: str = "male"
    age: int = 30
    height: float = 180.0


@dataclass(frozen=True)
class WeightScaleData:
    """One scale measurement plus the account it should be uploaded to.

    Masses are kilograms, percentages are 0-100, metabolic rates kcal/day.
    """
    credentials: Credentials
    timestamp: datetime
    weight: float
    percent_fat: float | None = None
    percent_hydration: float | None = None
    bone_mass: float | None = None
    muscle_mass: float | None = None
    visceral_fat_rating: int | None = None
    visceral_fat_mass: float | None = None
    physique_rating: int | None = None
    metabolic_age: int | None = None
    bmi: float | None = None
    basal_met: float | None = None
    active_met: float | None = None
