"""Single entry point: log in when needed, encode, upload, report."""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

from .auth import AuthFlow
from .config import ClientConfig
from .diagnostics import DiagnosticsSink
from .enums import AuthStatus
from .errors import GarminClientException
from .fit_encoder import FitWeightEncoder, PayloadEncoder
from .models import (
    AuthResult,
    Credentials,
    OAuth2Token,
    OperationResult,
    StageResult,
    UploadOutcome,
    UserProfileSettings,
    WeightScaleData,
)
from .token_store import TokenStore
from .transport import AiohttpTransport, Transport
from .uploader import UploadCoordinator

logger = logging.getLogger(__name__)


class GarminClient:
    """Garmin Connect session for one account.

    ``upload_weight`` never raises for login, encoding or upload failures;
    they are reported through the returned ``OperationResult``. Only
    ``MFAStateError`` (an MFA code without a pending challenge) escapes.

    An instance holds mutable session state (token, auth status, pending
    MFA challenge) and must not be used from concurrent tasks without
    outside serialisation.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Transport | None = None,
        encoder: PayloadEncoder | None = None,
        diagnostics: DiagnosticsSink | None = None,
        clock: Callable[[], float] = time.time,
        cleanup: bool = True,
    ) -> None:
        self.config = config
        self.cleanup = cleanup
        self.transport = transport or AiohttpTransport(timeout=config.timeout)
        self.encoder = encoder or FitWeightEncoder()
        self.diagnostics = diagnostics or DiagnosticsSink(logger)
        self.token_store = TokenStore(clock=clock)
        self.auth = AuthFlow(config, self.transport, self.token_store, self.diagnostics, clock=clock)
        self.uploader = UploadCoordinator(config, self.transport, self.token_store, self.diagnostics)

    async def __aenter__(self) -> "GarminClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self.transport.close()

    @property
    def is_oauth_valid(self) -> bool:
        return self.token_store.is_valid()

    @property
    def oauth2_token(self) -> OAuth2Token | None:
        return self.token_store.current() if self.token_store.is_valid() else None

    @property
    def auth_status(self) -> AuthStatus:
        return self.auth.status

    async def authenticate(self, credentials: Credentials) -> AuthResult:
        return await self.auth.authenticate(credentials)

    async def complete_mfa(self, code: str) -> AuthResult:
        return await self.auth.complete_mfa(code)

    async def upload_activity(self, file_path: Path | str, file_format: str = ".fit") -> UploadOutcome | None:
        return await self.uploader.upload(file_path, file_format)

    async def _ensure_session(self, credentials: Credentials, mfa_code: str | None) -> AuthResult:
        if self.auth.resume():
            return AuthResult(is_success=True)
        if mfa_code:
            return await self.auth.complete_mfa(mfa_code)
        if await self.auth.refresh():
            return AuthResult(is_success=True)
        return await self.auth.authenticate(credentials)

    def _encode(self, data: WeightScaleData, profile: UserProfileSettings) -> StageResult:
        try:
            path = self.encoder.encode(data, profile)
        except Exception as e:
            self.diagnostics.error("Problem with creating fit file", e)
            return StageResult("encode", ok=False, error=e)
        return StageResult("encode", ok=True, value=path)

    async def _upload(self, path: Path) -> StageResult:
        try:
            outcome = await self.uploader.upload(path, ".fit")
        except GarminClientException as e:
            self.diagnostics.error("Upload aborted", e)
            return StageResult("upload", ok=False, error=e)
        if outcome is None:
            return StageResult("upload", ok=False)
        return StageResult("upload", ok=outcome.success, value=outcome)

    def _result(self, stages: list[StageResult], auth: AuthResult | None = None) -> OperationResult:
        snapshot = self.diagnostics.snapshot()
        outcome = stages[-1].value if stages and stages[-1].stage == "upload" else None
        return OperationResult(
            is_success=bool(outcome and outcome.success),
            auth_status=self.auth.status,
            mfa_requested=bool(auth and auth.mfa_requested),
            upload_id=outcome.upload_id if outcome else None,
            logs=snapshot.logs,
            error_logs=snapshot.error_logs,
            stages=tuple(stages),
        )

    async def upload_weight(
        self,
        data: WeightScaleData,
        profile_settings: UserProfileSettings,
        mfa_code: str | None = None,
    ) -> OperationResult:
        """Log in if needed, encode ``data`` as FIT and upload it.

        Parameters
        ----------
        data: WeightScaleData
            Measurement plus the credentials of the target account.
        profile_settings: UserProfileSettings
            Athlete profile written next to the measurement.
        mfa_code: str | None
            Answer to the MFA challenge reported by a previous call.
        """
        stages: list[StageResult] = []
        try:
            auth = await self._ensure_session(data.credentials, mfa_code)
        except GarminClientException as e:
            self.diagnostics.error("Garmin authentication failed", e)
            return self._result(stages)
        if not auth.is_success or not self.token_store.is_valid():
            return self._result(stages, auth)

        encoded = self._encode(data, profile_settings)
        stages.append(encoded)
        if not encoded.ok:
            return self._result(stages, auth)

        try:
            stages.append(await self._upload(encoded.value))
        finally:
            if self.cleanup:
                self._discard(encoded.value)
        return self._result(stages, auth)

    def _discard(self, path: Path) -> None:
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            logger.debug(f"Could not delete {path}: {e}")
