"""Upload of activity files to Garmin Connect."""
import logging
from pathlib import Path
from typing import Any

from .config import ClientConfig
from .diagnostics import DiagnosticsSink
from .errors import TransportError
from .models import UploadMessage, UploadOutcome
from .token_store import TokenStore
from .transport import Transport

logger = logging.getLogger(__name__)

DUPLICATE_ACTIVITY_CODE = 202


def classify_upload_response(data: dict[str, Any], diagnostics: DiagnosticsSink) -> UploadOutcome:
    """Turn an upload response body into an ``UploadOutcome``.

    Code 202 ("already uploaded") is reported as info, every other message
    code as an error. Neither changes ``success``: Garmin can list failure
    messages next to an import that went through, so only ``uploadId``
    counts.

    Raises ``TypeError`` or ``ValueError`` on a body that does not have the
    expected shape. Entries of ``failures`` that are not objects are skipped.
    """
    result = data.get("detailedImportResult") or {}
    if not isinstance(result, dict):
        raise TypeError(f"detailedImportResult is not an object: {result!r}")
    upload_id = result.get("uploadId")
    file_name = result.get("fileName")

    messages: list[UploadMessage] = []
    for failure in result.get("failures") or []:
        if not isinstance(failure, dict):
            continue
        for message in failure.get("messages") or []:
            if not isinstance(message, dict):
                continue
            code = int(message.get("code", 0))
            text = message.get("content") or message.get("text") or ""
            messages.append(UploadMessage(code=code, text=text))
            if code == DUPLICATE_ACTIVITY_CODE:
                diagnostics.info(f"Activity already uploaded: {file_name}")
            else:
                diagnostics.error(f"Failed to upload activity to Garmin. Message: {code} {text}")

    return UploadOutcome(
        success=upload_id is not None,
        upload_id=str(upload_id) if upload_id is not None else None,
        file_name=file_name,
        messages=tuple(messages),
    )


class UploadCoordinator:
    """Uploads files with the bearer token currently held in ``token_store``.

    The token has to be valid before ``upload`` is called; this class never
    logs in on its own.
    """

    UPLOAD_PATH = "/upload-service/upload"
    ALLOWED_STATUSES = (409,)  # 409: duplicate, body still carries the import result

    def __init__(
        self,
        config: ClientConfig,
        transport: Transport,
        token_store: TokenStore,
        diagnostics: DiagnosticsSink,
    ) -> None:
        self.config = config
        self.transport = transport
        self.token_store = token_store
        self.diagnostics = diagnostics

    @property
    def upload_url(self) -> str:
        return f"{self.config.connect_api_url}{self.UPLOAD_PATH}"

    async def upload(self, file_path: Path | str, file_format: str = ".fit") -> UploadOutcome | None:
        """Upload ``file_path`` and classify Garmin's answer.

        Returns None when the request failed or the response body could not
        be read; those failures are logged, not raised.
        """
        path = Path(file_path)
        token = self.token_store.current()
        headers = {
            "Authorization": f"{token.token_type} {token.access_token}",
            "NK": "NT",
            "origin": self.config.origin,
            "User-Agent": self.config.user_agent,
        }

        logger.info(f"→ Uploading: {path.name}")
        try:
            resp = await self.transport.post(
                f"{self.upload_url}/{file_format}",
                headers=headers,
                files={"file": path},
                allow_status=self.ALLOWED_STATUSES,
            )
        except TransportError as e:
            self.diagnostics.error("Failed to upload activity to Garmin", e)
            return None
        logger.info(f"← Response for {path.name}: HTTP {resp.status}")

        try:
            data = resp.json()
        except ValueError as e:
            self.diagnostics.error(f"Unreadable upload response for {path.name}", e)
            return None
        if not isinstance(data, dict):
            self.diagnostics.error(f"Unexpected upload response for {path.name}: {data!r}")
            return None

        try:
            outcome = classify_upload_response(data, self.diagnostics)
        except (TypeError, ValueError, AttributeError) as e:
            self.diagnostics.error(f"Malformed upload response for {path.name}", e)
            return None
        if outcome.success:
            self.diagnostics.info(f"Uploaded {path.name}, upload_id={outcome.upload_id}")
        return outcome
