"""Diagnostics sink handed to the auth flow and the uploader.

Entries go to a regular ``logging`` logger and are also kept in a bounded
in-memory buffer, so an upload result can carry the log lines of the call
that produced it.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone

from .models import LogEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiagnosticsSnapshot:
    logs: tuple[LogEntry, ...]
    error_logs: tuple[LogEntry, ...]


class DiagnosticsSink:
    """Collects INFO/WARNING/ERROR entries for later inspection."""

    def __init__(self, log: logging.Logger | None = None, max_entries: int = 1000) -> None:
        self._log = log or logger
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)

    def _record(self, level: int, msg: str) -> None:
        self._entries.append(
            LogEntry(timestamp=datetime.now(timezone.utc), level=logging.getLevelName(level), message=msg)
        )

    def info(self, msg: str) -> None:
        self._log.info(msg)
        self._record(logging.INFO, msg)

    def warning(self, msg: str) -> None:
        self._log.warning(msg)
        self._record(logging.WARNING, msg)

    def error(self, msg: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            self._log.error("%s: %s", msg, exc, exc_info=exc)
            msg = f"{msg}: {exc}"
        else:
            self._log.error(msg)
        self._record(logging.ERROR, msg)

    def snapshot(self) -> DiagnosticsSnapshot:
        entries = tuple(self._entries)
        return DiagnosticsSnapshot(
            logs=entries,
            error_logs=tuple(e for e in entries if e.level == "ERROR"),
        )

    def clear(self) -> None:
        self._entries.clear()
