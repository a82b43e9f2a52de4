"""Helpers for host scripts: logging setup and result reporting."""
from __future__ import annotations

import logging
from pathlib import Path

from .models import OperationResult

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(
    log_file: str | Path | None = "garmin_upload.log",
    level: int = logging.INFO,
    console_level: int = logging.WARNING,
    truncate: bool = False,
) -> None:
    """Send log records to ``log_file`` and, from ``console_level`` up, to stderr.

    Library modules only create loggers; handlers are installed here by the
    host application. Existing root handlers are replaced.
    """
    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(LOG_FORMAT)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_path, mode="w" if truncate else "a", encoding="utf-8")
        fh.setFormatter(fmt)
        fh.setLevel(level)
        root.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    ch.setLevel(console_level)
    root.addHandler(ch)


def format_report(result: OperationResult) -> str:
    lines = [
        "--- Garmin Upload Report ---",
        f"  Auth status: {result.auth_status.name}",
        f"  Success: {result.is_success}",
    ]
    if result.mfa_requested:
        lines.append("  MFA code requested: rerun with --mfa-code")
    if result.upload_id:
        lines.append(f"  Upload id: {result.upload_id}")
    for entry in result.error_logs:
        lines.append(f"  Error: {entry.message}")
    lines.append("----------------------------")
    return "\n".join(lines)
