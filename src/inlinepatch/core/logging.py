# InlinePatch
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
#
# This file is part of InlinePatch.
#
# InlinePatch is dual-licensed:
#
# 1. Open Source: GNU Affero General Public License v3.0 (AGPL-3.0)
#    You may use, modify, and distribute this file under AGPL-3.0.
#    See LICENSE for the full text.
#
# 2. Commercial: Available from Phoenix Link (Pty) Ltd
#    For proprietary use, SaaS deployment, or enterprise licensing.
#    See LICENSE-ENTERPRISE.md or contact info@phoenixlink.co.za
#
# Contributions require a signed CLA. See COPYRIGHT.md and CLA.md.
"""
InlinePatch -- Live Event Logger

Every edit the service relocates or applies is captured to a rotating log
file that operators can tail to see which file and line an edit landed on,
or why it did not.

LOG LOCATION:
    $INLINEPATCH_HOME/logs/inlinepatch.log      (current)
    $INLINEPATCH_HOME/logs/inlinepatch.log.1    (previous rotation)

INLINEPATCH_HOME defaults to ~/.inlinepatch.

USAGE:
    from inlinepatch.core.logging import get_logger
    log = get_logger()
    log.edit("applied", file_path="src/app/page.tsx", confidence=1.0, line=12)
    log.scan(files=42, candidates=3, text="Welcome")
    log.error("Patcher", "Line no longer exists", file="src/x.tsx", line=90)
"""

import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

# =============================================================================
# CONSTANTS
# =============================================================================

MAX_LOG_FILE_BYTES = 10 * 1024 * 1024  # 10 MB per file
LOG_BACKUP_COUNT = 20


def _home_dir() -> Path:
    return Path(os.environ.get("INLINEPATCH_HOME", Path.home() / ".inlinepatch"))


def log_dir() -> Path:
    return _home_dir() / "logs"


def log_file() -> Path:
    return log_dir() / "inlinepatch.log"


# =============================================================================
# CUSTOM FORMATTER -- human-readable + structured
# =============================================================================


class LiveLogFormatter(logging.Formatter):
    """
    Format: TIMESTAMP | LEVEL | COMPONENT | MESSAGE | {structured fields}

    Example:
    2026-02-09T17:30:45.123Z | SCAN  | Scanner      | Corpus scanned | files=42 candidates=2
    2026-02-09T17:30:45.140Z | EDIT  | Editor       | Edit applied | file="src/app/page.tsx" confidence=1.000
    2026-02-09T17:30:46.501Z | ERROR | Patcher      | Stale target | file="src/x.tsx" line=90
    """

    LEVEL_WIDTH = 5
    COMPONENT_WIDTH = 12

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        ts = now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"

        level = getattr(record, "live_level", record.levelname)
        component = getattr(record, "component", "System")
        message = record.getMessage()

        fields = getattr(record, "fields", {})
        field_str = ""
        if fields:
            parts = []
            for k, v in fields.items():
                if isinstance(v, str):
                    parts.append(f'{k}="{v}"')
                elif isinstance(v, float):
                    parts.append(f"{k}={v:.3f}")
                else:
                    parts.append(f"{k}={v}")
            field_str = " | " + " ".join(parts)

        return (
            f"{ts} | {level:<{self.LEVEL_WIDTH}} | "
            f"{component:<{self.COMPONENT_WIDTH}} | {message}{field_str}"
        )


# =============================================================================
# LIVE LOGGER
# =============================================================================


class LiveLogger:
    """
    Event logger for the relocation service.

    Writes to $INLINEPATCH_HOME/logs/inlinepatch.log with:
    - 10 MB rotation per file
    - Human-readable format with structured fields
    - Component-tagged entries for filtering
    - WARNING+ mirrored to stderr
    """

    def __init__(self, to_file: bool = True):
        self._logger = logging.getLogger("inlinepatch.live")
        self._logger.setLevel(logging.DEBUG)
        self._logger.propagate = False
        self._logger.handlers.clear()
        self._log_file: Path | None = None

        if to_file:
            try:
                log_dir().mkdir(parents=True, exist_ok=True)
                file_handler = logging.handlers.RotatingFileHandler(
                    str(log_file()),
                    maxBytes=MAX_LOG_FILE_BYTES,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8",
                )
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(LiveLogFormatter())
                self._logger.addHandler(file_handler)
                self._log_file = log_file()
            except OSError as e:
                # Read-only home (e.g. a deploy target); stderr still works.
                print(f"inlinepatch: file logging disabled ({e})", file=sys.stderr)

        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(logging.WARNING)
        stderr_handler.setFormatter(LiveLogFormatter())
        self._logger.addHandler(stderr_handler)

        self._session_id = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        self._request_count = 0
        self._edit_count = 0

        self.info("System", "Logger initialized", log_file=str(self._log_file), session=self._session_id)

    def _log(self, level: int, live_level: str, component: str, message: str, **fields):
        fields["session"] = self._session_id
        record = self._logger.makeRecord(
            name="inlinepatch.live",
            level=level,
            fn="",
            lno=0,
            msg=message,
            args=(),
            exc_info=None,
        )
        record.component = component
        record.live_level = live_level
        record.fields = fields
        self._logger.handle(record)

    # =========================================================================
    # PUBLIC API -- Standard levels
    # =========================================================================

    def info(self, component: str, message: str, **fields):
        self._log(logging.INFO, "INFO", component, message, **fields)

    def warn(self, component: str, message: str, **fields):
        self._log(logging.WARNING, "WARN", component, message, **fields)

    def error(self, component: str, message: str, **fields):
        self._log(logging.ERROR, "ERROR", component, message, **fields)

    def debug(self, component: str, message: str, **fields):
        self._log(logging.DEBUG, "DEBUG", component, message, **fields)

    # =========================================================================
    # PUBLIC API -- Domain-specific log methods
    # =========================================================================

    def scan(self, files: int = 0, candidates: int = 0, **fields):
        """Log a completed corpus scan."""
        fields.update(files=files, candidates=candidates)
        self._log(logging.INFO, "SCAN", "Scanner", "Corpus scanned", **fields)

    def edit(self, action: str, file_path: str = "", confidence: float = 0, success: bool = True, **fields):
        """Log a relocation or patch outcome."""
        fields.update(action=action, file=file_path, confidence=confidence)
        level = logging.INFO if success else logging.WARNING
        self._log(level, "EDIT", "Editor", f"Edit {action}", **fields)
        self._edit_count += 1

    def http_request(self, method: str, path: str, status: int = 200, latency_ms: int = 0, **fields):
        """Log an HTTP request."""
        fields.update(method=method, path=path, status=status, latency_ms=latency_ms)
        level = logging.INFO if status < 400 else logging.WARNING
        self._log(level, "HTTP", "Server", f"{method} {path} -> {status}", **fields)
        self._request_count += 1

    def sync(self, action: str, success: bool = True, **fields):
        """Log a deferred-apply (build trigger) event."""
        fields.update(action=action, success=success)
        level = logging.INFO if success else logging.ERROR
        self._log(level, "SYNC", "Sync", f"Sync {action}", **fields)

    def server_start(self, host: str = "", port: int = 0, **fields):
        fields.update(host=host, port=port)
        self._log(logging.INFO, "BOOT", "Server", "API server started", **fields)

    def server_stop(self, **fields):
        fields.update(requests_served=self._request_count, edits=self._edit_count)
        self._log(logging.INFO, "HALT", "Server", "API server stopped", **fields)

    # =========================================================================
    # UTILITY
    # =========================================================================

    @property
    def log_file(self) -> str | None:
        return str(self._log_file) if self._log_file else None

    def get_log_stats(self) -> dict[str, Any]:
        """Get statistics about the log folder."""
        try:
            files = [f for f in log_dir().iterdir() if f.is_file()]
            total_size = sum(f.stat().st_size for f in files)
            return {
                "log_file": self.log_file,
                "log_dir": str(log_dir()),
                "file_count": len(files),
                "total_size_mb": round(total_size / (1024 * 1024), 2),
                "session_id": self._session_id,
                "requests_logged": self._request_count,
                "edits_logged": self._edit_count,
            }
        except OSError:
            return {"log_file": self.log_file, "error": "could not stat"}


# =============================================================================
# SINGLETON
# =============================================================================

_logger_instance: LiveLogger | None = None


def get_logger() -> LiveLogger:
    """Get or create the process-wide LiveLogger."""
    global _logger_instance
    if _logger_instance is None:
        _logger_instance = LiveLogger()
    return _logger_instance
