"""
Booking Lifecycle — Structured Logging with Run Correlation

Emits JSON log lines for every check event so a regression run can be
traced end-to-end. All loggers live under the "booking_lifecycle"
namespace.

Usage:
    from confirm.logging import CheckLogger, configure_logging

    configure_logging(level="INFO")
    log = CheckLogger(test_name="RT_Booking_Life_Cycle")
    log.on_check_start("Validate Work Order: ...")

    # Plain-text sink for collaborators that only take a message
    check_reservation(params, fetch, log=log.log)
"""

from __future__ import annotations

import json
import logging
import os
import sys
import uuid
from datetime import datetime, timezone
from typing import Any

from confirm.outcome import ConfigError


SERVICE_NAME = "booking_lifecycle"

# Structured fields that would collide with the envelope are prefixed.
_ENVELOPE_KEYS = frozenset({"timestamp", "level", "logger", "message", "thread"})


# ═══════════════════════════════════════════════════════════════════
# JSON Formatter
# ═══════════════════════════════════════════════════════════════════

class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Checks may run on worker threads, so every entry names its thread;
    entries emitted through CheckLogger also carry run_id and check.
    """

    def __init__(self, version: str | None = None):
        super().__init__()
        self.version = version or os.environ.get("BL_VERSION", "0.1.0")

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "thread": record.threadName,
            "service.name": SERVICE_NAME,
            "service.version": self.version,
        }

        for key, value in getattr(record, "structured", {}).items():
            entry[f"field.{key}" if key in _ENVELOPE_KEYS else key] = value

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception.type"] = record.exc_info[0].__name__
            entry["exception.message"] = str(record.exc_info[1])

        return json.dumps(entry, default=str)


# ═══════════════════════════════════════════════════════════════════
# Log Configuration
# ═══════════════════════════════════════════════════════════════════

def configure_logging(level: str = "INFO", stream: Any = None) -> logging.Logger:
    """
    Route every booking_lifecycle.* logger to one JSON handler.

    Safe to call repeatedly: the previous handler is replaced. Module
    loggers carry no handlers of their own and propagate here.
    """
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        raise ConfigError(f"unknown log level {level!r}")

    logger = logging.getLogger(SERVICE_NAME)
    logger.setLevel(numeric)
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str = "") -> logging.Logger:
    """Get a child logger under the booking_lifecycle namespace."""
    if name:
        return logging.getLogger(f"{SERVICE_NAME}.{name}")
    return logging.getLogger(SERVICE_NAME)


def generate_run_id() -> str:
    return uuid.uuid4().hex


# ═══════════════════════════════════════════════════════════════════
# Check Logger
# ═══════════════════════════════════════════════════════════════════

class CheckLogger:
    """
    Structured event logger for one regression run.

    Every entry carries run_id and test_name. Also implements the
    PollObserver hooks so it can be handed to WorkOrderPoller.
    """

    def __init__(self, test_name: str = "", run_id: str | None = None):
        self.test_name = test_name
        self.run_id = run_id or generate_run_id()
        self.check_name = ""
        self._logger = get_logger("run")

    def for_check(self, check_name: str) -> CheckLogger:
        """Same run, scoped to a single check."""
        child = CheckLogger(test_name=self.test_name, run_id=self.run_id)
        child.check_name = check_name
        return child

    def _emit(self, level: int, action: str, **fields):
        if not self._logger.isEnabledFor(level):
            return
        structured = {"run_id": self.run_id, "test_name": self.test_name, "action": action}
        if self.check_name:
            structured["check"] = self.check_name
        structured.update(fields)
        record = self._logger.makeRecord(
            name=self._logger.name,
            level=level,
            fn="", lno=0, msg=action,
            args=(), exc_info=None,
        )
        record.structured = structured
        self._logger.handle(record)

    def log(self, message: str) -> None:
        """Plain diagnostic message."""
        self._emit(logging.INFO, "message", detail=message)

    # ── Check lifecycle ─────────────────────────────────────────

    def on_check_start(self, check_name: str) -> None:
        self._emit(logging.INFO, "check_start", check=check_name)

    def on_check_end(self, check_name: str, verdict: str, elapsed_s: float, reason: str = "") -> None:
        level = logging.INFO if verdict == "success" else logging.WARNING
        self._emit(
            level, "check_end",
            check=check_name,
            verdict=verdict,
            elapsed_s=round(elapsed_s, 2),
            reason=reason[:500],
        )

    # ── Acknowledgment ──────────────────────────────────────────

    def on_document_sent(self, endpoint: str, document: str) -> None:
        self._emit(logging.INFO, "document_sent", endpoint=endpoint, document_chars=len(document))
        if self._logger.isEnabledFor(logging.DEBUG):
            self._emit(logging.DEBUG, "document_sent_full", endpoint=endpoint, document=document)

    def on_response_received(self, status_code: int, body: str | None, latency_ms: float = 0.0) -> None:
        self._emit(
            logging.INFO, "response_received",
            status_code=status_code,
            latency_ms=round(latency_ms, 1),
            body=(body or "")[:2000],
        )

    # ── Polling (PollObserver) ──────────────────────────────────

    def on_poll_transition(self, from_state: str, to_state: str, reason: str) -> None:
        self._emit(
            logging.INFO, "poll_transition",
            from_state=from_state,
            to_state=to_state,
            reason=reason[:500],
        )

    def on_wait(self, phase: str, seconds: float) -> None:
        self._emit(logging.INFO, "wait", phase=phase, seconds=seconds)
