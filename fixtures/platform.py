"""
Booking Lifecycle — Fixture Platform

File-backed stand-in for the booking platform. Implements the
ReservationSource and StatusTable interfaces over a YAML document so
checks can run without the vendor SDK.

Fixture layout:

    wait_config_seconds: 10          # buffer time; omit or -1 for "not set"
    reservations:
      "W1-C1-J":                     # derived booking name
        Input Name: A
        Output Name: B
        Input Group: G1
        Output Group: G2
    status_rows:
      - key: "1"
        chain_id: C1
        work_order: W1
        source: A
        destination: B
        job_name: J
        source_group: G1
        destination_group: G2
        status: 3                    # or status_sequence: [3, 1]

With status_sequence, each row read returns the next status; the last
value repeats. This models the asynchronous transition the work-order
check waits for.

In production, swap this module for an adapter over the platform SDK.
The interfaces are identical.

Usage:
    from fixtures.platform import load_platform
    platform = load_platform("fixtures/lab.yaml")
    ValidateWorkOrder(params, table=platform)
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import yaml

from confirm.outcome import ConfigError
from confirm.polling import (
    COLUMN_DESTINATION, COLUMN_DESTINATION_GROUP, COLUMN_JOB_NAME,
    COLUMN_SOURCE, COLUMN_SOURCE_GROUP, COLUMN_STATUS,
    KEY_COLUMN_CHAIN_ID, KEY_COLUMN_WORK_ORDER,
)

_ROW_COLUMNS = {
    "source": COLUMN_SOURCE,
    "destination": COLUMN_DESTINATION,
    "job_name": COLUMN_JOB_NAME,
    "source_group": COLUMN_SOURCE_GROUP,
    "destination_group": COLUMN_DESTINATION_GROUP,
}

_KEY_COLUMNS = {
    KEY_COLUMN_CHAIN_ID: "chain_id",
    KEY_COLUMN_WORK_ORDER: "work_order",
}


class FixturePlatform:
    """In-memory reservations and status table."""

    def __init__(
        self,
        reservations: dict[str, dict[str, Any]] | None = None,
        status_rows: list[dict[str, Any]] | None = None,
        wait_config_seconds: int | None = None,
    ):
        self.reservations = dict(reservations or {})
        self.wait_config_seconds = wait_config_seconds
        self._rows: dict[str, dict[str, Any]] = {}
        self._reads: dict[str, int] = {}
        self._lock = threading.Lock()
        self.read_log: list[str] = []

        for i, row in enumerate(status_rows or []):
            key = str(row.get("key", i + 1))
            if key in self._rows:
                raise ConfigError(f"duplicate status row key {key!r}")
            self._rows[key] = dict(row)

    # ── ReservationSource ───────────────────────────────────────

    def fetch_reservation(self, booking_name: str) -> dict[str, Any] | None:
        return self.reservations.get(booking_name)

    # ── StatusTable ─────────────────────────────────────────────

    def fetch_row_keys(self) -> list[str]:
        return list(self._rows)

    def fetch_key_column(self, column: int, key: str) -> Any:
        row = self._rows.get(key)
        if row is None or column not in _KEY_COLUMNS:
            return None
        return row.get(_KEY_COLUMNS[column])

    def fetch_row(self, key: str) -> dict[int, Any] | None:
        row = self._rows.get(key)
        if row is None:
            return None

        with self._lock:
            read = self._reads.get(key, 0)
            self._reads[key] = read + 1
            self.read_log.append(key)

        cells = {index: row.get(name) for name, index in _ROW_COLUMNS.items()}
        sequence = row.get("status_sequence")
        if sequence:
            cells[COLUMN_STATUS] = sequence[min(read, len(sequence) - 1)]
        else:
            cells[COLUMN_STATUS] = row.get("status")
        return cells

    def fetch_wait_config_seconds(self) -> int | None:
        return self.wait_config_seconds


def load_platform(path: str | Path) -> FixturePlatform:
    """Build a FixturePlatform from a YAML fixture file."""
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"fixture file not found: {path}")
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")

    reservations = data.get("reservations") or {}
    rows = data.get("status_rows") or []
    if not isinstance(reservations, dict) or not isinstance(rows, list):
        raise ConfigError(f"{path}: reservations must be a mapping and status_rows a list")
    if not all(isinstance(v, dict) or v is None for v in reservations.values()):
        raise ConfigError(f"{path}: each reservation must be a mapping of properties")
    if not all(isinstance(row, dict) for row in rows):
        raise ConfigError(f"{path}: each status row must be a mapping")

    wait_config = data.get("wait_config_seconds")
    if wait_config is not None:
        try:
            wait_config = int(wait_config)
        except (TypeError, ValueError):
            raise ConfigError(
                f"{path}: wait_config_seconds must be an integer, got {wait_config!r}"
            ) from None
    return FixturePlatform(
        reservations={str(k): dict(v or {}) for k, v in reservations.items()},
        status_rows=rows,
        wait_config_seconds=wait_config,
    )
