"""
Booking Lifecycle — Work Order Polling State Machine

Waits for the interop status table to confirm a booking. The external
system updates the table asynchronously, so the check is a two-phase,
bounded wait rather than a poll loop:

    INITIAL → SETTLING ──(settle wait)──→ FIRST_CHECK
    FIRST_CHECK → SUCCESS            status is active (7)
    FIRST_CHECK → AWAITING_BUFFER    identity ok, status not yet active
    FIRST_CHECK → FAILURE            no keys, no matching row, identity mismatch
    AWAITING_BUFFER → SECOND_CHECK   ──(buffer + margin wait)──
    AWAITING_BUFFER → FAILURE        buffer time not configured
    SECOND_CHECK → SUCCESS           status active (7) or accepted (1)
    SECOND_CHECK → FAILURE           anything else

Exactly one re-read happens after the second wait. No retries.

A missing status cell counts as "not yet written" and goes on to the
buffer wait. An empty string or any other non-integer status fails the
read immediately.

Usage:
    from confirm.polling import WorkOrderPoller

    poller = WorkOrderPoller(params, table)
    report = poller.run()
    if report.succeeded:
        ...
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol

from confirm.params import BookingParameters
from confirm.sources import StatusRow, StatusTable

logger = logging.getLogger("booking_lifecycle.polling")


# ═══════════════════════════════════════════════════════════════════
# Table Layout
# ═══════════════════════════════════════════════════════════════════

# Key columns are addressed by parameter id
KEY_COLUMN_WORK_ORDER = 1002
KEY_COLUMN_CHAIN_ID = 1003

# Row cells are addressed by column index
COLUMN_SOURCE = 6
COLUMN_DESTINATION = 7
COLUMN_JOB_NAME = 8
COLUMN_SOURCE_GROUP = 12
COLUMN_DESTINATION_GROUP = 13
COLUMN_STATUS = 18

STATUS_ACTIVE = 7
STATUS_ACCEPTED = 1

WAIT_CONFIG_ABSENT = -1

DEFAULT_SETTLE_SECONDS = 11.0
DEFAULT_MARGIN_SECONDS = 5.0


# ═══════════════════════════════════════════════════════════════════
# States
# ═══════════════════════════════════════════════════════════════════

class PollState(str, enum.Enum):
    INITIAL         = "initial"
    SETTLING        = "settling"
    FIRST_CHECK     = "first_check"
    AWAITING_BUFFER = "awaiting_buffer"
    SECOND_CHECK    = "second_check"
    SUCCESS         = "success"
    FAILURE         = "failure"


_POLL_TRANSITIONS: dict[PollState, set[PollState]] = {
    PollState.INITIAL:         {PollState.SETTLING},
    PollState.SETTLING:        {PollState.FIRST_CHECK},
    PollState.FIRST_CHECK:     {PollState.SUCCESS, PollState.AWAITING_BUFFER, PollState.FAILURE},
    PollState.AWAITING_BUFFER: {PollState.SECOND_CHECK, PollState.FAILURE},
    PollState.SECOND_CHECK:    {PollState.SUCCESS, PollState.FAILURE},
}

_TERMINAL_STATES = {PollState.SUCCESS, PollState.FAILURE}


class InvalidTransition(Exception):
    """Raised when the poller attempts an illegal state change."""
    pass


class PollObserver(Protocol):
    """Optional hooks for structured logging of a poll run."""

    def on_poll_transition(self, from_state: str, to_state: str, reason: str) -> None: ...

    def on_wait(self, phase: str, seconds: float) -> None: ...


# ═══════════════════════════════════════════════════════════════════
# Report
# ═══════════════════════════════════════════════════════════════════

@dataclass
class PollReport:
    """Record of a single poll run."""
    state: PollState = PollState.INITIAL
    reason: str = ""
    key: str = ""
    row_reads: int = 0
    waits: list[float] = field(default_factory=list)
    buffer_wait: float | None = None
    statuses: list[int | None] = field(default_factory=list)
    history: list[tuple[str, str, str]] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == PollState.SUCCESS

    @property
    def is_terminal(self) -> bool:
        return self.state in _TERMINAL_STATES

    @property
    def waited_seconds(self) -> float:
        return sum(self.waits)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "reason": self.reason,
            "key": self.key,
            "row_reads": self.row_reads,
            "waits": list(self.waits),
            "buffer_wait": self.buffer_wait,
            "statuses": list(self.statuses),
        }


class _UnreadableStatus(Exception):
    pass


def _cell(row: StatusRow, index: int) -> Any:
    if isinstance(row, Mapping):
        return row.get(index)
    return row[index] if 0 <= index < len(row) else None


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def _status(row: StatusRow) -> int | None:
    """
    Status code of a row. A missing cell means "not yet written" and
    reads as None; any other non-integer value, including an empty
    string, is unreadable.
    """
    value = _cell(row, COLUMN_STATUS)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise _UnreadableStatus(f"status value {value!r} is not an integer")


# ═══════════════════════════════════════════════════════════════════
# Poller
# ═══════════════════════════════════════════════════════════════════

class WorkOrderPoller:
    """
    Bounded two-phase wait for a work order to become active.

    sleep_fn is injectable so tests can record waits instead of blocking.
    """

    def __init__(
        self,
        params: BookingParameters,
        table: StatusTable,
        sleep_fn: Callable[[float], None] = time.sleep,
        settle_seconds: float = DEFAULT_SETTLE_SECONDS,
        margin_seconds: float = DEFAULT_MARGIN_SECONDS,
        observer: PollObserver | None = None,
    ):
        self.params = params
        self.table = table
        self.sleep_fn = sleep_fn
        self.settle_seconds = settle_seconds
        self.margin_seconds = margin_seconds
        self.observer = observer
        self.report = PollReport()

    # ── State handling ──────────────────────────────────────────

    def _transition(self, to: PollState, reason: str = "") -> None:
        current = self.report.state
        allowed = _POLL_TRANSITIONS.get(current, set())
        if to not in allowed:
            raise InvalidTransition(
                f"{current.value} → {to.value} is not allowed. "
                f"Valid transitions: {sorted(s.value for s in allowed)}"
            )
        self.report.history.append((current.value, to.value, reason))
        self.report.state = to
        if reason:
            self.report.reason = reason
        logger.debug("Poll %s → %s %s", current.value, to.value, reason)
        if self.observer is not None:
            self.observer.on_poll_transition(current.value, to.value, reason)

    def _fail(self, reason: str) -> PollReport:
        self._transition(PollState.FAILURE, reason)
        return self.report

    def _wait(self, phase: str, seconds: float) -> None:
        self.report.waits.append(seconds)
        if phase == "buffer":
            self.report.buffer_wait = seconds
        logger.info("Waiting %.1fs (%s)", seconds, phase)
        if self.observer is not None:
            self.observer.on_wait(phase, seconds)
        self.sleep_fn(seconds)

    def _read_row(self, key: str) -> StatusRow | None:
        self.report.row_reads += 1
        return self.table.fetch_row(key)

    # ── Steps ───────────────────────────────────────────────────

    def find_key(self, keys) -> str:
        """First key whose chain id and work order columns match, or ''."""
        for key in keys:
            chain_id = _as_text(self.table.fetch_key_column(KEY_COLUMN_CHAIN_ID, key))
            work_order = _as_text(self.table.fetch_key_column(KEY_COLUMN_WORK_ORDER, key))
            if chain_id == self.params.chain_id and work_order == self.params.work_order:
                return key
        return ""

    def identity_mismatch(self, row: StatusRow) -> str:
        """
        Describe the first identity mismatch, or return ''.

        Source/destination and the two groups fail only when neither side
        matches. The job name must match exactly.
        """
        p = self.params
        if (_as_text(_cell(row, COLUMN_SOURCE)) != p.source
                and _as_text(_cell(row, COLUMN_DESTINATION)) != p.destination):
            return "neither source nor destination matches"
        if _as_text(_cell(row, COLUMN_JOB_NAME)) != p.job_name:
            return f"job name {_as_text(_cell(row, COLUMN_JOB_NAME))!r} does not match"
        if (_as_text(_cell(row, COLUMN_SOURCE_GROUP)) != p.source_group
                and _as_text(_cell(row, COLUMN_DESTINATION_GROUP)) != p.destination_group):
            return "neither source group nor destination group matches"
        return ""

    def second_wait_seconds(self, configured: int | None) -> float | None:
        """Buffer time plus margin, or None when the buffer is not configured."""
        if configured is None:
            return None
        try:
            configured = int(configured)
        except (TypeError, ValueError):
            return None
        if configured == WAIT_CONFIG_ABSENT:
            return None
        return float(configured + self.margin_seconds)

    def run(self) -> PollReport:
        """Execute the state machine once and return its report."""
        self.report = PollReport()

        self._transition(PollState.SETTLING)
        self._wait("settle", self.settle_seconds)
        self._transition(PollState.FIRST_CHECK)

        keys = list(self.table.fetch_row_keys() or [])
        if not keys:
            return self._fail("status table has no rows")

        key = self.find_key(keys)
        if not key:
            return self._fail(
                f"no row for chain {self.params.chain_id!r} / work order {self.params.work_order!r}"
            )
        self.report.key = key

        row = self._read_row(key)
        if row is None:
            return self._fail(f"row {key!r} could not be read")

        mismatch = self.identity_mismatch(row)
        if mismatch:
            return self._fail(f"row {key!r}: {mismatch}")

        try:
            status = _status(row)
        except _UnreadableStatus as e:
            return self._fail(f"row {key!r}: {e}")
        self.report.statuses.append(status)

        if status == STATUS_ACTIVE:
            self._transition(PollState.SUCCESS, "work order active on first check")
            return self.report

        self._transition(PollState.AWAITING_BUFFER, f"status {status} on first check")

        wait_seconds = self.second_wait_seconds(self.table.fetch_wait_config_seconds())
        if wait_seconds is None:
            return self._fail("buffer time is not configured")

        self._wait("buffer", wait_seconds)
        self._transition(PollState.SECOND_CHECK)

        row = self._read_row(key)
        if row is None:
            return self._fail(f"row {key!r} disappeared before the second check")
        try:
            status = _status(row)
        except _UnreadableStatus as e:
            return self._fail(f"row {key!r}: {e}")
        self.report.statuses.append(status)

        if status in (STATUS_ACTIVE, STATUS_ACCEPTED):
            self._transition(PollState.SUCCESS, f"status {status} after {wait_seconds:.0f}s buffer")
        else:
            self._fail(f"status {status} after {wait_seconds:.0f}s buffer")
        return self.report
