"""
Booking Lifecycle — Reservation Consistency Check

Locates the reservation created by the booking workflow and compares its
endpoint properties with the booking parameters.

The comparison is loose: a pair fails only when NEITHER side
matches. A reservation whose input name differs but whose output name
matches still passes the name check; the same holds for the groups.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Sequence

from confirm.params import BookingParameters
from confirm.sources import LogFn, ReservationRecord

logger = logging.getLogger("booking_lifecycle.reservation")


INPUT_NAME = "Input Name"
OUTPUT_NAME = "Output Name"
INPUT_GROUP = "Input Group"
OUTPUT_GROUP = "Output Group"

# Characters the booking platform refuses in file names.
INVALID_NAME_CHARS = frozenset('"<>|:*?\\/') | frozenset(chr(c) for c in range(32))


def booking_name(circuit_id: str, work_order: str, job_name: str | None = "") -> str:
    """
    Derive the reservation name: "<workOrder>-<circuitId>[-<jobName>]".

    Every character that is not allowed in a file name becomes a space.
    """
    if job_name:
        name = f"{work_order}-{circuit_id}-{job_name}"
    else:
        name = f"{work_order}-{circuit_id}"
    return "".join(" " if c in INVALID_NAME_CHARS else c for c in name)


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def _first_record(
    found: ReservationRecord | Sequence[ReservationRecord] | None,
) -> ReservationRecord | None:
    if not found:
        return None
    if isinstance(found, Mapping):
        return found
    return found[0]


def check_reservation(
    params: BookingParameters,
    fetch: Callable[[str], ReservationRecord | Sequence[ReservationRecord] | None],
    log: LogFn | None = None,
) -> bool:
    """
    True when the reservation exists and its properties are consistent.

    `fetch` receives the derived booking name and returns a record, a
    list of records (the first is used), or None.
    """
    log = log or logger.info
    name = booking_name(params.chain_id, params.work_order, params.job_name)

    record = _first_record(fetch(name))
    if record is None:
        log(f"No reservation found for {name!r}")
        return False

    if (_as_text(record.get(INPUT_NAME)) != params.source
            and _as_text(record.get(OUTPUT_NAME)) != params.destination):
        log(f"Reservation {name!r}: neither input nor output name matches")
        return False

    if (_as_text(record.get(INPUT_GROUP)) != params.source_group
            and _as_text(record.get(OUTPUT_GROUP)) != params.destination_group):
        log(f"Reservation {name!r}: neither input nor output group matches")
        return False

    return True
