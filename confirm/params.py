"""
Booking Lifecycle — Booking Parameters

The immutable value object every check reads from. Created once per run,
either from a config mapping or with a scheduled start/end window.

Usage:
    from confirm.params import BookingParameters

    params = BookingParameters.scheduled(
        job_name="RT Test Booking",
        source="Tata-SRT-IP-1",
        destination="Tata-SRT-OP-1",
        source_group="Tata",
        destination_group="Tata",
        platform="Test",
        endpoint="http://172.16.100.5:8200",
    )
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping

from confirm.outcome import ParameterError


DATE_FORMAT = "%Y/%m/%d %H:%M:%S"

_IDENTIFYING_FIELDS = (
    "chain_id", "work_order", "job_name",
    "source", "destination", "source_group", "destination_group",
    "platform", "endpoint",
)


@dataclass(frozen=True)
class RequestDefaults:
    """Fixed values stamped into every provisioning request."""
    message_type: str = "New"
    shared_id: str = "18922861"
    client: str = "CL_ID 10000003"
    service_description: str = "0 Edge Switch"
    service_id: str = "Edge"


@dataclass(frozen=True)
class BookingParameters:
    """Identifying values for one booking under test."""
    chain_id: str
    work_order: str
    job_name: str
    source: str
    destination: str
    source_group: str
    destination_group: str
    platform: str
    start: datetime
    end: datetime
    endpoint: str

    def __post_init__(self):
        for name in _IDENTIFYING_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ParameterError(f"{name} must be a non-empty string")
        if not isinstance(self.start, datetime) or not isinstance(self.end, datetime):
            raise ParameterError("start and end must be datetimes")
        if self.start >= self.end:
            raise ParameterError(
                f"start ({self.start:{DATE_FORMAT}}) must be before end ({self.end:{DATE_FORMAT}})"
            )

    @property
    def label(self) -> str:
        """Human-readable suffix used in check names."""
        return f"{self.job_name} ({self.source} -> {self.destination})"

    @classmethod
    def scheduled(
        cls,
        now: datetime | None = None,
        lead_minutes: float = 5,
        duration_minutes: float = 5,
        chain_id: str = "",
        work_order: str = "",
        **fields: Any,
    ) -> BookingParameters:
        """
        Build parameters for a booking starting `lead_minutes` from now.

        Chain id and work order are generated when not supplied so each
        run books a distinct circuit.
        """
        now = now or datetime.now()
        start = now + timedelta(minutes=lead_minutes)
        end = start + timedelta(minutes=duration_minutes)
        return cls(
            chain_id=chain_id or f"C-{uuid.uuid4().hex[:8]}",
            work_order=work_order or f"WO-{uuid.uuid4().hex[:8]}",
            start=start,
            end=end,
            **fields,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], now: datetime | None = None) -> BookingParameters:
        """
        Build parameters from a config section.

        `start`/`end` may be datetimes or strings in DATE_FORMAT. When
        absent, the scheduled window (lead/duration minutes) is used.
        """
        fields = {k: data[k] for k in _IDENTIFYING_FIELDS if k in data and data[k] is not None}
        fields = {k: str(v) for k, v in fields.items()}
        missing = [k for k in _IDENTIFYING_FIELDS
                   if k not in fields and k not in ("chain_id", "work_order")]
        if missing:
            raise ParameterError(f"missing booking parameters: {', '.join(missing)}")

        start = _parse_time(data.get("start"))
        end = _parse_time(data.get("end"))
        if start is None or end is None:
            return cls.scheduled(
                now=now,
                lead_minutes=float(data.get("lead_minutes", 5)),
                duration_minutes=float(data.get("duration_minutes", 5)),
                **fields,
            )

        fields.setdefault("chain_id", f"C-{uuid.uuid4().hex[:8]}")
        fields.setdefault("work_order", f"WO-{uuid.uuid4().hex[:8]}")
        return cls(start=start, end=end, **fields)


def _parse_time(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.strptime(str(value), DATE_FORMAT)
    except ValueError as e:
        raise ParameterError(f"invalid timestamp {value!r}: expected {DATE_FORMAT}") from e
