"""
Booking Lifecycle — Collaborator Interfaces

The confirmation engine reads the external platform only through these
protocols. Production adapters wrap the vendor SDK; fixtures.platform
implements them over a YAML file; tests use in-memory fakes.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Protocol, Sequence, Union, runtime_checkable

from confirm.transport import TransportResult


# A reservation record maps property names ("Input Name", ...) to values.
ReservationRecord = Mapping[str, Any]

# A status row maps column index to cell value (or is a plain sequence).
StatusRow = Union[Mapping[int, Any], Sequence[Any]]

# Fire-and-forget diagnostic sink.
LogFn = Callable[[str], None]


class SendDocument(Protocol):
    def __call__(self, text: str, endpoint: str) -> TransportResult: ...


@runtime_checkable
class ReservationSource(Protocol):
    def fetch_reservation(
        self, booking_name: str,
    ) -> ReservationRecord | Sequence[ReservationRecord] | None: ...


@runtime_checkable
class StatusTable(Protocol):
    """
    Work-order status table on the interop element.

    fetch_key_column reads a single key column (chain id or work order id)
    for a row without counting as a row read.
    """

    def fetch_row_keys(self) -> Sequence[str]: ...

    def fetch_key_column(self, column: int, key: str) -> Any: ...

    def fetch_row(self, key: str) -> StatusRow | None: ...

    def fetch_wait_config_seconds(self) -> int | None: ...
