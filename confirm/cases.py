"""
Booking Lifecycle — Check Façade

Wraps each part of the confirmation engine as an independently runnable,
named check with a tri-state Outcome:

  ValidateAcknowledgment — send the provisioning request, verify the reply
  ValidateBooking        — reservation properties match the booking
  ValidateWorkOrder      — status table reaches the active state

execute() is the catch-all boundary: ConfirmError subclasses become
FAILURE outcomes, any other exception becomes ERROR. Nothing propagates
to the surrounding run.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Callable

from confirm.codec import build_request, inspect_response
from confirm.logging import CheckLogger
from confirm.outcome import (
    ConfirmError, NotFoundError, Outcome, TransportError, ValidationError,
)
from confirm.params import BookingParameters, RequestDefaults
from confirm.polling import DEFAULT_MARGIN_SECONDS, DEFAULT_SETTLE_SECONDS, WorkOrderPoller
from confirm.reservation import check_reservation
from confirm.sources import ReservationSource, SendDocument, StatusTable


WORK_ORDER_NOT_CREATED = "The work Order was not created correctly"
INVALID_RESPONSE = "Response XML format is invalid"


class BookingCheck:
    """
    Base class for a named check.

    Subclasses implement _run(), which returns detail on success and
    raises a ConfirmError subclass for an intentional failure.
    """

    title = "Check"

    def __init__(self, params: BookingParameters, logger: CheckLogger | None = None):
        if params is None:
            raise ValueError("params is required")
        self.params = params
        self.name = f"{self.title}: {params.label}"
        self.logger = (logger or CheckLogger()).for_check(self.name)
        self.outcome: Outcome | None = None

    def _run(self) -> dict[str, Any]:
        raise NotImplementedError

    def execute(self) -> Outcome:
        self.logger.on_check_start(self.name)
        t0 = time.monotonic()
        try:
            detail = self._run() or {}
            outcome = Outcome.success(self.name, elapsed_s=time.monotonic() - t0, detail=detail)
        except ConfirmError as e:
            outcome = Outcome.failure(
                self.name, str(e),
                elapsed_s=time.monotonic() - t0,
                detail=getattr(e, "detail", {}) or {},
            )
        except Exception as e:
            outcome = Outcome.error(
                self.name, f"Exception occurred: {e}",
                elapsed_s=time.monotonic() - t0,
            )

        self.logger.on_check_end(self.name, outcome.verdict.value, outcome.elapsed_s, outcome.reason)
        self.outcome = outcome
        return outcome


class _DetailedFailure(ConfirmError):
    def __init__(self, message: str, detail: dict[str, Any]):
        super().__init__(message)
        self.detail = detail


# ═══════════════════════════════════════════════════════════════════
# Acknowledgment
# ═══════════════════════════════════════════════════════════════════

class ValidateAcknowledgment(BookingCheck):
    """
    Send the provisioning request and validate the acknowledgment.

    The document is built at construction time so the generation
    timestamp reflects when the check was scheduled.
    """

    title = "Validate Acknowledgment"

    def __init__(
        self,
        params: BookingParameters,
        send: SendDocument,
        clock: Callable[[], datetime] = datetime.now,
        defaults: RequestDefaults | None = None,
        logger: CheckLogger | None = None,
    ):
        super().__init__(params, logger)
        self.send = send
        self.document = build_request(params, clock(), defaults)

    def _run(self) -> dict[str, Any]:
        endpoint = self.params.endpoint
        self.logger.log(f"Sending XML to {endpoint}:")
        self.logger.on_document_sent(endpoint, self.document)

        result = self.send(self.document, endpoint)
        if not result.success:
            raise TransportError(f"HTTP Request failed: {result.error}")

        self.logger.on_response_received(result.status_code, result.body, result.latency_ms)
        check = inspect_response(result.body)
        if not check.valid:
            self.logger.log(f"Acknowledgment failed check: {check.failed_check}")
            raise ValidationError(INVALID_RESPONSE)

        return {"circuit_id": check.circuit_id, "status_code": result.status_code}


# ═══════════════════════════════════════════════════════════════════
# Reservation
# ═══════════════════════════════════════════════════════════════════

class ValidateBooking(BookingCheck):
    """Reservation created by the workflow carries the right endpoints."""

    title = "Validate Booking"

    def __init__(
        self,
        params: BookingParameters,
        reservations: ReservationSource,
        logger: CheckLogger | None = None,
    ):
        super().__init__(params, logger)
        self.reservations = reservations

    def _run(self) -> dict[str, Any]:
        if not check_reservation(self.params, self.reservations.fetch_reservation, log=self.logger.log):
            raise NotFoundError(WORK_ORDER_NOT_CREATED)
        return {}


# ═══════════════════════════════════════════════════════════════════
# Work Order
# ═══════════════════════════════════════════════════════════════════

class ValidateWorkOrder(BookingCheck):
    """Status table confirms the booking within the bounded wait."""

    title = "Validate Work Order"

    def __init__(
        self,
        params: BookingParameters,
        table: StatusTable,
        sleep_fn: Callable[[float], None] = time.sleep,
        settle_seconds: float = DEFAULT_SETTLE_SECONDS,
        margin_seconds: float = DEFAULT_MARGIN_SECONDS,
        logger: CheckLogger | None = None,
    ):
        super().__init__(params, logger)
        self.poller = WorkOrderPoller(
            params, table,
            sleep_fn=sleep_fn,
            settle_seconds=settle_seconds,
            margin_seconds=margin_seconds,
            observer=self.logger,
        )

    def _run(self) -> dict[str, Any]:
        report = self.poller.run()
        if not report.succeeded:
            raise _DetailedFailure(WORK_ORDER_NOT_CREATED, report.to_dict())
        return report.to_dict()
