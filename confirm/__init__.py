"""
Booking Lifecycle — Confirmation Engine

Checks that a circuit booking completed end-to-end:
  - confirm.codec / confirm.transport: provisioning request and acknowledgment
  - confirm.reservation: reservation property consistency
  - confirm.polling: bounded wait for the work order to become active
  - confirm.cases: each of the above as a named check with an Outcome
"""

from confirm.outcome import (
    Outcome, Verdict,
    ConfirmError, ParameterError, TransportError, ValidationError,
    NotFoundError, ConfigError,
)
from confirm.params import BookingParameters, RequestDefaults
from confirm.codec import build_request, validate_response, inspect_response
from confirm.transport import ConfirmationTransport, TransportResult, send_document
from confirm.reservation import booking_name, check_reservation
from confirm.polling import PollReport, PollState, WorkOrderPoller
from confirm.cases import BookingCheck, ValidateAcknowledgment, ValidateBooking, ValidateWorkOrder
from confirm.suite import BookingSuite
