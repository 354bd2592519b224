"""
Booking Lifecycle — Interop Document Codec

Builds the outbound provisioning request and validates the inbound
acknowledgment. Pure functions, no I/O. The generation timestamp is
passed in by the caller so output is reproducible.

Request layout (element order is part of the contract):

    <InteropSetup>
      <MessageType>New</MessageType>
      <CircuitID>...</CircuitID>
      ...
      <TimeStamp>yyyy/MM/dd HH:mm:ss</TimeStamp>
    </InteropSetup>

Acknowledgment must contain:

    <InteropSetup>
      <Response>
        <CircuitID>...</CircuitID>
        <MessageType>New</MessageType>
        <StatusCode>200</StatusCode>
      </Response>
    </InteropSetup>
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime

from confirm.params import DATE_FORMAT, BookingParameters, RequestDefaults


ROOT_TAG = "InteropSetup"
RESPONSE_TAG = "Response"
EXPECTED_MESSAGE_TYPE = "New"
EXPECTED_STATUS_CODE = "200"


# ═══════════════════════════════════════════════════════════════════
# Outbound
# ═══════════════════════════════════════════════════════════════════

def request_fields(
    params: BookingParameters,
    generated_at: datetime,
    defaults: RequestDefaults | None = None,
) -> list[tuple[str, str]]:
    """Ordered (element, text) pairs for the provisioning request."""
    defaults = defaults or RequestDefaults()
    return [
        ("MessageType", defaults.message_type),
        ("CircuitID", params.chain_id),
        ("SharedID", defaults.shared_id),
        ("WorkOrder", params.work_order),
        ("Client", defaults.client),
        ("JobName", params.job_name),
        ("Start", params.start.strftime(DATE_FORMAT)),
        ("End", params.end.strftime(DATE_FORMAT)),
        ("ServiceDescription", defaults.service_description),
        ("ServiceID", defaults.service_id),
        ("Platform", params.platform),
        ("Source", params.source),
        ("SourceGroup", params.source_group),
        ("Destination", params.destination),
        ("DestinationGroup", params.destination_group),
        ("TimeStamp", generated_at.strftime(DATE_FORMAT)),
    ]


def build_request_tree(
    params: BookingParameters,
    generated_at: datetime,
    defaults: RequestDefaults | None = None,
) -> ET.Element:
    root = ET.Element(ROOT_TAG)
    for tag, text in request_fields(params, generated_at, defaults):
        ET.SubElement(root, tag).text = text
    return root


def build_request(
    params: BookingParameters,
    generated_at: datetime,
    defaults: RequestDefaults | None = None,
) -> str:
    """
    Serialize the provisioning request.

    No XML declaration, two-space indentation. Two calls with the same
    parameters and `generated_at` return identical text.
    """
    root = build_request_tree(params, generated_at, defaults)
    ET.indent(root, space="  ")
    return ET.tostring(root, encoding="unicode")


# ═══════════════════════════════════════════════════════════════════
# Inbound
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ResponseCheck:
    """Result of inspecting an acknowledgment document."""
    valid: bool
    failed_check: str = ""
    circuit_id: str | None = None


def _text(element: ET.Element) -> str:
    return "".join(element.itertext())


def inspect_response(raw: str | bytes | None) -> ResponseCheck:
    """
    Run the acknowledgment checks in order and report the first failure.

    Never raises. Whitespace and formatting are ignored; element names
    and values must match exactly.
    """
    if raw is None:
        return ResponseCheck(valid=False, failed_check="parse")
    try:
        root = ET.fromstring(raw.strip() if isinstance(raw, (str, bytes)) else raw)
    except (ET.ParseError, ValueError, TypeError):
        return ResponseCheck(valid=False, failed_check="parse")

    if root.tag != ROOT_TAG:
        return ResponseCheck(valid=False, failed_check=ROOT_TAG)

    response = root.find(RESPONSE_TAG)
    if response is None:
        return ResponseCheck(valid=False, failed_check=RESPONSE_TAG)

    circuit = response.find("CircuitID")
    if circuit is None:
        return ResponseCheck(valid=False, failed_check="CircuitID")
    circuit_id = _text(circuit)

    message_type = response.find("MessageType")
    if message_type is None or _text(message_type) != EXPECTED_MESSAGE_TYPE:
        return ResponseCheck(valid=False, failed_check="MessageType", circuit_id=circuit_id)

    status_code = response.find("StatusCode")
    if status_code is None or _text(status_code) != EXPECTED_STATUS_CODE:
        return ResponseCheck(valid=False, failed_check="StatusCode", circuit_id=circuit_id)

    return ResponseCheck(valid=True, circuit_id=circuit_id)


def validate_response(raw: str | bytes | None) -> bool:
    """True only when every acknowledgment check passes."""
    return inspect_response(raw).valid
