"""
Booking Lifecycle — Confirmation Transport

Posts an interop document to the booking endpoint and classifies the
result. One synchronous call per send, bounded by a timeout. No retries:
the caller decides whether a failed acknowledgment is re-run.

The endpoint expects a form-style body: the literal prefix "xmlCmd="
followed by the XML text, sent as UTF-8 text/plain.

Usage:
    from confirm.transport import ConfirmationTransport

    transport = ConfirmationTransport(timeout_seconds=30)
    result = transport.send(xml_text, "http://172.16.100.5:8200")
    if result.success:
        print(result.body)
    else:
        print(result.error)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

import httpx

logger = logging.getLogger("booking_lifecycle.transport")


DEFAULT_PREFIX = "xmlCmd="
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_HEADERS = {
    "User-Agent": "PostmanRuntime/7.43.0",
    "Accept": "*/*",
}


@dataclass
class TransportResult:
    """Outcome of a single send."""
    success: bool
    body: str | None = None
    error: str | None = None
    status_code: int = 0
    latency_ms: float = 0.0


@dataclass
class ConfirmationTransport:
    """
    Sends interop documents over HTTP.

    `client` may be an httpx.Client supplied by the caller (tests pass one
    built on httpx.MockTransport). When omitted, a client is opened and
    closed per send.
    """
    prefix: str = DEFAULT_PREFIX
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))
    client: httpx.Client | None = None

    def send(self, text: str, endpoint: str) -> TransportResult:
        content = (self.prefix + text).encode("utf-8")
        headers = {**self.headers, "Content-Type": "text/plain; charset=utf-8"}

        t0 = time.time()
        try:
            if self.client is not None:
                response = self.client.post(
                    endpoint, content=content, headers=headers, timeout=self.timeout_seconds,
                )
            else:
                with httpx.Client(timeout=self.timeout_seconds) as client:
                    response = client.post(endpoint, content=content, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Send to %s failed: %s", endpoint, e)
            return TransportResult(success=False, error=str(e) or type(e).__name__)

        latency_ms = (time.time() - t0) * 1000
        if response.status_code != 200:
            logger.warning("Send to %s returned status %d", endpoint, response.status_code)
            return TransportResult(
                success=False,
                body=response.text,
                error=f"Response status code: {response.status_code}",
                status_code=response.status_code,
                latency_ms=latency_ms,
            )

        logger.info("Send to %s acknowledged (%.0f ms)", endpoint, latency_ms)
        return TransportResult(
            success=True,
            body=response.text,
            status_code=response.status_code,
            latency_ms=latency_ms,
        )


def send_document(
    text: str,
    endpoint: str,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    client: httpx.Client | None = None,
) -> TransportResult:
    """Module-level shortcut for a one-off send with default headers."""
    return ConfirmationTransport(timeout_seconds=timeout, client=client).send(text, endpoint)
