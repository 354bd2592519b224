"""
Booking Lifecycle — Check Outcomes & Error Taxonomy

Every check returns a tri-state Outcome:
  - SUCCESS: the booking step was confirmed
  - FAILURE: an intentional verdict (mismatch, missing record, bad status)
  - ERROR:   an unexpected exception was caught at the check boundary

The exception classes below are raised internally and converted to
FAILURE verdicts by the check façade (confirm.cases). Anything else
becomes an ERROR verdict. Nothing escapes to the surrounding run.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


# ═══════════════════════════════════════════════════════════════════
# Error Taxonomy
# ═══════════════════════════════════════════════════════════════════

class ConfirmError(Exception):
    """Base class for all intentional check failures."""
    pass


class ParameterError(ConfirmError):
    """Booking parameters violate their invariants."""
    pass


class TransportError(ConfirmError):
    """Network failure, timeout, or non-200 acknowledgment."""
    pass


class ValidationError(ConfirmError):
    """Acknowledgment document does not match the expected structure."""
    pass


class NotFoundError(ConfirmError):
    """Reservation, row, or key could not be located."""
    pass


class ConfigError(ConfirmError):
    """Missing or invalid configuration value."""
    pass


# ═══════════════════════════════════════════════════════════════════
# Outcome
# ═══════════════════════════════════════════════════════════════════

class Verdict(str, enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    ERROR   = "error"


@dataclass(frozen=True)
class Outcome:
    """Result of executing a single named check."""
    name: str
    verdict: Verdict
    reason: str = ""
    elapsed_s: float = 0.0
    detail: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, name: str, **kwargs) -> Outcome:
        return cls(name=name, verdict=Verdict.SUCCESS, **kwargs)

    @classmethod
    def failure(cls, name: str, reason: str, **kwargs) -> Outcome:
        return cls(name=name, verdict=Verdict.FAILURE, reason=reason, **kwargs)

    @classmethod
    def error(cls, name: str, reason: str, **kwargs) -> Outcome:
        return cls(name=name, verdict=Verdict.ERROR, reason=reason, **kwargs)

    @property
    def passed(self) -> bool:
        return self.verdict == Verdict.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        d = {
            "name": self.name,
            "verdict": self.verdict.value,
            "elapsed_s": round(self.elapsed_s, 2),
        }
        if self.reason:
            d["reason"] = self.reason
        if self.detail:
            d["detail"] = self.detail
        return d
