"""
Domain: error taxonomy for the lead engine.

- ValidationError: malformed or missing input to a single operation. Fatal to
  that operation, never retried automatically.
- CollaboratorUnavailable: a calendar, store, notification or rewards
  collaborator could not be reached or answered with an error.
- CalendarNotConfigured: the tenant has no working-hours calendar; callers
  fall back to the Monday-Friday rule.
- BatchItemFailure: one lead's reprocessing failed inside a batch run. This is
  a record kept in the run result, not an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class LeadEngineError(Exception):
    """Base class for errors raised by the lead engine."""


class ValidationError(LeadEngineError, ValueError):
    """Raised when lead input is malformed or incomplete."""


class InvalidStatusTransition(ValidationError):
    """Raised when a status change is not allowed by the status graph."""

    def __init__(self, lead_id: Optional[int], from_status: str, to_status: str):
        self.lead_id = lead_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Lead {lead_id} cannot move from {from_status} to {to_status}"
        )


class LeadNotFoundError(LeadEngineError, LookupError):
    """Raised when a lead does not exist (or is not visible to the tenant)."""

    def __init__(self, lead_id: int):
        self.lead_id = lead_id
        super().__init__(f"Lead {lead_id} not found")


class CollaboratorUnavailable(LeadEngineError, RuntimeError):
    """Raised when an external collaborator fails or cannot be reached."""

    def __init__(self, collaborator: str, detail: str):
        self.collaborator = collaborator
        self.detail = detail
        super().__init__(f"{collaborator} unavailable: {detail}")


class CalendarNotConfigured(LeadEngineError, LookupError):
    """Raised by calendar providers when a tenant has no working-hours calendar."""

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"No working-hours calendar configured for tenant {tenant_id}")


@dataclass(frozen=True, slots=True)
class BatchItemFailure:
    """One lead that could not be reprocessed during a batch run."""

    lead_id: int
    error_type: str
    message: str

    @classmethod
    def from_exception(cls, lead_id: int, exc: BaseException) -> "BatchItemFailure":
        return cls(lead_id=lead_id, error_type=type(exc).__name__, message=str(exc))


__all__ = [
    "BatchItemFailure",
    "CalendarNotConfigured",
    "CollaboratorUnavailable",
    "InvalidStatusTransition",
    "LeadEngineError",
    "LeadNotFoundError",
    "ValidationError",
]
