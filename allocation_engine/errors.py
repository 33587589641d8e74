"""Error kinds surfaced by an allocation attempt.

Insufficient collateral is a business outcome, not an error, and has no
exception here.
"""
from __future__ import annotations

__all__ = [
    "AllocationError",
    "CollaboratorError",
    "PlannerInvariantError",
    "RecordParseError",
    "ValidationError",
]


class AllocationError(Exception):
    code: int = 503

    def __init__(self, message: str, *, transaction_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.transaction_id = transaction_id

    def as_payload(self) -> dict:
        payload = {"message": self.message, "code": self.code}
        if self.transaction_id:
            payload["transactionId"] = self.transaction_id
        return payload


class ValidationError(AllocationError):
    """Bad invocation: argument count, unknown function, unknown id or store."""


class CollaboratorError(AllocationError):
    """A store or provider call failed or returned unusable data."""


class RecordParseError(CollaboratorError):
    """A stored decimal string did not parse."""


class PlannerInvariantError(AllocationError):
    """The planner ran out of securities although the eligibility gate passed."""

    code = 500
