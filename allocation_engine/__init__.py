"""Collateral allocation engine."""

from .config import EngineSettings, ParseFailurePolicy
from .errors import (AllocationError, CollaboratorError, PlannerInvariantError,
                     RecordParseError, ValidationError)
from .service import AllocationOutcome, AllocationService, MarginSweeper

__all__ = [
    "AllocationError",
    "AllocationOutcome",
    "AllocationService",
    "CollaboratorError",
    "EngineSettings",
    "MarginSweeper",
    "ParseFailurePolicy",
    "PlannerInvariantError",
    "RecordParseError",
    "ValidationError",
]
