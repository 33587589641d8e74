"""Runtime settings for the allocation engine, read from the environment."""
from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum

__all__ = ["EngineSettings", "ParseFailurePolicy"]


class ParseFailurePolicy(str, Enum):
    """What to do with a holding whose stored decimal strings do not parse.

    ``abort`` fails the whole allocation attempt; ``skip`` drops the holding
    from valuation and leaves it untouched in its account.
    """

    ABORT = "abort"
    SKIP = "skip"


@dataclass(slots=True)
class EngineSettings:
    database_url: str = "sqlite:///./allocation.db"
    parse_failure_policy: ParseFailurePolicy = ParseFailurePolicy.ABORT
    grace_hours: int = 24
    deal_store_name: str = "deal"
    account_store_name: str = "account"
    service_name: str = "allocation_engine"

    @classmethod
    def from_env(cls) -> "EngineSettings":
        policy = os.getenv("ALLOCATION_PARSE_FAILURE_POLICY", ParseFailurePolicy.ABORT.value).lower()
        try:
            parse_policy = ParseFailurePolicy(policy)
        except ValueError as exc:
            raise ValueError(f"ALLOCATION_PARSE_FAILURE_POLICY must be abort or skip, got {policy!r}") from exc
        return cls(
            database_url=os.getenv("ALLOCATION_DB_URL", "sqlite:///./allocation.db"),
            parse_failure_policy=parse_policy,
            grace_hours=int(os.getenv("MARGIN_CALL_GRACE_HOURS", "24")),
            deal_store_name=os.getenv("DEAL_STORE_NAME", "deal"),
            account_store_name=os.getenv("ACCOUNT_STORE_NAME", "account"),
        )
