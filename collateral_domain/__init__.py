"""Domain records shared by the allocation engine and its collaborators."""

from .deal_models import AllocationStatus, Deal, Transaction, TransactionStatus
from .ruleset_models import RateTable, RuleEntry, Ruleset
from .security_models import Security

__all__ = [
    "AllocationStatus",
    "Deal",
    "RateTable",
    "RuleEntry",
    "Ruleset",
    "Security",
    "Transaction",
    "TransactionStatus",
]
