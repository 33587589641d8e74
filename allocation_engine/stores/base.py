"""Record store interfaces the engine consumes.

The deal store owns deals and transactions; the account store owns security
holdings. Implementations may sit behind any transport; the engine only
relies on these methods.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from collateral_domain import Deal, Security, Transaction

__all__ = ["AccountStore", "DealStore", "ROLES"]

ROLES = ("pledger", "pledgee")


class DealStore(Protocol):
    def get_deal_by_id(self, deal_id: str) -> Optional[Deal]:
        ...

    def get_transaction_by_id(self, transaction_id: str) -> Optional[Transaction]:
        ...

    def update_transaction(self, transaction: Transaction) -> None:
        ...

    def update_transaction_allocation_status(self, transaction_id: str, status: str) -> None:
        ...

    def get_transactions_by_user(self, account: str, role: str) -> List[Transaction]:
        ...


class AccountStore(Protocol):
    def get_securities_by_account(self, account: str) -> List[Security]:
        ...

    def add_security(self, security: Security) -> None:
        ...

    def remove_securities_from_account(self, account: str) -> None:
        """Flush every holding of *account* ahead of a rewrite."""
