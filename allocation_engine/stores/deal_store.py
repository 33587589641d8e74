from __future__ import annotations

import logging
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from collateral_domain import Deal, Transaction

from ..errors import CollaboratorError
from .base import ROLES
from .db import DealRow, TransactionRow

__all__ = ["SqlDealStore"]

_LOG = logging.getLogger(__name__)


class SqlDealStore:
    """Deal store over the ``deals`` and ``transactions`` tables."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get_deal_by_id(self, deal_id: str) -> Optional[Deal]:
        try:
            with self._session_factory() as session:
                row = session.get(DealRow, deal_id)
                return row.to_domain() if row else None
        except SQLAlchemyError as exc:
            raise CollaboratorError(f"Failed to query deal {deal_id}: {exc}") from exc

    def get_transaction_by_id(self, transaction_id: str) -> Optional[Transaction]:
        try:
            with self._session_factory() as session:
                row = session.get(TransactionRow, transaction_id)
                return row.to_domain() if row else None
        except SQLAlchemyError as exc:
            raise CollaboratorError(f"Failed to query transaction {transaction_id}: {exc}") from exc

    def update_transaction(self, transaction: Transaction) -> None:
        try:
            with self._session_factory() as session:
                row = session.get(TransactionRow, transaction.transaction_id)
                if row is None:
                    raise CollaboratorError(
                        f"{transaction.transaction_id} Not Found.",
                        transaction_id=transaction.transaction_id,
                    )
                row.apply(transaction)
                session.add(row)
                session.commit()
        except SQLAlchemyError as exc:
            raise CollaboratorError(
                f"Failed to update transaction {transaction.transaction_id}: {exc}",
                transaction_id=transaction.transaction_id,
            ) from exc
        _LOG.debug(
            "transaction %s -> %s / %s",
            transaction.transaction_id,
            transaction.allocation_status,
            transaction.transaction_status,
            extra={"transaction_id": transaction.transaction_id},
        )

    def update_transaction_allocation_status(self, transaction_id: str, status: str) -> None:
        current = self.get_transaction_by_id(transaction_id)
        if current is None:
            raise CollaboratorError(f"{transaction_id} Not Found.", transaction_id=transaction_id)
        self.update_transaction(current.model_copy(update={"allocation_status": status}))

    def get_transactions_by_user(self, account: str, role: str) -> List[Transaction]:
        role = role.lower()
        if role not in ROLES:
            raise ValueError(f"role must be one of {ROLES}, got {role!r}")
        column = TransactionRow.pledger if role == "pledger" else TransactionRow.pledgee
        try:
            with self._session_factory() as session:
                rows = session.exec(
                    select(TransactionRow)
                    .where(column == account)
                    .order_by(TransactionRow.transaction_id)
                ).all()
                return [row.to_domain() for row in rows]
        except SQLAlchemyError as exc:
            raise CollaboratorError(f"Failed to fetch transactions for {account}: {exc}") from exc

    # -- seeding helpers used by scripts and tests ---------------------------

    def put_deal(self, deal: Deal) -> None:
        try:
            with self._session_factory() as session:
                session.merge(DealRow.from_domain(deal))
                session.commit()
        except SQLAlchemyError as exc:
            raise CollaboratorError(f"Failed to store deal {deal.deal_id}: {exc}") from exc

    def put_transaction(self, transaction: Transaction) -> None:
        try:
            with self._session_factory() as session:
                session.merge(TransactionRow.from_domain(transaction))
                session.commit()
        except SQLAlchemyError as exc:
            raise CollaboratorError(
                f"Failed to store transaction {transaction.transaction_id}: {exc}",
                transaction_id=transaction.transaction_id,
            ) from exc
