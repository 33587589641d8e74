from __future__ import annotations

from typing import Callable, List

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from collateral_domain import Security

from ..errors import CollaboratorError
from .db import HoldingRow

__all__ = ["SqlAccountStore"]


class SqlAccountStore:
    """Account store over the ``holdings`` table, in insertion order."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get_securities_by_account(self, account: str) -> List[Security]:
        try:
            with self._session_factory() as session:
                rows = session.exec(
                    select(HoldingRow)
                    .where(HoldingRow.account_number == account)
                    .order_by(HoldingRow.id)
                ).all()
                return [row.to_domain() for row in rows]
        except SQLAlchemyError as exc:
            raise CollaboratorError(f"Failed to fetch securities for {account}: {exc}") from exc

    def add_security(self, security: Security) -> None:
        try:
            with self._session_factory() as session:
                session.add(HoldingRow.from_domain(security))
                session.commit()
        except SQLAlchemyError as exc:
            raise CollaboratorError(
                f"Failed to add security {security.security_id} to {security.account_number}: {exc}"
            ) from exc

    def remove_securities_from_account(self, account: str) -> None:
        try:
            with self._session_factory() as session:
                session.exec(delete(HoldingRow).where(HoldingRow.account_number == account))
                session.commit()
        except SQLAlchemyError as exc:
            raise CollaboratorError(f"Failed to flush {account}: {exc}") from exc
