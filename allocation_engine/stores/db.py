"""SQLModel tables backing the deal and account stores.

Column names are explicit lowercase; amounts stay decimal strings exactly as
the engine writes them.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime, Index, String, Text
from sqlalchemy.engine import Engine
from sqlmodel import Field, Session, SQLModel, create_engine

from collateral_domain import Deal, Security, Transaction

__all__ = [
    "DealRow",
    "HoldingRow",
    "TransactionRow",
    "make_engine",
    "init_db",
    "session_factory",
]


class DealRow(SQLModel, table=True):
    __tablename__ = "deals"
    __table_args__ = {"extend_existing": True}

    deal_id: str = Field(primary_key=True)
    pledger: str = Field(index=True)
    pledgee: str = Field(index=True)
    max_value: str = ""
    total_value_longbox_account: str = ""
    total_value_segregated_account: str = ""
    issue_date: str = ""
    last_successful_allocation_date: str = ""
    transactions: str = ""

    @classmethod
    def from_domain(cls, deal: Deal) -> "DealRow":
        return cls(**deal.model_dump())

    def to_domain(self) -> Deal:
        return Deal.model_validate(self.model_dump())


class TransactionRow(SQLModel, table=True):
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_pledger", "pledger"),
        Index("ix_transactions_pledgee", "pledgee"),
        {"extend_existing": True},
    )

    transaction_id: str = Field(primary_key=True)
    transaction_date: str = ""
    deal_id: str = Field(sa_column=Column("deal_id", String, nullable=False, index=True))
    pledger: str
    pledgee: str
    rqv: str
    currency: str
    currency_conversion_rate: str = Field(default="", sa_column=Column("currency_conversion_rate", Text, nullable=False, default=""))
    margin_call_date: str = ""
    allocation_status: str = ""
    transaction_status: str = ""
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column("updated_at", DateTime(timezone=True), nullable=False),
    )

    @classmethod
    def from_domain(cls, txn: Transaction) -> "TransactionRow":
        return cls(**txn.model_dump())

    def apply(self, txn: Transaction) -> None:
        for key, value in txn.model_dump().items():
            setattr(self, key, value)
        self.updated_at = datetime.now(timezone.utc)

    def to_domain(self) -> Transaction:
        return Transaction.model_validate(self.model_dump(exclude={"updated_at"}))


class HoldingRow(SQLModel, table=True):
    """One security position in one account. Rows are never merged."""

    __tablename__ = "holdings"
    __table_args__ = (
        Index("ix_holdings_account_security", "account_number", "security_id"),
        {"extend_existing": True},
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    account_number: str = Field(sa_column=Column("account_number", String, nullable=False))
    security_id: str = Field(sa_column=Column("security_id", String, nullable=False))
    security_name: str = ""
    security_quantity: str = "0"
    security_type: str = ""
    collateral_form: str = ""
    total_value: str = ""
    value_percentage: str = ""
    mtm: str = ""
    effective_percentage: str = ""
    effective_value_changed: str = ""
    currency: str = ""

    @classmethod
    def from_domain(cls, security: Security) -> "HoldingRow":
        return cls(**security.model_dump())

    def to_domain(self) -> Security:
        return Security.model_validate(self.model_dump(exclude={"id"}))


def make_engine(url: str) -> Engine:
    return create_engine(
        url,
        echo=False,
        connect_args={"check_same_thread": False} if url.startswith("sqlite") else {},
    )


def init_db(engine: Engine) -> None:
    """Create the store tables (idempotent)."""
    SQLModel.metadata.create_all(
        engine,
        tables=[DealRow.__table__, TransactionRow.__table__, HoldingRow.__table__],
    )


def session_factory(engine: Engine):
    return lambda: Session(engine)
