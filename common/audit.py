from __future__ import annotations

"""Shared audit journal.

Allocation runs, status sweeps and rejected rulesets append immutable rows to
the ``audit_journal`` table so the notification history survives the process.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.engine import Engine
from sqlmodel import Field, Session, SQLModel, create_engine

__all__ = [
    "AuditJournal",
    "get_engine",
    "init_audit_db",
    "log_event",
]


# ---------------------------------------------------------------------------
# Database setup
# ---------------------------------------------------------------------------


AUDIT_DB_URL = os.getenv("AUDIT_DB_URL", "sqlite:///./audit_journal.db")

_engine: Engine | None = None


class AuditJournal(SQLModel, table=True):
    """Immutable audit log row."""

    __tablename__ = "audit_journal"

    id: Optional[int] = Field(default=None, primary_key=True)

    # UTC timestamp when the event was emitted.
    ts: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )

    # Emitting component e.g. "allocation_engine"
    service: str = Field(sa_column=Column(String, nullable=False, index=True))

    # Transaction id or account the event concerns, when known
    actor: Optional[str] = None

    # Event name e.g. "evtsender", "errEvent"
    action: str = Field(sa_column=Column(String, nullable=False))

    # Structured notification payload
    details: Dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON, nullable=False, default={})
    )


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------

def get_engine() -> Engine:
    """Return the shared audit engine, creating it on first use."""

    global _engine
    if _engine is None:
        _engine = create_engine(
            AUDIT_DB_URL,
            echo=False,
            connect_args={"check_same_thread": False} if AUDIT_DB_URL.startswith("sqlite") else {},
        )
        init_audit_db(_engine)
    return _engine


def init_audit_db(engine: Engine) -> None:
    """Create the journal table on *engine* (idempotent)."""

    SQLModel.metadata.create_all(engine, tables=[AuditJournal.__table__])


def log_event(
    *,
    session: Session,
    service: str,
    action: str,
    actor: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditJournal:
    """Insert a new audit record through *session* and commit immediately."""

    entry = AuditJournal(
        service=service,
        action=action,
        actor=actor,
        details=details or {},
    )
    session.add(entry)
    session.commit()
    session.refresh(entry)
    return entry
