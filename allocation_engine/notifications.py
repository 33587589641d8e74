"""Notification sinks for allocation outcomes.

Events are fire-and-forget: ``evtsender`` carries reports and status updates,
``errEvent`` carries validation and collaborator failures.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Protocol

from sqlmodel import Session

from common.audit import log_event

__all__ = [
    "ERROR_EVENT",
    "SENDER_EVENT",
    "AuditJournalSink",
    "FanoutSink",
    "LoggingSink",
    "NotificationSink",
    "message_payload",
]

SENDER_EVENT = "evtsender"
ERROR_EVENT = "errEvent"

_LOG = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        ...


def message_payload(message: str, *, code: int = 200, transaction_id: str | None = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if transaction_id:
        payload["transactionId"] = transaction_id
    payload["message"] = message
    payload["code"] = code
    return payload


class LoggingSink:
    """Writes each event as one log line."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._log = logger or _LOG

    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        level = logging.ERROR if event_name == ERROR_EVENT else logging.INFO
        self._log.log(
            level,
            "%s %s",
            event_name,
            json.dumps(payload, separators=(",", ":"), default=str),
            extra={"transaction_id": payload.get("transactionId")},
        )


class AuditJournalSink:
    """Appends each event to the shared audit journal."""

    def __init__(self, session_factory: Callable[[], Session], *, service: str = "allocation_engine") -> None:
        self._session_factory = session_factory
        self._service = service

    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        with self._session_factory() as session:
            log_event(
                session=session,
                service=self._service,
                action=event_name,
                actor=payload.get("transactionId"),
                details=json.loads(json.dumps(payload, default=str)),
            )


class FanoutSink:
    """Delivers to each sink in order."""

    def __init__(self, sinks: Iterable[NotificationSink]) -> None:
        self._sinks: List[NotificationSink] = list(sinks)

    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        for sink in self._sinks:
            sink.emit(event_name, payload)
