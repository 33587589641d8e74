"""Deal and account record stores."""

from .account_store import SqlAccountStore
from .base import ROLES, AccountStore, DealStore
from .db import init_db, make_engine, session_factory
from .deal_store import SqlDealStore

__all__ = [
    "AccountStore",
    "DealStore",
    "ROLES",
    "SqlAccountStore",
    "SqlDealStore",
    "init_db",
    "make_engine",
    "session_factory",
]
