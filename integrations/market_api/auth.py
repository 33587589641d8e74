"""Auth helpers for the provider APIs.

The ruleset and market-data providers accept an optional static bearer token
(``MARKET_API_BEARER`` in the secrets file or environment); the FX provider
is called anonymously.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from common.secrets import get_secret

__all__ = ["AnonymousTokenProvider", "StaticTokenProvider", "TokenProvider"]


@runtime_checkable
class TokenProvider(Protocol):
    """Return a bearer token string, or None to send no Authorization header."""

    async def token(self) -> Optional[str]:  # noqa: D401 – imperative form
        ...


class StaticTokenProvider:
    """Fixed token loaded from the secrets manager."""

    def __init__(self, secret_key: str = "MARKET_API_BEARER") -> None:
        self._token = get_secret(secret_key)

    async def token(self) -> Optional[str]:
        return self._token or None


class AnonymousTokenProvider:
    async def token(self) -> Optional[str]:
        return None
