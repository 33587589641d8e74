"""Client for mark-to-market prices (``/MarketData/{securityId}``).

The provider answers with a JSON array whose first element is the price as a
decimal string, e.g. ``["101.25"]``.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional
from urllib.parse import quote

import httpx

from collateral_domain.amounts import parse_decimal

from . import host_url
from .auth import TokenProvider
from .http import MarketApiError, MarketApiHTTP

__all__ = ["MarketDataClient"]


class MarketDataClient:
    def __init__(
        self,
        http: Optional[MarketApiHTTP] = None,
        *,
        host: str = "localhost:8080",
        token_provider: Optional[TokenProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._http = http or MarketApiHTTP(
            provider="market_data",
            base_url=host_url(host),
            token_provider=token_provider,
            transport=transport,
        )

    async def get_price(self, security_id: str) -> Decimal:
        path = f"/MarketData/{quote(security_id, safe='')}"
        body = await self._http.get_json(path)
        if not isinstance(body, list) or not body:
            raise MarketApiError("market_data", path, "expected a non-empty JSON array")
        try:
            price = parse_decimal(body[0], field=f"price[{security_id}]")
        except ValueError as exc:
            raise MarketApiError("market_data", path, str(exc)) from exc
        if price < 0:
            raise MarketApiError("market_data", path, f"negative price {price}")
        return price

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
