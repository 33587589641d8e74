"""Client for the FX provider (fixer.io style ``/latest?base=USD``).

Sample body::

    {"base": "USD", "date": "2017-03-20", "rates": {"EUR": 0.93006, "GBP": 0.80723}}
"""
from __future__ import annotations

from typing import Optional

import httpx
from pydantic import ValidationError

from collateral_domain.ruleset_models import RateTable

from . import FX_BASE_URL
from .auth import AnonymousTokenProvider
from .http import MarketApiError, MarketApiHTTP

__all__ = ["FxRatesClient"]


class FxRatesClient:
    def __init__(
        self,
        http: Optional[MarketApiHTTP] = None,
        *,
        base_url: str = FX_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._http = http or MarketApiHTTP(
            provider="fx",
            base_url=base_url,
            token_provider=AnonymousTokenProvider(),
            transport=transport,
        )

    async def get_rates(self, base_currency: str) -> RateTable:
        body = await self._http.get_json("/latest", params={"base": base_currency})
        try:
            table = RateTable.model_validate(body)
        except ValidationError as exc:
            raise MarketApiError("fx", "/latest", f"malformed rate table: {exc.error_count()} errors") from exc
        if table.base and table.base != base_currency:
            raise MarketApiError("fx", "/latest", f"asked for base {base_currency}, got {table.base}")
        return table

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
