"""Rate Resolver: current FX rates relative to the RQV currency."""
from __future__ import annotations

import logging
from typing import Protocol

from collateral_domain import RateTable

__all__ = ["RateProvider", "resolve_rates"]

_LOG = logging.getLogger(__name__)


class RateProvider(Protocol):
    async def get_rates(self, base_currency: str) -> RateTable:
        ...


async def resolve_rates(provider: RateProvider, rqv_currency: str) -> RateTable:
    table = await provider.get_rates(rqv_currency)
    if not table.base:
        table = table.model_copy(update={"base": rqv_currency})
    _LOG.debug("fx %s as of %s: %d rates", table.base, table.date or "n/a", len(table.rates))
    return table
