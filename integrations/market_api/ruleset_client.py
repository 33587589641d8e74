"""Client for the private security ruleset keyed by pledger / pledgee."""
from __future__ import annotations

from typing import Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from collateral_domain.ruleset_models import Ruleset

from . import host_url
from .auth import TokenProvider
from .http import MarketApiError, MarketApiHTTP

__all__ = ["RulesetClient"]


class RulesetClient:
    """Typed async client for ``/securityRuleset/{pledger}/{pledgee}``."""

    def __init__(
        self,
        http: Optional[MarketApiHTTP] = None,
        *,
        host: str = "localhost:8080",
        token_provider: Optional[TokenProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._http = http or MarketApiHTTP(
            provider="ruleset",
            base_url=host_url(host),
            token_provider=token_provider,
            transport=transport,
        )

    async def get_private_ruleset(self, pledger: str, pledgee: str) -> Ruleset:
        path = f"/securityRuleset/{quote(pledger, safe='')}/{quote(pledgee, safe='')}"
        body = await self._http.get_json(path)
        try:
            return Ruleset.model_validate(body)
        except ValidationError as exc:
            raise MarketApiError("ruleset", path, f"malformed ruleset: {exc.error_count()} errors") from exc

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
