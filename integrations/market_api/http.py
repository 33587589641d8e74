"""Shared HTTP helper for the provider APIs (offline-friendly).

Uses `httpx.AsyncClient` with:
* Optional bearer-token injection via `TokenProvider`
* Simple exponential back-off retry on transport errors and 429 / 502 / 503 / 504 (max 3 attempts)
* Prometheus counters + histogram (labels: provider, endpoint, method, status)

Network access is *never* used in CI; tests pass an `httpx.MockTransport`.
"""
from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Optional

import httpx

from collateral_observability.metrics import (market_api_latency_seconds,
                                              market_api_requests_total)

from . import MARKET_API_TIMEOUT
from .auth import StaticTokenProvider, TokenProvider

__all__ = ["MarketApiError", "MarketApiHTTP"]

_LOG = logging.getLogger(__name__)

_RETRY_STATUSES = {429, 502, 503, 504}
_MAX_ATTEMPTS = 3


class MarketApiError(Exception):
    """A provider call failed or returned a body that could not be decoded."""

    def __init__(self, provider: str, url: str, message: str) -> None:
        super().__init__(f"{provider}: {message} ({url})")
        self.provider = provider
        self.url = url


class MarketApiHTTP:
    def __init__(
        self,
        *,
        provider: str,
        base_url: str,
        token_provider: Optional[TokenProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = MARKET_API_TIMEOUT,
        backoff: float = 0.1,
    ):
        self._provider = provider
        self._token_provider = token_provider or StaticTokenProvider()
        self._backoff = backoff
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    @property
    def provider(self) -> str:
        return self._provider

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        headers = dict(kwargs.pop("headers", {}) or {})
        token = await self._token_provider.token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        # first path segment only; the rest carries ids
        endpoint_label = "/" + url.split("?", 1)[0].strip("/").split("/", 1)[0]

        attempt = 0
        while True:
            attempt += 1
            start = time.perf_counter()
            try:
                resp = await self._client.request(method, url, headers=headers, **kwargs)
            except httpx.RequestError as exc:
                if attempt >= _MAX_ATTEMPTS:
                    raise MarketApiError(self._provider, url, f"transport error: {exc}") from exc
                _LOG.warning("%s %s failed (%s); retrying", method, url, exc)
                await asyncio.sleep(2 ** attempt * self._backoff)
                continue
            market_api_latency_seconds.labels(self._provider, endpoint_label).observe(
                time.perf_counter() - start
            )
            market_api_requests_total.labels(
                self._provider, endpoint_label, method.lower(), resp.status_code
            ).inc()
            if resp.status_code in _RETRY_STATUSES and attempt < _MAX_ATTEMPTS:
                retry_after = resp.headers.get("Retry-After")
                delay = float(retry_after) if retry_after and retry_after.isdigit() else 2 ** attempt * self._backoff
                delay = delay * (1 + random.random() * 0.2)  # jitter
                await asyncio.sleep(delay)
                continue
            try:
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise MarketApiError(
                    self._provider, url, f"HTTP {resp.status_code}"
                ) from exc
            return resp

    async def get(self, url: str, **kw) -> httpx.Response:
        return await self._request("GET", url, **kw)

    async def get_json(self, url: str, **kw) -> Any:
        resp = await self.get(url, **kw)
        try:
            return resp.json()
        except ValueError as exc:
            raise MarketApiError(self._provider, url, "response is not JSON") from exc

    async def aclose(self) -> None:
        await self._client.aclose()

    # context-manager sugar
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
