"""Clients for the ruleset, market-data and FX rate providers."""
import os
from typing import Final

MARKET_API_SCHEME: Final[str] = os.getenv("MARKET_API_SCHEME", "http")
MARKET_API_TIMEOUT: Final[float] = float(os.getenv("MARKET_API_TIMEOUT", "10"))
FX_BASE_URL: Final[str] = os.getenv("FX_BASE_URL", "https://api.fixer.io")


def host_url(host: str, scheme: str = MARKET_API_SCHEME) -> str:
    """Base URL for a bare ``host[:port]`` as passed to the allocation entry point."""
    if "://" in host:
        return host.rstrip("/")
    return f"{scheme}://{host.strip('/')}"
