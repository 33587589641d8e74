# collateral_observability/metrics.py
"""
Prometheus metrics for the allocation engine.

This module does NOT start a standalone HTTP server. The FastAPI app mounts
the ASGI exporter:

    from prometheus_client import make_asgi_app
    app.mount("/metrics", make_asgi_app())

For the CLI, set METRICS_HTTP_SERVER=1 and call maybe_start_http_server().
"""

import os
import threading
from typing import Any, Dict, Tuple, Type

from prometheus_client import Counter, Gauge, Histogram, start_http_server

# ----------------------------
# Optional standalone server
# ----------------------------
_METRICS_PORT = int(os.getenv("METRICS_PORT", "8001"))
_server_started = False
_server_lock = threading.Lock()


def maybe_start_http_server() -> None:
    """Start a sidecar metrics server once, only if METRICS_HTTP_SERVER=1."""
    global _server_started
    if _server_started or os.getenv("METRICS_HTTP_SERVER") != "1":
        return
    with _server_lock:
        if not _server_started:
            start_http_server(_METRICS_PORT)
            _server_started = True


# ----------------------------
# Registration helper (avoid duplicate collectors)
# ----------------------------
_METRICS: Dict[Tuple[Type[Any], str], Any] = {}


def get_metric(cls: Type[Any], name: str, *args, **kwargs):
    key = (cls, name)
    if key in _METRICS:
        return _METRICS[key]
    metric = cls(name, *args, **kwargs)
    _METRICS[key] = metric
    return metric


# ----------------------------
# Engine metrics
# ----------------------------

allocation_runs_total = get_metric(
    Counter,
    "allocation_runs_total",
    "Allocation attempts by terminal outcome",
    ["outcome"],
)

allocation_latency_seconds = get_metric(
    Histogram,
    "allocation_latency_seconds",
    "End-to-end latency of one allocation attempt in seconds",
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)

allocation_allocated_value = get_metric(
    Gauge,
    "allocation_allocated_value",
    "Collateral value moved by the last successful allocation",
    ["currency"],
)

ruleset_violations_total = get_metric(
    Counter,
    "ruleset_violations_total",
    "Private ruleset entries rejected for exceeding the public ruleset",
    ["asset_class"],
)

margin_sweep_updates_total = get_metric(
    Counter,
    "margin_sweep_updates_total",
    "Transactions updated by the margin-call sweep",
    ["allocation_status"],
)

# ----------------------------
# Provider HTTP metrics
# ----------------------------

market_api_requests_total = get_metric(
    Counter,
    "market_api_requests_total",
    "HTTP requests to ruleset / market-data / FX providers",
    ["provider", "endpoint", "method", "status"],
)

market_api_latency_seconds = get_metric(
    Histogram,
    "market_api_latency_seconds",
    "Latency of provider HTTP requests",
    ["provider", "endpoint"],
)
