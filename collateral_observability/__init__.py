"""Prometheus metrics for the collateral allocation services."""

from .metrics import (allocation_latency_seconds, allocation_runs_total,
                      ruleset_violations_total)

__all__ = [
    "allocation_runs_total",
    "allocation_latency_seconds",
    "ruleset_violations_total",
]
