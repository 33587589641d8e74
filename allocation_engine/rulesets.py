"""Ruleset Resolver.

Fetches the private ruleset for a pledger/pledgee pair and keeps only the
asset classes that are no more permissive than the public ruleset.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Protocol, Tuple

from collateral_domain import Ruleset
from collateral_observability.metrics import ruleset_violations_total

from .notifications import ERROR_EVENT, NotificationSink, message_payload

__all__ = [
    "PUBLIC_RULESET",
    "ResolvedRuleset",
    "RulesetProvider",
    "check_containment",
    "resolve_private_ruleset",
]

_LOG = logging.getLogger(__name__)

# [concentration limit %, priority rank, valuation %]
PUBLIC_RULESET = Ruleset(
    security={
        "Common Stocks": [40, 1, 97],
        "Corporate Bonds": [30, 2, 97],
        "Sovereign Bonds": [25, 3, 95],
        "US Treasury Bills": [25, 4, 95],
        "US Treasury Bonds": [25, 5, 95],
        "US Treasury Notes": [25, 6, 95],
        "Gilt": [25, 7, 94],
        "Federal Agency Bonds": [20, 8, 93],
        "Global Bonds": [20, 9, 92],
        "Preferred Shares": [20, 10, 91],
        "Convertible Bonds": [20, 11, 90],
        "Revenue Bonds": [15, 12, 90],
        "Medium Term Note": [15, 13, 89],
        "Short Term Investments": [15, 14, 87],
        "Builder Bonds": [15, 15, 85],
    },
    base_currency="USD",
)


class RulesetProvider(Protocol):
    async def get_private_ruleset(self, pledger: str, pledgee: str) -> Ruleset:
        ...


@dataclass
class ResolvedRuleset:
    accepted: Ruleset
    rejected: List[Tuple[str, str]] = field(default_factory=list)


def check_containment(public: Ruleset, private: Ruleset) -> Tuple[List[str], List[Tuple[str, str]]]:
    """Split the private classes into accepted names and (name, reason) rejections.

    Priority rank is informational and never causes a rejection.
    """
    accepted: List[str] = []
    rejected: List[Tuple[str, str]] = []
    for name in private.security:
        try:
            mine = private.entry(name)
        except ValueError as exc:
            rejected.append((name, str(exc)))
            continue
        if mine is None:
            rejected.append((name, "entry must carry limit, priority and valuation"))
            continue
        ceiling = public.entry(name)
        if ceiling is None:
            rejected.append((name, "asset class is not in the public ruleset"))
            continue
        if mine.concentration_limit > ceiling.concentration_limit:
            rejected.append(
                (name, f"concentration limit {mine.concentration_limit} exceeds public {ceiling.concentration_limit}")
            )
            continue
        if mine.valuation_pct > ceiling.valuation_pct:
            rejected.append((name, f"valuation {mine.valuation_pct} exceeds public {ceiling.valuation_pct}"))
            continue
        accepted.append(name)
    return accepted, rejected


async def resolve_private_ruleset(
    provider: RulesetProvider,
    pledger: str,
    pledgee: str,
    *,
    sink: NotificationSink,
    transaction_id: str | None = None,
    public: Ruleset = PUBLIC_RULESET,
) -> ResolvedRuleset:
    """Fetch and vet the private ruleset; rejected classes are reported, not fatal."""
    private = await provider.get_private_ruleset(pledger, pledgee)
    accepted, rejected = check_containment(public, private)
    for name, reason in rejected:
        ruleset_violations_total.labels(asset_class=name).inc()
        _LOG.warning(
            "rejecting asset class %r for %s/%s: %s",
            name,
            pledger,
            pledgee,
            reason,
            extra={"transaction_id": transaction_id, "asset_class": name},
        )
        sink.emit(
            ERROR_EVENT,
            message_payload(
                f"Security Ruleset out of allowed values for: {name}.",
                code=503,
                transaction_id=transaction_id,
            ),
        )
    _LOG.debug("accepted asset classes for %s/%s: %s", pledger, pledgee, accepted)
    return ResolvedRuleset(accepted=private.restricted_to(accepted), rejected=rejected)
