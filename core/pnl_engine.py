"""
Centralized P&L calculation - single source of truth.

Derived values are computed on read from the canonical holding and market
fields and never stored, so they cannot go stale.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, Optional

from core.models import TrackedToken

HUNDRED = Decimal(100)
ZERO = Decimal(0)


@dataclass(frozen=True)
class DerivedFields:
    """Per-token portfolio values."""
    current_value: Decimal
    cost_basis: Decimal
    pnl: Decimal
    pnl_pct: Optional[Decimal]  # None when cost basis is zero


@dataclass
class PortfolioSummary:
    """Portfolio-level totals for the summary header."""
    total_value: Decimal = ZERO
    total_cost: Decimal = ZERO
    total_pnl: Decimal = ZERO
    total_pnl_pct: Optional[Decimal] = None
    change_24h: Decimal = ZERO
    change_24h_pct: Optional[Decimal] = None
    allocation: Dict[str, Decimal] = field(default_factory=dict)
    priced_tokens: int = 0
    unpriced_tokens: int = 0


def pct_of(part: Decimal, whole: Decimal) -> Optional[Decimal]:
    """part / whole * 100, or None for a zero denominator."""
    if whole == 0:
        return None
    return part / whole * HUNDRED


def derive(token: TrackedToken) -> Optional[DerivedFields]:
    """
    Compute value, cost basis and P&L for one token.

    Returns None for watchlist-only tokens and for tokens without a price yet.
    """
    holding = token.holding
    if holding is None or token.market is None:
        return None
    current_value = holding.amount * token.market.price
    cost_basis = holding.cost_basis
    pnl = current_value - cost_basis
    return DerivedFields(
        current_value=current_value,
        cost_basis=cost_basis,
        pnl=pnl,
        pnl_pct=pct_of(pnl, cost_basis),
    )


def summarize_portfolio(tokens: Iterable[TrackedToken]) -> PortfolioSummary:
    """Aggregate portfolio tokens. Tokens without a price are counted but not valued."""
    summary = PortfolioSummary()
    values: Dict[str, Decimal] = {}

    for token in tokens:
        if not token.in_portfolio:
            continue
        derived = derive(token)
        if derived is None:
            summary.unpriced_tokens += 1
            continue
        summary.priced_tokens += 1
        summary.total_value += derived.current_value
        summary.total_cost += derived.cost_basis
        values[token.identifier] = derived.current_value

        change_pct = token.market.percent_change_24h
        if change_pct is not None:
            summary.change_24h += change_pct * derived.current_value / HUNDRED

    summary.total_pnl = summary.total_value - summary.total_cost
    summary.total_pnl_pct = pct_of(summary.total_pnl, summary.total_cost)
    summary.change_24h_pct = pct_of(summary.change_24h, summary.total_value)
    if summary.total_value > 0:
        summary.allocation = {
            identifier: value / summary.total_value * HUNDRED
            for identifier, value in values.items()
        }
    return summary
