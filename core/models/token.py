"""Tracked token, holding and market field models.

Tokens are immutable; every store mutation swaps in a new instance so a reader
holding a snapshot never sees a half-applied update.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Optional

from core.errors import ValidationError
from core.helpers.validation import MAX_HOLDING_NUMBER, within_holding_range


def normalize_identifier(identifier: str) -> str:
    """Canonical form of a token identifier (CoinMarketCap slug)."""
    return (identifier or "").strip().lower()


@dataclass(frozen=True)
class MarketFields:
    """Quote fields for one token, replaced wholesale on every refresh."""
    price: Decimal
    volume_24h: Optional[Decimal] = None
    volume_change_24h: Optional[Decimal] = None
    percent_change_1h: Optional[Decimal] = None
    percent_change_24h: Optional[Decimal] = None
    percent_change_7d: Optional[Decimal] = None
    percent_change_30d: Optional[Decimal] = None
    percent_change_90d: Optional[Decimal] = None
    market_cap: Optional[Decimal] = None
    name: str = ""
    symbol: str = ""


@dataclass(frozen=True)
class Holding:
    """Amount owned and average buy price."""
    amount: Decimal
    avg_buy_price: Decimal

    def __post_init__(self):
        for label, value in (("amount", self.amount), ("avg_buy_price", self.avg_buy_price)):
            if not isinstance(value, Decimal) or not value.is_finite():
                raise ValidationError(f"{label} must be a finite decimal, got {value!r}")
            if value < 0:
                raise ValidationError(f"{label} must be non-negative, got {value}")
            if not within_holding_range(value):
                raise ValidationError(f"{label} must not exceed {MAX_HOLDING_NUMBER:,.0f}, got {value}")

    @property
    def cost_basis(self) -> Decimal:
        return self.amount * self.avg_buy_price


@dataclass(frozen=True)
class TrackedToken:
    """One tracked asset.

    Portfolio membership is holding presence, so a portfolio token without a
    holding cannot be represented.
    """
    identifier: str
    in_watchlist: bool = False
    holding: Optional[Holding] = None
    market: Optional[MarketFields] = None
    updated_at: Optional[datetime] = None

    @property
    def in_portfolio(self) -> bool:
        return self.holding is not None

    @property
    def is_orphaned(self) -> bool:
        return not self.in_watchlist and self.holding is None

    @property
    def symbol(self) -> str:
        """Display symbol, falling back to the identifier before the first fetch."""
        if self.market is not None and self.market.symbol:
            return self.market.symbol
        return self.identifier.upper()

    @property
    def price(self) -> Optional[Decimal]:
        return self.market.price if self.market is not None else None

    def with_market(self, market: MarketFields, at: datetime) -> "TrackedToken":
        return replace(self, market=market, updated_at=at)
