import os
import sys
from datetime import datetime, timezone
from decimal import Decimal

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from core.models import Holding, MarketFields, TrackedToken  # noqa: E402
from core.state_store import StateStore  # noqa: E402

FIXED_AT = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def market(price, **kwargs) -> MarketFields:
    """MarketFields from plain numbers."""
    fields = {k: (Decimal(str(v)) if v is not None and k not in ("name", "symbol") else v) for k, v in kwargs.items()}
    return MarketFields(price=Decimal(str(price)), **fields)


def holding(amount, price) -> Holding:
    return Holding(amount=Decimal(str(amount)), avg_buy_price=Decimal(str(price)))


@pytest.fixture
def store():
    """Three tokens: watchlist-only bitcoin, ethereum in both, portfolio-only solana."""
    return StateStore([
        TrackedToken("bitcoin", in_watchlist=True),
        TrackedToken("ethereum", in_watchlist=True, holding=holding(5, 1800)),
        TrackedToken("solana", holding=holding(20, 100)),
    ])


@pytest.fixture
def snapshot():
    return {
        "bitcoin": market(40000, market_cap=800_000_000_000, percent_change_24h=1.5, symbol="BTC"),
        "ethereum": market(2000, market_cap=240_000_000_000, percent_change_24h=-2, symbol="ETH"),
        "solana": market(125, market_cap=50_000_000_000, percent_change_24h=10, symbol="SOL"),
    }


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.json"
