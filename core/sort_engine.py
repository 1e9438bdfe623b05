"""
Ordered views over the tracked tokens.

Sorting is a pure function of a token snapshot: stable, and total in the sense
that tokens without a value for the sort column always come last, whichever
direction is active.

Direction policy: cycling to another column resets the direction to
ascending (``CYCLE_RESETS_TO_ASCENDING``). Toggling keeps the column.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from core.models import TrackedToken
from core.pnl_engine import derive

CYCLE_RESETS_TO_ASCENDING = True


class View(Enum):
    WATCHLIST = "watchlist"
    PORTFOLIO = "portfolio"


class SortColumn(Enum):
    SYMBOL = "Symbol"
    PRICE = "Price"
    CHANGE_1H = "Δ 1h %"
    CHANGE_24H = "Δ 24h %"
    CHANGE_7D = "Δ 7d %"
    CHANGE_30D = "Δ 30d %"
    CHANGE_90D = "Δ 90d %"
    VOLUME_24H = "Volume (24h)"
    VOLUME_CHANGE = "Vol Δ %"
    MARKET_CAP = "Market Cap"
    # Portfolio only
    HOLDINGS = "Holdings"
    AVG_BUY = "Avg Buy"
    CURRENT_VALUE = "Value"
    COST_BASIS = "Cost Basis"
    PROFIT_LOSS = "P&L"
    PROFIT_LOSS_PCT = "P&L %"


# Display order, which is also the cycle order
WATCHLIST_COLUMNS: Tuple[SortColumn, ...] = (
    SortColumn.SYMBOL,
    SortColumn.PRICE,
    SortColumn.CHANGE_1H,
    SortColumn.CHANGE_24H,
    SortColumn.CHANGE_7D,
    SortColumn.CHANGE_30D,
    SortColumn.CHANGE_90D,
    SortColumn.VOLUME_24H,
    SortColumn.VOLUME_CHANGE,
    SortColumn.MARKET_CAP,
)

PORTFOLIO_COLUMNS: Tuple[SortColumn, ...] = (
    SortColumn.SYMBOL,
    SortColumn.PRICE,
    SortColumn.HOLDINGS,
    SortColumn.AVG_BUY,
    SortColumn.CURRENT_VALUE,
    SortColumn.COST_BASIS,
    SortColumn.PROFIT_LOSS,
    SortColumn.PROFIT_LOSS_PCT,
    SortColumn.CHANGE_24H,
)

VIEW_COLUMNS: Dict[View, Tuple[SortColumn, ...]] = {
    View.WATCHLIST: WATCHLIST_COLUMNS,
    View.PORTFOLIO: PORTFOLIO_COLUMNS,
}

SortKey = Optional[Union[Decimal, str]]


def _market_attr(name: str) -> Callable[[TrackedToken], SortKey]:
    def key(token: TrackedToken) -> SortKey:
        if token.market is None:
            return None
        return getattr(token.market, name)
    return key


def _derived_attr(name: str) -> Callable[[TrackedToken], SortKey]:
    def key(token: TrackedToken) -> SortKey:
        derived = derive(token)
        if derived is None:
            return None
        return getattr(derived, name)
    return key


def _holding_attr(name: str) -> Callable[[TrackedToken], SortKey]:
    def key(token: TrackedToken) -> SortKey:
        if token.holding is None:
            return None
        return getattr(token.holding, name)
    return key


_KEY_FUNCS: Dict[SortColumn, Callable[[TrackedToken], SortKey]] = {
    SortColumn.SYMBOL: lambda t: t.symbol.lower(),
    SortColumn.PRICE: _market_attr("price"),
    SortColumn.CHANGE_1H: _market_attr("percent_change_1h"),
    SortColumn.CHANGE_24H: _market_attr("percent_change_24h"),
    SortColumn.CHANGE_7D: _market_attr("percent_change_7d"),
    SortColumn.CHANGE_30D: _market_attr("percent_change_30d"),
    SortColumn.CHANGE_90D: _market_attr("percent_change_90d"),
    SortColumn.VOLUME_24H: _market_attr("volume_24h"),
    SortColumn.VOLUME_CHANGE: _market_attr("volume_change_24h"),
    SortColumn.MARKET_CAP: _market_attr("market_cap"),
    SortColumn.HOLDINGS: _holding_attr("amount"),
    SortColumn.AVG_BUY: _holding_attr("avg_buy_price"),
    SortColumn.CURRENT_VALUE: _derived_attr("current_value"),
    SortColumn.COST_BASIS: _derived_attr("cost_basis"),
    SortColumn.PROFIT_LOSS: _derived_attr("pnl"),
    SortColumn.PROFIT_LOSS_PCT: _derived_attr("pnl_pct"),
}


def sort_key(token: TrackedToken, column: SortColumn) -> SortKey:
    return _KEY_FUNCS[column](token)


def members(tokens: Iterable[TrackedToken], view: View) -> List[TrackedToken]:
    """Tokens that belong to a view, in their incoming order."""
    if view == View.WATCHLIST:
        return [t for t in tokens if t.in_watchlist]
    return [t for t in tokens if t.in_portfolio]


def sort_tokens(
    tokens: Iterable[TrackedToken],
    view: View,
    column: SortColumn,
    ascending: bool = True,
) -> List[TrackedToken]:
    """Return the view's tokens ordered by column. Never mutates its input."""
    if column not in VIEW_COLUMNS[view]:
        raise ValueError(f"Column {column.name} is not available in the {view.value} view")

    keyed = [(sort_key(t, column), t) for t in members(tokens, view)]
    present = [(k, t) for k, t in keyed if k is not None]
    missing = [t for k, t in keyed if k is None]

    # list.sort is stable for reverse=True as well
    present.sort(key=lambda pair: pair[0], reverse=not ascending)
    return [t for _, t in present] + missing


@dataclass
class SortState:
    """Active sort column and direction for one view."""
    view: View
    column: SortColumn
    ascending: bool

    @classmethod
    def default_for(cls, view: View) -> "SortState":
        """Startup ordering: biggest market cap / biggest position first."""
        if view == View.WATCHLIST:
            return cls(view=view, column=SortColumn.MARKET_CAP, ascending=False)
        return cls(view=view, column=SortColumn.CURRENT_VALUE, ascending=False)

    @property
    def columns(self) -> Tuple[SortColumn, ...]:
        return VIEW_COLUMNS[self.view]

    def toggle_direction(self) -> None:
        self.ascending = not self.ascending

    def cycle_column(self) -> SortColumn:
        """Advance to the next column, wrapping around, and reset direction."""
        columns = self.columns
        try:
            index = columns.index(self.column)
        except ValueError:
            index = -1
        self.column = columns[(index + 1) % len(columns)]
        self.ascending = CYCLE_RESETS_TO_ASCENDING
        return self.column

    def apply(self, tokens: Iterable[TrackedToken]) -> List[TrackedToken]:
        return sort_tokens(tokens, self.view, self.column, self.ascending)

    @property
    def arrow(self) -> str:
        return "↑" if self.ascending else "↓"
