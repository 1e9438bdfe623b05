"""
Dashboard panels - individual UI pieces.

Each function turns a read-only token snapshot (or summary) into Rich
renderables. The Textual app only arranges them.
"""

from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from rich.table import Table
from rich.text import Text

from apps.dashboard.formatters import (
    NA,
    change_style,
    format_amount,
    format_market_cap,
    format_pct,
    format_price,
    format_volume,
)
from core.models import FearGreedPoint, FearGreedSummary, TrackedToken
from core.pnl_engine import PortfolioSummary, derive
from core.sort_engine import SortState
from core.view_state import InputMode

Row = Tuple[Text, ...]


def header_labels(sort: SortState) -> List[Text]:
    """Column headers with the active sort column highlighted."""
    labels = []
    for column in sort.columns:
        if column == sort.column:
            labels.append(Text(f"{column.value} {sort.arrow}", style="bold cyan"))
        else:
            labels.append(Text(column.value, style="yellow"))
    return labels


def _change(value) -> Text:
    return Text(format_pct(value), style=change_style(value))


def watchlist_row(token: TrackedToken) -> Row:
    m = token.market
    if m is None:
        return (Text(token.symbol, style="bold"),) + tuple(Text(NA, style="dim") for _ in range(9))
    return (
        Text(token.symbol, style="bold"),
        Text(format_price(m.price)),
        _change(m.percent_change_1h),
        _change(m.percent_change_24h),
        _change(m.percent_change_7d),
        _change(m.percent_change_30d),
        _change(m.percent_change_90d),
        Text(format_volume(m.volume_24h)),
        _change(m.volume_change_24h),
        Text(format_market_cap(m.market_cap)),
    )


def portfolio_row(token: TrackedToken) -> Row:
    holding = token.holding
    derived = derive(token)
    m = token.market
    pnl_style = change_style(derived.pnl) if derived else ""
    return (
        Text(token.symbol, style="bold"),
        Text(format_price(m.price) if m else NA),
        Text(format_amount(holding.amount if holding else None)),
        Text(format_price(holding.avg_buy_price if holding else None)),
        Text(format_price(derived.current_value) if derived else NA),
        Text(format_price(derived.cost_basis) if derived else format_price(holding.cost_basis if holding else None)),
        Text(format_price(derived.pnl) if derived else NA, style=pnl_style),
        Text(format_pct(derived.pnl_pct) if derived else NA, style=pnl_style),
        _change(m.percent_change_24h if m else None),
    )


def render_update_title(
    label: str,
    last_update: Optional[datetime],
    last_error: Optional[str],
) -> Text:
    """Table title: last update time, or the last fetch error."""
    if last_error:
        return Text(f"{label} (Error: {last_error})", style="red")
    if last_update is None:
        return Text(f"{label} (Not Updated Yet)", style="dim")
    return Text(f"{label} (Last Updated: {last_update.astimezone().strftime('%H:%M:%S')})")


def render_portfolio_summary(summary: PortfolioSummary) -> Text:
    """Portfolio metrics header with allocation bars."""
    pnl_style = change_style(summary.total_pnl)
    day_style = change_style(summary.change_24h)

    text = Text()
    text.append("Total Value: ", style="dim")
    text.append(f"{format_price(summary.total_value)}", style="bold white")
    text.append("  │  P&L: ", style="dim")
    text.append(f"{format_price(summary.total_pnl)} ({format_pct(summary.total_pnl_pct)})", style=pnl_style)
    text.append("  │  24h: ", style="dim")
    text.append(f"{format_price(summary.change_24h)} ({format_pct(summary.change_24h_pct)})", style=day_style)
    text.append("  │  Cost: ", style="dim")
    text.append(format_price(summary.total_cost))
    count = summary.priced_tokens
    text.append(f"  │  {count} {'token' if count == 1 else 'tokens'}", style="dim")
    if summary.unpriced_tokens:
        text.append(f" (+{summary.unpriced_tokens} awaiting prices)", style="yellow")

    bar_width = 15
    for identifier, pct in sorted(summary.allocation.items(), key=lambda kv: kv[1], reverse=True):
        filled = int(round(float(pct) * bar_width / 100))
        text.append("\n")
        text.append(f"{identifier[:12]:<12} ", style="yellow bold")
        text.append(f"{float(pct):>5.1f}% ")
        text.append("█" * filled, style="cyan")
        text.append("░" * (bar_width - filled), style="dim")
    return text


def render_fear_greed(summary: Optional[FearGreedSummary]) -> Text:
    if summary is None:
        return Text("Fear & Greed Index: unavailable", style="dim")
    style = "green" if summary.current >= 55 else "red" if summary.current <= 45 else "yellow"
    text = Text("Fear & Greed Index: ", style="bold")
    text.append(f"{summary.current} {summary.arrow} ({summary.classification})", style=style)
    text.append(f" │ Min: {summary.minimum} │ Max: {summary.maximum}", style="dim")
    return text


def render_fear_greed_history(points: Sequence[FearGreedPoint]) -> Table:
    table = Table(box=None, padding=(0, 1), expand=True)
    table.add_column("Date", style="dim", width=12)
    table.add_column("Value", justify="right", width=6)
    table.add_column("Classification")
    for point in points:
        table.add_row(point.timestamp.strftime("%b %d"), str(point.value), point.classification)
    if not points:
        table.add_row("-", "-", "No data")
    return table


def render_help(mode: InputMode) -> Text:
    keys = (
        [("Enter", "Execute Command"), ("Esc", "Cancel")]
        if mode == InputMode.EDITING
        else [
            ("q", "Quit"), ("↓/j ↑/k", "Navigate"), ("Tab", "Switch View"),
            ("s", "Sort"), ("d", "Direction"), ("r", "Refresh"), ("e", "Edit"),
        ]
    )
    text = Text(justify="center")
    for i, (key, label) in enumerate(keys):
        if i:
            text.append(" | ")
        text.append(key, style="yellow")
        text.append(f": {label}")
    return text
