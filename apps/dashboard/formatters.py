"""Number formatting for dashboard cells."""

from decimal import Decimal
from typing import Optional

NA = "N/A"
BILLION = Decimal(1_000_000_000)
MILLION = Decimal(1_000_000)


def format_price(price: Optional[Decimal]) -> str:
    """Dollar amount with precision by magnitude: 2 dp >= 1000, 3 dp >= 1, else 6 dp."""
    if price is None:
        return NA
    sign = "-" if price < 0 else ""
    p = abs(price)
    if p >= 1000:
        return f"{sign}${p:.2f}"
    if p >= 1:
        return f"{sign}${p:.3f}"
    return f"{sign}${p:.6f}"


def format_large(value: Optional[Decimal]) -> str:
    """Volume / market cap as $x.yB or $x.yM."""
    if value is None:
        return NA
    if value >= BILLION:
        return f"${value / BILLION:.1f}B"
    return f"${value / MILLION:.1f}M"


format_volume = format_large
format_market_cap = format_large


def format_pct(value: Optional[Decimal]) -> str:
    if value is None:
        return NA
    return f"{value:+.2f}%"


def format_amount(value: Optional[Decimal]) -> str:
    if value is None:
        return NA
    return f"{value:.4f}"


def change_style(value: Optional[Decimal]) -> str:
    """Rich style for a signed change: green up, red down, plain when unknown."""
    if value is None:
        return ""
    return "green" if value >= 0 else "red"
