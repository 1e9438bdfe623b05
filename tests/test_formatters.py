from decimal import Decimal

import pytest

from apps.dashboard.formatters import (
    change_style,
    format_amount,
    format_market_cap,
    format_pct,
    format_price,
    format_volume,
)


@pytest.mark.parametrize("value,expected", [
    (Decimal("43250.123"), "$43250.12"),
    (Decimal("1000"), "$1000.00"),
    (Decimal("2.5"), "$2.500"),
    (Decimal("0.00012345"), "$0.000123"),
    (Decimal("-150.5"), "-$150.500"),
    (None, "N/A"),
])
def test_format_price(value, expected):
    assert format_price(value) == expected


def test_format_large_units():
    assert format_market_cap(Decimal("850000000000")) == "$850.0B"
    assert format_volume(Decimal("12340000")) == "$12.3M"
    assert format_volume(None) == "N/A"


def test_format_pct_and_amount():
    assert format_pct(Decimal("1.234")) == "+1.23%"
    assert format_pct(Decimal("-0.5")) == "-0.50%"
    assert format_pct(None) == "N/A"
    assert format_amount(Decimal("0.5")) == "0.5000"


def test_change_style():
    assert change_style(Decimal("0")) == "green"
    assert change_style(Decimal("-1")) == "red"
    assert change_style(None) == ""
