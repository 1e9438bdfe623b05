"""Shared helper utilities for consistency across the tracker."""

from .validation import MAX_HOLDING_NUMBER, finite_decimal, within_holding_range

__all__ = [
    "MAX_HOLDING_NUMBER",
    "finite_decimal",
    "within_holding_range",
]
