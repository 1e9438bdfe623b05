"""Typed data models for the tracker."""

from core.models.command import Command, CommandOp
from core.models.fear_greed import FearGreedPoint, FearGreedSummary, summarize_fear_greed
from core.models.token import Holding, MarketFields, TrackedToken, normalize_identifier

__all__ = [
    "Command",
    "CommandOp",
    "FearGreedPoint",
    "FearGreedSummary",
    "Holding",
    "MarketFields",
    "TrackedToken",
    "normalize_identifier",
    "summarize_fear_greed",
]
