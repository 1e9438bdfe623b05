"""Fear & Greed index data points and summary."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence


@dataclass(frozen=True)
class FearGreedPoint:
    timestamp: datetime
    value: int
    classification: str


@dataclass(frozen=True)
class FearGreedSummary:
    current: int
    classification: str
    trend: str  # "up", "down", "flat"
    minimum: int
    maximum: int
    points: int

    @property
    def arrow(self) -> str:
        return {"up": "↑", "down": "↓"}.get(self.trend, "→")


def summarize_fear_greed(points: Sequence[FearGreedPoint]) -> Optional[FearGreedSummary]:
    """Summarize newest-first points. Returns None when there is no data."""
    if not points:
        return None
    current = points[0].value
    previous = points[1].value if len(points) > 1 else current
    if current > previous:
        trend = "up"
    elif current < previous:
        trend = "down"
    else:
        trend = "flat"
    values = [p.value for p in points]
    return FearGreedSummary(
        current=current,
        classification=points[0].classification or "Unknown",
        trend=trend,
        minimum=min(values),
        maximum=max(values),
        points=len(points),
    )
