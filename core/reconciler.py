"""Merge fetched market snapshots into the state store.

Only market fields are touched. Holdings and membership flags belong to the
user and are never changed here.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Mapping, Optional

from core.logging_utils import get_logger
from core.models import MarketFields, normalize_identifier
from core.state_store import StateStore

logger = get_logger(__name__)

MarketSnapshot = Mapping[str, MarketFields]


@dataclass
class ReconcileReport:
    """Outcome of one merge."""
    updated: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)   # tracked but absent from snapshot (stale)
    ignored: List[str] = field(default_factory=list)   # in snapshot but not tracked
    at: Optional[datetime] = None

    @property
    def is_partial(self) -> bool:
        return bool(self.missing)


def reconcile(
    store: StateStore,
    snapshot: MarketSnapshot,
    at: Optional[datetime] = None,
) -> ReconcileReport:
    """Apply a snapshot to every tracked token present in it."""
    at = at or datetime.now(timezone.utc)
    report = ReconcileReport(at=at)
    normalized = {normalize_identifier(k): v for k, v in snapshot.items()}

    tracked = store.identifiers()
    for identifier in tracked:
        fields = normalized.get(identifier)
        if fields is None:
            report.missing.append(identifier)
            continue
        if store.apply_market(identifier, fields, at):
            report.updated.append(identifier)
        else:
            # Removed by a command between listing and applying
            report.ignored.append(identifier)

    tracked_set = set(tracked)
    report.ignored.extend(k for k in normalized if k not in tracked_set)

    if report.missing:
        logger.debug("[RECONCILE] No quote for %s, keeping last known values", ", ".join(report.missing))
    logger.debug(
        "[RECONCILE] Updated %d tokens (%d stale, %d ignored)",
        len(report.updated), len(report.missing), len(report.ignored),
    )
    return report
