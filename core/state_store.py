"""
Canonical in-memory store of tracked tokens.

Handles:
- Insertion-ordered token storage keyed by normalized identifier
- Membership changes with invariant checks
- Market field replacement for known tokens only

Every mutation swaps immutable TrackedToken instances under a single lock, so
readers always get a consistent snapshot.
"""

import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from core.errors import ValidationError
from core.logging_utils import get_logger
from core.models import Holding, MarketFields, TrackedToken, normalize_identifier

logger = get_logger(__name__)


@dataclass(frozen=True)
class MembershipChange:
    """Requested membership change.

    Flags are tri-state: True sets, False clears, None leaves untouched.
    ``holding`` is required when ``portfolio`` is True and replaces any
    existing holding.
    """
    watchlist: Optional[bool] = None
    portfolio: Optional[bool] = None
    holding: Optional[Holding] = None

    @property
    def sets_any(self) -> bool:
        return bool(self.watchlist) or bool(self.portfolio)

    @property
    def is_empty(self) -> bool:
        return self.watchlist is None and self.portfolio is None


class StateStore:
    """Single-writer store of TrackedToken records."""

    def __init__(self, tokens: Iterable[TrackedToken] = ()):
        self._lock = threading.Lock()
        self._tokens: Dict[str, TrackedToken] = {}
        self.load(tokens)

    # Reads

    def get_all(self) -> tuple[TrackedToken, ...]:
        """Snapshot of all tokens in insertion order."""
        with self._lock:
            return tuple(self._tokens.values())

    def get(self, identifier: str) -> Optional[TrackedToken]:
        with self._lock:
            return self._tokens.get(normalize_identifier(identifier))

    def identifiers(self) -> List[str]:
        with self._lock:
            return list(self._tokens.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

    def __contains__(self, identifier: str) -> bool:
        with self._lock:
            return normalize_identifier(identifier) in self._tokens

    # Mutations

    def load(self, tokens: Iterable[TrackedToken]) -> None:
        """Replace the whole store content (startup)."""
        loaded: Dict[str, TrackedToken] = {}
        for token in tokens:
            key = normalize_identifier(token.identifier)
            if not key:
                raise ValidationError("Token identifier must not be empty")
            if token.is_orphaned:
                raise ValidationError(f"Token {key} has no watchlist or portfolio membership")
            if key in loaded:
                raise ValidationError(f"Duplicate token identifier {key}")
            loaded[key] = replace(token, identifier=key)
        with self._lock:
            self._tokens = loaded

    def upsert_membership(self, identifier: str, change: MembershipChange) -> Optional[TrackedToken]:
        """
        Apply a membership change to one token.

        Returns:
            The resulting token, or None when nothing is tracked under the
            identifier afterwards (removed, or removal on a missing token).

        Raises:
            ValidationError: empty identifier, no-op change on a missing
            token, or portfolio set without a holding.
        """
        key = normalize_identifier(identifier)
        if not key:
            raise ValidationError("Token identifier must not be empty")
        if change.portfolio and change.holding is None:
            raise ValidationError(f"Portfolio membership for {key} requires amount and price")

        with self._lock:
            existing = self._tokens.get(key)

            if existing is None:
                if change.is_empty:
                    raise ValidationError(f"No membership given for new token {key}")
                if not change.sets_any:
                    # Removing a membership that never existed
                    return None
                token = TrackedToken(identifier=key)
            else:
                token = existing

            if change.watchlist is not None:
                token = replace(token, in_watchlist=change.watchlist)
            if change.portfolio is True:
                token = replace(token, holding=change.holding)
            elif change.portfolio is False:
                token = replace(token, holding=None)

            if token.is_orphaned:
                if existing is not None:
                    del self._tokens[key]
                    logger.info("[STORE] Removed %s (no memberships left)", key)
                return None

            self._tokens[key] = token
            if existing is None:
                logger.info("[STORE] Tracking %s", key)
            return token

    def remove_if_orphaned(self, identifier: str) -> bool:
        """Delete a token whose memberships are both false. Returns True if removed."""
        key = normalize_identifier(identifier)
        with self._lock:
            token = self._tokens.get(key)
            if token is None or not token.is_orphaned:
                return False
            del self._tokens[key]
        logger.info("[STORE] Removed orphaned %s", key)
        return True

    def apply_market(
        self,
        identifier: str,
        fields: MarketFields,
        at: Optional[datetime] = None,
    ) -> bool:
        """Replace market fields of a tracked token. Unknown identifiers are ignored."""
        key = normalize_identifier(identifier)
        at = at or datetime.now(timezone.utc)
        with self._lock:
            token = self._tokens.get(key)
            if token is None:
                return False
            self._tokens[key] = token.with_market(fields, at)
        return True
