"""
Refresh scheduler

Drives periodic price fetches and hands the results to the engine.
- Fixed interval, first tick immediately on start
- Manual refresh wakes the loop unless a fetch is already in flight
- Failures are recorded for display and retried on the next normal tick
- Results arriving after stop() are discarded
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from core.engine import TrackerEngine
from core.errors import FetchError
from core.logging_utils import get_logger
from core.reconciler import MarketSnapshot, ReconcileReport

logger = get_logger(__name__)

FetchFunc = Callable[[List[str]], Awaitable[MarketSnapshot]]


class RefreshState(Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RECONCILING = "reconciling"
    FAILED_BACKOFF = "failed_backoff"


class RefreshScheduler:
    """Periodic fetch → reconcile loop."""

    def __init__(self, fetch_func: FetchFunc, engine: TrackerEngine, interval: float = 60.0):
        self.fetch = fetch_func
        self.engine = engine
        self.interval = interval
        self.state = RefreshState.IDLE

        self._stopped = False
        self._task: Optional[asyncio.Task] = None
        self._wake: Optional[asyncio.Event] = None

        # Status for display
        self.last_error: Optional[str] = None
        self.last_error_at: Optional[datetime] = None
        self.last_success: Optional[datetime] = None

        # Stats
        self.fetches = 0
        self.errors = 0
        self.discarded = 0

    @property
    def is_fetching(self) -> bool:
        return self.state == RefreshState.FETCHING

    async def start(self):
        """Start the refresh loop."""
        self._stopped = False
        self._wake = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name="refresh-scheduler")
        logger.info("[REFRESH] Started (%ss interval)", self.interval)

    async def stop(self):
        """Stop the loop. An in-flight fetch is abandoned."""
        self._stopped = True
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.state = RefreshState.IDLE

    def request_refresh(self) -> bool:
        """Skip the remaining wait. Returns False if a fetch is already running or the loop is stopped."""
        if self._stopped or self.is_fetching or self._wake is None:
            return False
        self._wake.set()
        return True

    async def _loop(self):
        while not self._stopped:
            try:
                await self.refresh_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # refresh_once reports fetch failures itself; this is a bug guard
                logger.warning("[REFRESH] Tick error: %s", e, exc_info=True)
                self.errors += 1
            await self._wait_next()

    async def _wait_next(self):
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            pass
        finally:
            self._wake.clear()
        if self.state == RefreshState.FAILED_BACKOFF:
            self.state = RefreshState.IDLE

    def _record_failure(self, message: str):
        self.state = RefreshState.FAILED_BACKOFF
        self.errors += 1
        self.last_error = message
        self.last_error_at = datetime.now(timezone.utc)

    async def refresh_once(self) -> Optional[ReconcileReport]:
        """Run one fetch → reconcile cycle. Returns None when nothing was applied."""
        identifiers = self.engine.store.identifiers()
        if not identifiers:
            self.state = RefreshState.IDLE
            return None

        self.state = RefreshState.FETCHING
        self.fetches += 1
        try:
            # No state lock is held while waiting on the network
            snapshot = await self.fetch(identifiers)
        except FetchError as e:
            self._record_failure(str(e))
            logger.warning("[REFRESH] Fetch failed: %s", e)
            return None
        except asyncio.CancelledError:
            self.state = RefreshState.IDLE
            raise
        except Exception as e:
            self._record_failure(f"Unexpected fetch error: {e}")
            logger.warning("[REFRESH] Unexpected fetch error: %s", e, exc_info=True)
            return None

        if self._stopped:
            self.discarded += 1
            logger.debug("[REFRESH] Discarding result that arrived after stop")
            return None

        self.state = RefreshState.RECONCILING
        try:
            report = await self.engine.submit_market(snapshot)
        except RuntimeError as e:
            # Engine already shutting down
            self.discarded += 1
            self.state = RefreshState.IDLE
            logger.debug("[REFRESH] Discarding result: %s", e)
            return None
        except asyncio.CancelledError:
            self.state = RefreshState.IDLE
            raise
        except Exception as e:
            self._record_failure(f"Reconcile failed: {e}")
            logger.warning("[REFRESH] Reconcile failed: %s", e, exc_info=True)
            return None

        self.last_error = None
        self.last_error_at = None
        self.last_success = report.at
        self.state = RefreshState.IDLE
        return report

    def get_stats(self) -> dict:
        """Get scheduler statistics."""
        return {
            "state": self.state.value,
            "fetches": self.fetches,
            "errors": self.errors,
            "discarded": self.discarded,
            "last_error": self.last_error,
            "last_success": self.last_success.isoformat() if self.last_success else None,
        }
