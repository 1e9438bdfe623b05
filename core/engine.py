"""
Tracker engine - single owner of the state store.

The refresh scheduler and the command line both submit intents to one asyncio
queue. A single task applies them in order, so two mutations never
interleave, and flushes the config file after every command that changed
state. Stopping the engine drains the queue first, so a pending write always
completes before exit.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from core import commands
from core.errors import CommandSyntaxError, PersistenceError, ValidationError
from core.logging_utils import get_logger
from core.persistence import ConfigPersistence, TrackerConfig, config_with_tokens
from core.reconciler import MarketSnapshot, ReconcileReport, reconcile
from core.state_store import StateStore

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """What the command line shows after a command."""
    ok: bool
    message: str
    outcome: Optional[commands.CommandOutcome] = None
    persisted: bool = False


@dataclass
class EngineStatus:
    last_message: str = ""
    last_update: Optional[datetime] = None
    last_report: Optional[ReconcileReport] = None
    persist_error: Optional[str] = None
    commands_applied: int = 0
    merges_applied: int = 0


@dataclass
class _Intent:
    kind: str  # "command" | "market"
    payload: Any
    future: asyncio.Future
    at: Optional[datetime] = None


_STOP = object()


class TrackerEngine:
    """Serializes every state mutation through one owner task."""

    def __init__(
        self,
        store: StateStore,
        persistence: Optional[ConfigPersistence] = None,
        config: Optional[TrackerConfig] = None,
    ):
        self.store = store
        self.persistence = persistence
        self.config = config or TrackerConfig()
        self.status = EngineStatus()
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self._accepting = False

    @property
    def running(self) -> bool:
        return self._accepting and self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the owner task on the running loop."""
        if self._task is not None and not self._task.done():
            return
        self._queue = asyncio.Queue()
        self._accepting = True
        self._task = asyncio.create_task(self._run(), name="tracker-engine")
        logger.info("[ENGINE] Started with %d tokens", len(self.store))

    async def stop(self) -> None:
        """Stop accepting intents, finish the queued ones, then exit."""
        if self._task is None:
            return
        self._accepting = False
        await self._queue.put(_STOP)
        await self._task
        self._task = None
        logger.info("[ENGINE] Stopped")

    async def _submit(self, kind: str, payload: Any, at: Optional[datetime] = None):
        if not self.running:
            raise RuntimeError("Tracker engine is not running")
        future = asyncio.get_running_loop().create_future()
        await self._queue.put(_Intent(kind=kind, payload=payload, future=future, at=at))
        return await future

    async def submit_command(self, text: str) -> CommandResult:
        """Queue a command line and wait for its result."""
        return await self._submit("command", text)

    async def submit_market(self, snapshot: MarketSnapshot, at: Optional[datetime] = None) -> ReconcileReport:
        """Queue a fetched snapshot for reconciliation and wait for the report."""
        return await self._submit("market", snapshot, at)

    async def _run(self) -> None:
        while True:
            intent = await self._queue.get()
            if intent is _STOP:
                break
            try:
                if intent.kind == "command":
                    result = await self._apply_command(intent.payload)
                else:
                    result = self._apply_market(intent.payload, intent.at)
            except Exception as e:
                logger.error("[ENGINE] %s intent failed: %s", intent.kind, e, exc_info=True)
                if not intent.future.done():
                    intent.future.set_exception(e)
                continue
            if not intent.future.done():
                intent.future.set_result(result)

    async def _apply_command(self, text: str) -> CommandResult:
        try:
            outcome = commands.execute(self.store, text)
        except (CommandSyntaxError, ValidationError) as e:
            logger.info("[ENGINE] Command rejected: %s", e)
            self.status.last_message = str(e)
            return CommandResult(ok=False, message=str(e))

        self.status.commands_applied += 1
        result = CommandResult(ok=True, message=outcome.message, outcome=outcome)
        if outcome.changed:
            try:
                await self._flush()
                result.persisted = True
            except PersistenceError as e:
                result.message = f"{outcome.message} (not saved: {e})"
        self.status.last_message = result.message
        return result

    def _apply_market(self, snapshot: MarketSnapshot, at: Optional[datetime]) -> ReconcileReport:
        report = reconcile(self.store, snapshot, at)
        self.status.merges_applied += 1
        self.status.last_update = report.at
        self.status.last_report = report
        return report

    async def _flush(self) -> None:
        """Write the current tokens to the config file off the event loop."""
        if self.persistence is None:
            return
        self.config = config_with_tokens(self.config, self.store.get_all())
        try:
            await asyncio.to_thread(self.persistence.save, self.config)
        except PersistenceError as e:
            self.status.persist_error = str(e)
            logger.error("[ENGINE] Failed to persist config: %s", e)
            raise
        self.status.persist_error = None
