"""
Textual TUI for CoinWatch.

Features:
- Watchlist, Portfolio and Market tabs
- Sortable tables (s cycles the column, d flips the direction)
- Command line (e) for add / rm commands
- Periodic redraw from read-only store snapshots
"""

from datetime import datetime, timezone
from typing import List, Optional

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import DataTable, Header, Input, Static

from apps.dashboard import panels
from core.engine import CommandResult, TrackerEngine
from core.errors import FetchError
from core.logging_utils import get_logger
from core.models import FearGreedPoint, TrackedToken, summarize_fear_greed
from core.pnl_engine import summarize_portfolio
from core.sort_engine import View
from core.view_state import InputMode, Intent, Tab, TAB_ORDER, ViewState
from datafeeds.coinmarketcap import CoinMarketCapClient
from datafeeds.refresh_scheduler import RefreshScheduler, RefreshState

logger = get_logger(__name__)

SHUTTING_DOWN = "Shutting down, command not applied"


async def submit_command_text(engine: TrackerEngine, text: str) -> CommandResult:
    """Submit a command line; a stopped engine yields a failed result."""
    if not engine.running:
        return CommandResult(ok=False, message=SHUTTING_DOWN)
    try:
        return await engine.submit_command(text)
    except RuntimeError:
        # Engine stopped while the command was being queued
        return CommandResult(ok=False, message=SHUTTING_DOWN)


class TabBar(Static):
    """Tab titles with the active one highlighted."""

    def __init__(self, view_state: ViewState, **kwargs):
        super().__init__(**kwargs)
        self.view_state = view_state

    def render(self) -> Text:
        text = Text()
        for i, tab in enumerate(TAB_ORDER):
            if i:
                text.append(" │ ", style="dim")
            style = "bold yellow" if tab == self.view_state.tab else "white"
            text.append(tab.value, style=style)
        return text


class StatusBar(Static):
    """Bottom status line: refresh state and last command result."""

    def __init__(self, engine: TrackerEngine, scheduler: Optional[RefreshScheduler], **kwargs):
        super().__init__(**kwargs)
        self.engine = engine
        self.scheduler = scheduler

    def render(self) -> Text:
        text = Text()
        state = self.scheduler.state if self.scheduler else RefreshState.IDLE
        if state == RefreshState.FETCHING:
            text.append("⟳ Fetching", style="cyan")
        elif state == RefreshState.FAILED_BACKOFF:
            text.append("✗ Fetch failed", style="red")
        else:
            text.append("● Idle", style="green")
        text.append(f" │ {len(self.engine.store)} tokens", style="dim")
        if self.engine.status.persist_error:
            text.append(f" │ Save failed: {self.engine.status.persist_error}", style="red")
        if self.engine.status.last_message:
            text.append(f" │ {self.engine.status.last_message}")
        text.append(f" │ {datetime.now(timezone.utc).strftime('%H:%M:%S')} UTC", style="dim")
        return text


class TrackerDashboard(App):
    """Main Textual application."""

    CSS = """
    #tabs { height: 1; padding: 0 1; }
    #top { height: auto; max-height: 12; border: solid yellow; padding: 0 1; }
    #content { height: 1fr; border: solid cyan; }
    #market { padding: 0 1; }
    #help { height: 1; }
    #status { height: 1; background: $surface; padding: 0 1; }
    #command { display: none; }
    #command.editing { display: block; }
    DataTable { height: 1fr; }
    """

    BINDINGS = [
        Binding("q", "intent('quit')", "Quit"),
        Binding("j,down", "intent('next_row')", "Down", show=False),
        Binding("k,up", "intent('previous_row')", "Up", show=False),
        Binding("tab", "intent('next_tab')", "Switch View", priority=True),
        Binding("s", "intent('cycle_sort')", "Sort"),
        Binding("d", "intent('toggle_sort_direction')", "Direction"),
        Binding("r", "intent('refresh')", "Refresh"),
        Binding("e", "intent('enter_command')", "Edit"),
        Binding("escape", "intent('exit_command')", "Cancel", show=False),
    ]

    def __init__(
        self,
        engine: TrackerEngine,
        scheduler: Optional[RefreshScheduler] = None,
        client: Optional[CoinMarketCapClient] = None,
        fear_greed_limit: str = "30",
    ):
        super().__init__()
        self.engine = engine
        self.scheduler = scheduler
        self.client = client
        self.fear_greed_limit = fear_greed_limit
        self.view_state = ViewState()
        self.fear_greed: List[FearGreedPoint] = []
        self._rows: List[TrackedToken] = []
        self._shutting_down = False

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield TabBar(self.view_state, id="tabs")
        yield Static(id="top")
        yield Container(
            DataTable(id="table", cursor_type="row", zebra_stripes=True),
            Static(id="market"),
            id="content",
        )
        yield Static(id="help")
        yield Input(placeholder="add <name> -w | -p <amount> <price> | -wp ...  /  rm <name> -w | -p | -wp", id="command")
        yield StatusBar(self.engine, self.scheduler, id="status")

    async def on_mount(self):
        table = self.query_one("#table", DataTable)
        table.can_focus = False
        self.engine.start()
        if self.scheduler:
            await self.scheduler.start()
        if self.client:
            self.run_worker(self._load_fear_greed(), exclusive=True)
        self.set_interval(0.5, self.refresh_all)
        self.refresh_all()

    async def _load_fear_greed(self):
        try:
            self.fear_greed = await self.client.fetch_fear_greed(self.fear_greed_limit)
        except FetchError as e:
            logger.warning("[TUI] Fear & greed unavailable: %s", e)

    # Rendering

    def _current_rows(self) -> List[TrackedToken]:
        sort = self.view_state.sort
        if sort is None:
            return []
        return sort.apply(self.engine.store.get_all())

    def refresh_all(self):
        """Redraw every panel from a fresh store snapshot."""
        vs = self.view_state
        tokens = self.engine.store.get_all()
        last_error = self.scheduler.last_error if self.scheduler else None
        last_update = self.engine.status.last_update

        top = self.query_one("#top", Static)
        if vs.tab == Tab.PORTFOLIO:
            top.update(panels.render_portfolio_summary(summarize_portfolio(tokens)))
        else:
            top.update(panels.render_fear_greed(summarize_fear_greed(self.fear_greed)))

        table = self.query_one("#table", DataTable)
        market = self.query_one("#market", Static)
        content = self.query_one("#content", Container)

        if vs.view is None:
            table.display = False
            market.display = True
            market.update(panels.render_fear_greed_history(self.fear_greed))
            content.border_title = "Market"
        else:
            table.display = True
            market.display = False
            self._rows = vs.sort.apply(tokens)
            row_builder = panels.watchlist_row if vs.view == View.WATCHLIST else panels.portfolio_row
            label = "Crypto Prices" if vs.view == View.WATCHLIST else "Portfolio"
            content.border_title = panels.render_update_title(label, last_update, last_error)

            table.clear(columns=True)
            table.add_columns(*panels.header_labels(vs.sort))
            for token in self._rows:
                table.add_row(*row_builder(token), key=token.identifier)
            if vs.selected is not None and self._rows:
                vs.selected = min(vs.selected, len(self._rows) - 1)
                table.move_cursor(row=vs.selected)

        self.query_one("#help", Static).update(panels.render_help(vs.input_mode))
        self.query_one(TabBar).refresh()
        self.query_one(StatusBar).refresh()

    # Intents

    async def action_intent(self, name: str):
        intent = Intent(name)
        vs = self.view_state
        if vs.input_mode == InputMode.EDITING and intent not in (Intent.EXIT_COMMAND, Intent.NEXT_TAB):
            return

        vs.handle(intent, row_count=len(self._current_rows()))
        command = self.query_one("#command", Input)

        if intent == Intent.ENTER_COMMAND:
            command.value = ""
            command.add_class("editing")
            command.focus()
        elif intent == Intent.EXIT_COMMAND:
            command.value = ""
            command.remove_class("editing")
        elif vs.take_refresh_request() and self.scheduler:
            if not self.scheduler.request_refresh():
                self.notify("Refresh already in progress")
        elif vs.quit_requested:
            await self.stop_tracker()
            return
        self.refresh_all()

    async def on_input_submitted(self, event: Input.Submitted):
        text = event.value.strip()
        event.input.value = ""
        event.input.remove_class("editing")
        self.view_state.handle(Intent.EXIT_COMMAND)
        if text:
            result = await submit_command_text(self.engine, text)
            if not result.ok:
                self.notify(result.message, severity="error")
            elif result.outcome and not result.outcome.removed and result.outcome.changed and self.scheduler:
                # Pull prices for a newly added token right away
                self.scheduler.request_refresh()
        self.refresh_all()

    async def stop_tracker(self):
        """Stop fetching, let pending writes finish, then exit."""
        if self._shutting_down:
            return
        self._shutting_down = True
        if self.scheduler:
            await self.scheduler.stop()
        await self.engine.stop()
        if self.client:
            await self.client.close()
        self.exit()


async def run_dashboard_async(
    engine: TrackerEngine,
    scheduler: Optional[RefreshScheduler] = None,
    client: Optional[CoinMarketCapClient] = None,
    fear_greed_limit: str = "30",
):
    """Run the TUI on the current event loop."""
    app = TrackerDashboard(engine, scheduler, client, fear_greed_limit)
    await app.run_async()
    # Window closed without the quit key (e.g. ctrl+c)
    await app.stop_tracker()
