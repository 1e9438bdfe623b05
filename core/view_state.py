"""Dashboard session state driven by decoded keyboard intents."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from core.sort_engine import SortState, View


class Intent(Enum):
    NEXT_ROW = "next_row"
    PREVIOUS_ROW = "previous_row"
    NEXT_TAB = "next_tab"
    CYCLE_SORT = "cycle_sort"
    TOGGLE_SORT_DIRECTION = "toggle_sort_direction"
    REFRESH = "refresh"
    ENTER_COMMAND = "enter_command"
    EXIT_COMMAND = "exit_command"
    QUIT = "quit"


class Tab(Enum):
    WATCHLIST = "Watchlist"
    PORTFOLIO = "Portfolio"
    MARKET = "Market"


class InputMode(Enum):
    NORMAL = "normal"
    EDITING = "editing"


TAB_VIEWS: Dict[Tab, View] = {
    Tab.WATCHLIST: View.WATCHLIST,
    Tab.PORTFOLIO: View.PORTFOLIO,
}

TAB_ORDER = (Tab.WATCHLIST, Tab.PORTFOLIO, Tab.MARKET)


@dataclass
class ViewState:
    """Selected tab, row, per-view sort state and input mode."""
    tab: Tab = Tab.WATCHLIST
    selected: Optional[int] = None
    input_mode: InputMode = InputMode.NORMAL
    sorts: Dict[View, SortState] = field(default_factory=lambda: {
        view: SortState.default_for(view) for view in View
    })
    refresh_requested: bool = False
    quit_requested: bool = False

    @property
    def view(self) -> Optional[View]:
        """Sortable view behind the current tab (None for the market tab)."""
        return TAB_VIEWS.get(self.tab)

    @property
    def sort(self) -> Optional[SortState]:
        view = self.view
        return self.sorts[view] if view is not None else None

    def handle(self, intent: Intent, row_count: int = 0) -> None:
        """Apply one intent. Row movement wraps around ``row_count`` rows."""
        if intent == Intent.NEXT_ROW:
            self._move(1, row_count)
        elif intent == Intent.PREVIOUS_ROW:
            self._move(-1, row_count)
        elif intent == Intent.NEXT_TAB:
            index = TAB_ORDER.index(self.tab)
            self.tab = TAB_ORDER[(index + 1) % len(TAB_ORDER)]
            self.selected = None
        elif intent == Intent.CYCLE_SORT:
            if self.sort is not None:
                self.sort.cycle_column()
        elif intent == Intent.TOGGLE_SORT_DIRECTION:
            if self.sort is not None:
                self.sort.toggle_direction()
        elif intent == Intent.REFRESH:
            self.refresh_requested = True
        elif intent == Intent.ENTER_COMMAND:
            self.input_mode = InputMode.EDITING
        elif intent == Intent.EXIT_COMMAND:
            self.input_mode = InputMode.NORMAL
        elif intent == Intent.QUIT:
            self.quit_requested = True

    def _move(self, step: int, row_count: int) -> None:
        if row_count <= 0:
            self.selected = None
            return
        if self.selected is None:
            self.selected = 0
            return
        self.selected = (self.selected + step) % row_count

    def take_refresh_request(self) -> bool:
        requested = self.refresh_requested
        self.refresh_requested = False
        return requested
