import logging
import queue
import sys
import time
from datetime import datetime, timezone
from typing import Any

from rich.markup import escape
from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container, VerticalScroll
from textual.widgets import Footer, Header, Input, Static

from ethscope import __version__, actions, views
from ethscope.config import Settings, load_settings
from ethscope.exceptions import ConfigError
from ethscope.logging_config import setup_logging
from ethscope.network import InitialSetup, Network, Worker
from ethscope.route import ActiveBlock
from ethscope.services.explorer import ExplorerClient
from ethscope.services.rpc import RpcClient
from ethscope.state import AppState, SharedState
from ethscope.widget import spinner_frame

logger = logging.getLogger(__name__)


class StatusBar(Static):
    def __init__(self) -> None:
        super().__init__(id="status-bar")
        self.endpoint = "-"
        self.loading = False
        self.depth = 1
        self.last_error = "-"
        self.last_update = "-"

    def render(self) -> Text:
        spinner = f"{spinner_frame(int(time.time() * 1000))} Loading" if self.loading else "Idle"
        return Text(
            f"{spinner} | RPC: {self.endpoint} | Depth: {self.depth} | "
            f"Last error: {self.last_error} | Updated: {self.last_update}"
        )


class CardPanel(Static):
    def __init__(self, title: str, accent_class: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.title = title
        self.border_title = title
        self.lines: list[str] = []
        self.add_class("card")
        self.add_class(accent_class)

    def update_lines(self, lines: list[str]) -> None:
        self.lines = lines
        self.update(self.render())

    def render(self) -> str:
        return "\n".join(self.lines) if self.lines else "... loading"


class ScrollPanel(VerticalScroll):
    """Bordered pane with a single text body; used for both side lists and the main view."""

    def __init__(self, title: str, accent_class: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.border_title = title
        self.border_title_align = ("left", "top")
        self.add_class("card")
        self.add_class(accent_class)
        self._content = Static("... loading")

    def compose(self) -> ComposeResult:
        yield self._content

    def update_text(self, text: Text, subtitle: str | None = None) -> None:
        self._content.update(text)
        if subtitle is not None:
            self.border_subtitle = subtitle
            self.border_subtitle_align = ("right", "top")


class EthscopeApp(App):
    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("s", "focus_search", "Search"),
        ("1", "focus_pane('latest_blocks')", "Blocks"),
        ("2", "focus_pane('latest_transactions')", "Transactions"),
        ("j", "move(1)", "Down"),
        ("k", "move(-1)", "Up"),
        ("down", "move(1)", ""),
        ("up", "move(-1)", ""),
        ("enter", "select", "Open"),
        ("ctrl+p", "back", "Back"),
        ("escape", "back", ""),
        ("r", "reload", "Reload"),
    ]

    CSS = """
    Screen {
        layout: vertical;
    }
    #search {
        height: 3;
        border: round #666;
    }
    #search.active {
        border: round #7fd4ff;
    }
    #body {
        layout: horizontal;
        height: 1fr;
    }
    #sidebar {
        layout: vertical;
        width: 2fr;
        height: 1fr;
    }
    #statistics {
        height: 9;
    }
    #latest-blocks {
        height: 1fr;
    }
    #latest-transactions {
        height: 1fr;
    }
    #main {
        width: 3fr;
        height: 1fr;
    }
    #status-bar {
        height: 1;
    }
    .card {
        padding: 0 1;
        border: round #666;
    }
    .card.active {
        border: round #7fd4ff;
    }
    .card.blocks {
        color: #e6f4ff;
    }
    .card.transactions {
        color: #f1e6ff;
    }
    .card.statistics {
        color: #e6ffff;
    }
    .card.main {
        color: #e9ffe9;
    }
    """

    def __init__(self, settings: Settings) -> None:
        super().__init__()
        self.settings = settings
        self.io_queue: "queue.Queue[Any]" = queue.Queue()
        self.shared = SharedState(AppState(self.io_queue))
        self.rpc = RpcClient(settings)
        self.explorer = ExplorerClient(settings)
        self.network = Network(self.shared, self.rpc, self.explorer, settings.batch_size)
        self.worker = Worker(self.network, self.io_queue)
        self.title = f"ethscope {__version__}"
        self.sub_title = settings.endpoint

        self.search_input = Input(
            placeholder="Block number, transaction hash, address or ENS name",
            id="search",
        )
        self.statistics_panel = CardPanel("Statistics", "statistics", id="statistics")
        self.blocks_panel = ScrollPanel("[1] Latest Blocks", "blocks", id="latest-blocks")
        self.transactions_panel = ScrollPanel(
            "[2] Latest Transactions", "transactions", id="latest-transactions"
        )
        self.main_panel = ScrollPanel("Welcome", "main", id="main")
        self.status_bar = StatusBar()
        self.status_bar.endpoint = settings.endpoint

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield self.search_input
        with Container(id="body"):
            with Container(id="sidebar"):
                yield self.statistics_panel
                yield self.blocks_panel
                yield self.transactions_panel
            yield self.main_panel
        yield self.status_bar
        yield Footer()

    async def on_mount(self) -> None:
        self.worker.start()
        if not self.settings.explorer_enabled:
            self.notify(
                "ETHERSCAN_API_KEY is not set: prices, gas and contract data are disabled.",
                severity="warning",
            )
        with self.shared as state:
            state.dispatch(InitialSetup(self._rows()))
        self.set_focus(None)
        self.redraw()
        self.set_interval(0.25, self.redraw)

    async def on_unmount(self) -> None:
        self.worker.stop()

    def _rows(self) -> int:
        return actions.visible_rows(self.size.height)

    def redraw(self) -> None:
        with self.shared as state:
            actions.sync_detail(state)
            route = state.current_route()
            items = actions.detail_items(route)
            stats = views.statistics_lines(state.statistics)
            blocks = views.latest_blocks_text(state)
            transactions = views.latest_transactions_text(state)
            main_title = views.main_title(route)
            main = views.main_text(state, items)
            errors = state.drain_errors()
            loading = state.is_loading
            depth = state.routes.depth
            last_error = state.last_error
            block_count = len(state.latest_blocks) if state.latest_blocks is not None else None
            tx_count = len(state.latest_transactions) if state.latest_transactions is not None else None

        active = route.active_block
        self.statistics_panel.update_lines(stats)
        self.blocks_panel.update_text(blocks, str(block_count) if block_count is not None else "")
        self.transactions_panel.update_text(transactions, str(tx_count) if tx_count is not None else "")
        self.main_panel.border_title = escape(main_title)
        self.main_panel.update_text(main)
        self.search_input.set_class(active is ActiveBlock.SEARCH_BAR, "active")
        self.blocks_panel.set_class(active is ActiveBlock.LATEST_BLOCKS, "active")
        self.transactions_panel.set_class(active is ActiveBlock.LATEST_TRANSACTIONS, "active")
        self.main_panel.set_class(active is ActiveBlock.MAIN, "active")

        for message in errors:
            self.notify(escape(message), severity="error", timeout=6)

        self.status_bar.loading = loading
        self.status_bar.depth = depth
        self.status_bar.last_error = last_error or "-"
        self.status_bar.last_update = datetime.now(timezone.utc).strftime("%H:%M:%S UTC")
        self.status_bar.refresh()

    def action_focus_search(self) -> None:
        with self.shared as state:
            actions.focus(state, ActiveBlock.SEARCH_BAR)
        self.search_input.focus()
        self.redraw()

    def action_focus_pane(self, pane: str) -> None:
        with self.shared as state:
            actions.focus(state, ActiveBlock[pane.upper()])
        self.set_focus(None)
        self.redraw()

    def action_move(self, step: int) -> None:
        with self.shared as state:
            actions.move(state, step)
        self.redraw()

    def action_select(self) -> None:
        with self.shared as state:
            actions.select(state)
        self.redraw()

    def action_back(self) -> None:
        if self.search_input.has_focus:
            with self.shared as state:
                actions.focus(state, ActiveBlock.LATEST_BLOCKS)
            self.set_focus(None)
        else:
            with self.shared as state:
                actions.back(state)
        self.redraw()

    def action_reload(self) -> None:
        with self.shared as state:
            actions.reload(state, self._rows())
        self.redraw()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input is not self.search_input:
            return
        with self.shared as state:
            actions.submit_search(state, event.value)
            searching = state.current_route().active_block is ActiveBlock.MAIN
        if searching:
            self.search_input.value = ""
            self.set_focus(None)
        self.redraw()


def run() -> None:
    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"ethscope: {e}", file=sys.stderr)
        sys.exit(2)
    log_file = setup_logging(settings)
    logger.info("ethscope %s starting against %s (log: %s)", __version__, settings.endpoint, log_file)
    EthscopeApp(settings).run()
