import logging
import queue
import threading
from dataclasses import replace
from typing import Any, Optional

from ethscope.ens import EnsCache
from ethscope.models import Block, Statistics, TxWithReceipt
from ethscope.route import ActiveBlock, NavigationStack, Route
from ethscope.widget import SelectableList

logger = logging.getLogger(__name__)

MAX_PENDING_ERRORS = 20


class AppState:
    """Everything the renderer reads.

    The UI thread edits navigation (push/pop/active block), the detail cursor
    and drains errors. The fetch worker writes the ENS cache, the latest
    lists, statistics and result frames, and clears loading.
    """

    def __init__(self, io_queue: Optional["queue.Queue[Any]"] = None) -> None:
        self.routes = NavigationStack()
        self.ens = EnsCache()
        self.statistics = Statistics()
        self.latest_blocks: Optional[SelectableList[Block]] = None
        self.latest_transactions: Optional[SelectableList[TxWithReceipt]] = None
        self.detail: SelectableList[str] = SelectableList([], header_size=0)
        self.detail_for: Optional[object] = None
        self.pending = 0
        self.generation = 0
        self.errors: list[str] = []
        self.last_error: Optional[str] = None
        self._io_queue = io_queue

    @property
    def is_loading(self) -> bool:
        return self.pending > 0

    def current_route(self) -> Route:
        return self.routes.current()

    def push_route(self, route: Route) -> None:
        """User-driven push. Results of commands sent before this are stale."""
        self.routes.push(route)
        self.generation += 1

    def replace_route(self, route: Route) -> None:
        self.routes.replace_current(route)
        self.generation += 1

    def pop_route(self) -> None:
        if self.routes.pop() is not None:
            self.generation += 1

    def change_active_block(self, active_block: ActiveBlock) -> None:
        self.routes.change_active_block(active_block)

    def dispatch(self, event: Any) -> None:
        """Queue a fetch command for the worker. Never blocks."""
        if self._io_queue is None:
            self.report_error("No fetch worker is running")
            return
        self.pending += 1
        self._io_queue.put(replace(event, generation=self.generation))
        logger.debug("dispatched %s (generation %d)", type(event).__name__, self.generation)

    def finish_command(self) -> None:
        self.pending = max(0, self.pending - 1)

    def report_error(self, message: str) -> None:
        self.last_error = message
        self.errors.append(message)
        del self.errors[:-MAX_PENDING_ERRORS]

    def drain_errors(self) -> list[str]:
        errors, self.errors = self.errors, []
        return errors

    def reset_statistics(self) -> None:
        self.statistics = Statistics()


class SharedState:
    """AppState behind one exclusive lock: ``with shared as state: ...``."""

    def __init__(self, state: AppState | None = None) -> None:
        self._state = state or AppState()
        self._lock = threading.Lock()

    def __enter__(self) -> AppState:
        self._lock.acquire()
        return self._state

    def __exit__(self, *exc_info: object) -> None:
        self._lock.release()
