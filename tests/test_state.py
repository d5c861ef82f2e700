import queue
import threading

import pytest

from ethscope.network import GetBlock, GetStatistics
from ethscope.route import ActiveBlock, Route, Searching
from ethscope.state import MAX_PENDING_ERRORS, AppState, SharedState


class TestAppState:
    @pytest.fixture
    def io_queue(self):
        return queue.Queue()

    @pytest.fixture
    def state(self, io_queue):
        return AppState(io_queue)

    def test_dispatch_stamps_generation_and_counts_pending(self, state, io_queue):
        state.push_route(Route(Searching("1"), ActiveBlock.MAIN))
        state.dispatch(GetBlock(1, is_searching=True))
        state.dispatch(GetStatistics())

        assert state.pending == 2
        assert state.is_loading
        first = io_queue.get_nowait()
        assert first == GetBlock(1, is_searching=True, generation=1)
        assert io_queue.get_nowait().generation == 1

    def test_finish_command_never_goes_negative(self, state):
        state.dispatch(GetStatistics())
        state.finish_command()
        state.finish_command()
        assert state.pending == 0
        assert not state.is_loading

    def test_dispatch_without_worker_reports(self):
        state = AppState()
        state.dispatch(GetStatistics())
        assert state.pending == 0
        assert state.drain_errors() == ["No fetch worker is running"]

    def test_navigation_bumps_generation(self, state):
        state.push_route(Route(Searching("x"), ActiveBlock.MAIN))
        state.replace_route(Route(Searching("y"), ActiveBlock.MAIN))
        state.pop_route()
        assert state.generation == 3

    def test_pop_at_root_and_focus_change_keep_generation(self, state):
        state.pop_route()
        state.change_active_block(ActiveBlock.LATEST_TRANSACTIONS)
        assert state.generation == 0
        assert state.current_route().active_block is ActiveBlock.LATEST_TRANSACTIONS

    def test_errors_are_capped_and_drained(self, state):
        for i in range(MAX_PENDING_ERRORS + 5):
            state.report_error(f"error {i}")
        errors = state.drain_errors()
        assert len(errors) == MAX_PENDING_ERRORS
        assert errors[-1] == f"error {MAX_PENDING_ERRORS + 4}"
        assert state.last_error == errors[-1]
        assert state.drain_errors() == []


class TestSharedState:
    def test_lock_is_exclusive(self):
        shared = SharedState()
        entered = threading.Event()

        def writer():
            with shared as state:
                state.pending += 1
                entered.set()

        with shared as state:
            thread = threading.Thread(target=writer)
            thread.start()
            assert not entered.wait(0.1)
            assert state.pending == 0
        thread.join(1)
        assert entered.is_set()
        with shared as state:
            assert state.pending == 1
