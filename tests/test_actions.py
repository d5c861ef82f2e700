import queue

import pytest

from conftest import address, build_block, tx_hash
from ethscope import actions
from ethscope.models import BlockWithReceipts, TxWithReceipt
from ethscope.network import (
    GetBlock,
    GetBlockByHash,
    GetDecodedInputData,
    GetEnsNames,
    GetLatestBlocks,
    GetLatestTransactions,
    GetNameOrAddressInfo,
    GetStatistics,
    GetTransactionReceipts,
    GetTransactionWithReceipt,
)
from ethscope.route import (
    ActiveBlock,
    BlockTransactionsView,
    BlockView,
    InputDataView,
    Route,
    Searching,
    TransactionView,
)
from ethscope.state import AppState
from ethscope.widget import SelectableList


@pytest.fixture
def io_queue():
    return queue.Queue()


@pytest.fixture
def state(io_queue):
    return AppState(io_queue)


def drain(io_queue):
    events = []
    while not io_queue.empty():
        events.append(io_queue.get_nowait())
    return events


class TestSubmitSearch:
    def test_block_number(self, state, io_queue):
        actions.submit_search(state, "  17000000 ")
        assert state.current_route() == Route(Searching("17000000"), ActiveBlock.MAIN)
        assert drain(io_queue) == [GetBlock(17000000, is_searching=True, generation=1)]

    def test_transaction_hash_is_lowercased(self, state, io_queue):
        query = "0x" + "AB" * 32
        actions.submit_search(state, query)
        (event,) = drain(io_queue)
        assert event == GetTransactionWithReceipt("0x" + "ab" * 32, is_searching=True, generation=1)

    @pytest.mark.parametrize("query", [address(5), "vitalik.eth"])
    def test_address_or_name(self, state, io_queue, query):
        actions.submit_search(state, query)
        (event,) = drain(io_queue)
        assert event == GetNameOrAddressInfo(query, is_searching=True, generation=1)

    def test_second_search_replaces_searching_frame(self, state, io_queue):
        actions.submit_search(state, "100")
        actions.submit_search(state, "99")
        assert state.routes.depth == 2
        assert state.current_route().id == Searching("99")
        assert drain(io_queue) == [
            GetBlock(100, is_searching=True, generation=1),
            GetBlock(99, is_searching=True, generation=2),
        ]

    def test_garbage_is_reported(self, state, io_queue):
        actions.submit_search(state, "hello")
        assert drain(io_queue) == []
        assert state.routes.depth == 1
        assert "hello" in state.last_error

    def test_blank_does_nothing(self, state, io_queue):
        actions.submit_search(state, "   ")
        assert drain(io_queue) == []
        assert state.errors == []


class TestMoveAndSelect:
    @pytest.fixture
    def blocks(self, state):
        state.latest_blocks = SelectableList([build_block(100), build_block(99)])
        return state.latest_blocks

    def test_moving_in_list_previews_without_stacking(self, state, blocks):
        actions.move(state, 1)
        assert state.routes.depth == 2
        assert state.current_route().id.payload.block.number == 100
        assert state.current_route().active_block is ActiveBlock.LATEST_BLOCKS

        actions.move(state, 1)
        assert state.routes.depth == 2
        assert state.current_route().id.payload.block.number == 99

        actions.move(state, 1)
        assert state.current_route().id.payload.block.number == 100

    def test_select_in_list_focuses_main(self, state, blocks):
        actions.move(state, -1)
        actions.select(state)
        top = state.current_route()
        assert state.routes.depth == 2
        assert isinstance(top.id, BlockView)
        assert top.active_block is ActiveBlock.MAIN

    def test_move_in_empty_list_is_noop(self, state):
        actions.move(state, 1)
        assert state.routes.depth == 1
        state.latest_blocks = SelectableList([])
        actions.move(state, 1)
        assert state.routes.depth == 1
        assert state.latest_blocks.selected is None

    def test_block_items(self, state, io_queue):
        block = build_block(80)
        state.push_route(Route(BlockView(BlockWithReceipts(block)), ActiveBlock.MAIN))
        assert actions.detail_items(state.current_route()) == [
            actions.TRANSACTIONS,
            actions.WITHDRAWALS,
            actions.FEE_RECIPIENT,
            actions.PARENT_HASH,
        ]

        actions.move(state, -1)
        assert state.detail.selected_item() == actions.TRANSACTIONS
        actions.move(state, -1)
        actions.select(state)
        assert drain(io_queue) == [GetBlockByHash(block.parent_hash, generation=1)]

        actions.move(state, -1)
        actions.select(state)
        assert drain(io_queue) == [GetNameOrAddressInfo(block.miner, generation=1)]

    def test_block_transactions_fetch_receipts(self, state, io_queue):
        payload = BlockWithReceipts(build_block(80))
        state.push_route(Route(BlockView(payload), ActiveBlock.MAIN))
        actions.move(state, 1)
        actions.select(state)
        assert state.current_route() == Route(BlockTransactionsView(payload), ActiveBlock.MAIN)
        assert drain(io_queue) == [GetTransactionReceipts(payload, generation=2)]

        actions.move(state, 1)
        actions.select(state)
        assert drain(io_queue) == [
            GetTransactionWithReceipt(payload.block.transactions[0].hash, generation=2)
        ]

    def test_transaction_input_data(self, state, io_queue):
        tx = TxWithReceipt(build_block(80).transactions[0], None)
        state.push_route(Route(TransactionView(tx), ActiveBlock.MAIN))
        assert actions.detail_items(state.current_route()) == [actions.FROM, actions.TO, actions.INPUT_DATA]

        actions.move(state, -1)
        actions.move(state, -1)
        actions.select(state)
        assert isinstance(state.current_route().id, InputDataView)
        assert drain(io_queue) == [GetDecodedInputData(tx, generation=2)]

    def test_transaction_without_input(self, state):
        tx = TxWithReceipt(build_block(80).transactions[1], None)
        assert actions.detail_items(Route(TransactionView(tx), ActiveBlock.MAIN)) == [actions.FROM, actions.TO]

    def test_detail_cursor_resets_on_new_view(self, state):
        state.push_route(Route(BlockView(BlockWithReceipts(build_block(80))), ActiveBlock.MAIN))
        actions.move(state, 1)
        assert state.detail.selected_item() == actions.TRANSACTIONS
        state.push_route(Route(BlockView(BlockWithReceipts(build_block(81))), ActiveBlock.MAIN))
        actions.sync_detail(state)
        assert state.detail.selected is None


class TestReloadAndBack:
    def test_reload_blocks_pane(self, state, io_queue):
        state.latest_blocks = SelectableList([build_block(1)])
        state.statistics.ethusd = 1.0
        state.ens.insert(address(1), "one.eth")
        actions.reload(state, 7)
        assert state.latest_blocks is None
        assert state.statistics.ethusd is None
        assert len(state.ens) == 0
        assert drain(io_queue) == [GetStatistics(), GetLatestBlocks(7)]
        assert state.pending == 2

    def test_reload_blocks_pane_resolves_transaction_names_again(self, state, io_queue):
        txs = build_block(1, tx_count=2).transactions
        state.latest_transactions = SelectableList([TxWithReceipt(tx, None) for tx in txs])
        state.ens.insert(address(1000), "sender.eth")
        actions.reload(state, 7)
        assert len(state.ens) == 0
        assert drain(io_queue) == [
            GetStatistics(),
            GetLatestBlocks(7),
            GetEnsNames((address(1000), address(2000), address(1001), address(2001))),
        ]
        assert state.pending == 3

    def test_reload_transactions_pane(self, state, io_queue):
        state.latest_transactions = SelectableList([])
        actions.focus(state, ActiveBlock.LATEST_TRANSACTIONS)
        actions.reload(state, 3)
        assert state.latest_transactions is None
        assert drain(io_queue) == [GetLatestTransactions(3)]

    def test_reload_elsewhere_does_nothing(self, state, io_queue):
        actions.focus(state, ActiveBlock.MAIN)
        actions.reload(state, 3)
        assert drain(io_queue) == []

    def test_back(self, state):
        state.push_route(Route(Searching(tx_hash(1)), ActiveBlock.MAIN))
        actions.back(state)
        actions.back(state)
        assert state.routes.depth == 1


@pytest.mark.parametrize("height,rows", [(40, 10), (24, 2), (10, 1), (0, 1)])
def test_visible_rows(height, rows):
    assert actions.visible_rows(height) == rows
