"""User actions: each one edits navigation directly and/or dispatches one command.

All functions expect the caller to hold the shared state lock.
"""
from ethscope.models import BlockWithReceipts, tx_addresses
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
    is_address,
    is_tx_hash,
)
from ethscope.route import (
    ActiveBlock,
    AddressView,
    BlockTransactionsView,
    BlockView,
    BlockWithdrawalsView,
    InputDataView,
    Route,
    Searching,
    TransactionView,
)
from ethscope.state import AppState
from ethscope.widget import SelectableList

TRANSACTIONS = "Transactions"
WITHDRAWALS = "Withdrawals"
FEE_RECIPIENT = "Fee recipient"
PARENT_HASH = "Parent hash"
FROM = "From"
TO = "To"
INPUT_DATA = "Input data"
CONTRACT_SOURCE = "Contract source"
CONTRACT_ABI = "Contract ABI"

LIST_PANES = (ActiveBlock.LATEST_BLOCKS, ActiveBlock.LATEST_TRANSACTIONS)


def visible_rows(terminal_height: int) -> int:
    """How many latest blocks/transactions fit in one of the two side lists."""
    return max((terminal_height - 3 * 4) // 2 - 4, 1)


def detail_items(route: Route) -> list[str]:
    """Selectable rows of the main pane for a route."""
    view = route.id
    if isinstance(view, BlockView) and view.payload is not None:
        block = view.payload.block
        items = [TRANSACTIONS]
        if block.withdrawals is not None:
            items.append(WITHDRAWALS)
        if block.miner:
            items.append(FEE_RECIPIENT)
        items.append(PARENT_HASH)
        return items
    if isinstance(view, TransactionView) and view.payload is not None:
        tx = view.payload.transaction
        items = [FROM]
        if tx.to_address:
            items.append(TO)
        if tx.has_input:
            items.append(INPUT_DATA)
        return items
    if isinstance(view, BlockTransactionsView) and view.payload is not None:
        return [tx.hash for tx in view.payload.block.transactions]
    if isinstance(view, BlockWithdrawalsView) and view.payload is not None:
        return [str(w.index) for w in view.payload.block.withdrawals or ()]
    if isinstance(view, AddressView) and view.payload is not None:
        items = []
        if view.payload.contract_source is not None:
            items.append(CONTRACT_SOURCE)
        if view.payload.contract_abi is not None:
            items.append(CONTRACT_ABI)
        return items
    return []


def sync_detail(state: AppState) -> SelectableList[str]:
    """Reset the main pane cursor whenever a different view is on top."""
    route = state.current_route()
    if state.detail_for is not route.id:
        state.detail = SelectableList(detail_items(route), header_size=0)
        state.detail_for = route.id
    return state.detail


def submit_search(state: AppState, text: str) -> None:
    query = text.strip()
    if not query:
        return
    if query.isdigit():
        command = GetBlock(int(query), is_searching=True)
    elif is_tx_hash(query):
        command = GetTransactionWithReceipt(query.lower(), is_searching=True)
    elif is_address(query) or "." in query:
        command = GetNameOrAddressInfo(query, is_searching=True)
    else:
        state.report_error(f"Not a block number, hash, address or ENS name: {query}")
        return
    searching = Route(Searching(query), ActiveBlock.MAIN)
    if isinstance(state.current_route().id, Searching):
        state.replace_route(searching)
    else:
        state.push_route(searching)
    state.dispatch(command)


def focus(state: AppState, active_block: ActiveBlock) -> None:
    state.change_active_block(active_block)


def back(state: AppState) -> None:
    state.pop_route()


def _show(state: AppState, route: Route) -> None:
    """Push a view, or replace the top frame when it is a list preview of the same kind."""
    current = state.current_route()
    if current.active_block in LIST_PANES and current.same_view(route):
        state.replace_route(route)
    else:
        state.push_route(route)


def _list_route(state: AppState, active_block: ActiveBlock) -> Route | None:
    """Route for the selected item of a side list, focused on ``active_block``."""
    if state.current_route().active_block is ActiveBlock.LATEST_BLOCKS:
        if state.latest_blocks is None:
            return None
        block = state.latest_blocks.selected_item()
        if block is None:
            return None
        return Route(BlockView(BlockWithReceipts(block)), active_block)
    if state.latest_transactions is None:
        return None
    tx = state.latest_transactions.selected_item()
    if tx is None:
        return None
    return Route(TransactionView(tx), active_block)


def move(state: AppState, step: int) -> None:
    """Move the cursor of the focused pane by one row (``step`` is +1 or -1)."""
    active = state.current_route().active_block
    if active in LIST_PANES:
        items = state.latest_blocks if active is ActiveBlock.LATEST_BLOCKS else state.latest_transactions
        if items is None:
            return
        if step > 0:
            items.next()
        else:
            items.previous()
        route = _list_route(state, active)
        if route is not None:
            _show(state, route)
    elif active is ActiveBlock.MAIN:
        detail = sync_detail(state)
        if step > 0:
            detail.next()
        else:
            detail.previous()


def select(state: AppState) -> None:
    current = state.current_route()
    if current.active_block in LIST_PANES:
        route = _list_route(state, ActiveBlock.MAIN)
        if route is not None:
            _show(state, route)
        return
    if current.active_block is not ActiveBlock.MAIN:
        return

    item = sync_detail(state).selected_item()
    if item is None:
        return
    view = current.id
    if isinstance(view, BlockView) and view.payload is not None:
        block = view.payload.block
        if item == TRANSACTIONS:
            state.push_route(Route(BlockTransactionsView(view.payload), ActiveBlock.MAIN))
            if view.payload.receipts is None and block.transactions:
                state.dispatch(GetTransactionReceipts(view.payload))
        elif item == WITHDRAWALS:
            state.push_route(Route(BlockWithdrawalsView(view.payload), ActiveBlock.MAIN))
        elif item == FEE_RECIPIENT and block.miner:
            state.dispatch(GetNameOrAddressInfo(block.miner))
        elif item == PARENT_HASH:
            state.dispatch(GetBlockByHash(block.parent_hash))
    elif isinstance(view, BlockTransactionsView):
        state.dispatch(GetTransactionWithReceipt(item))
    elif isinstance(view, TransactionView) and view.payload is not None:
        tx = view.payload.transaction
        if item == FROM:
            state.dispatch(GetNameOrAddressInfo(tx.from_address))
        elif item == TO and tx.to_address:
            state.dispatch(GetNameOrAddressInfo(tx.to_address))
        elif item == INPUT_DATA:
            state.push_route(Route(InputDataView(view.payload), ActiveBlock.MAIN))
            state.dispatch(GetDecodedInputData(view.payload))


def reload(state: AppState, n: int) -> None:
    """Drop the focused list (and its derived caches) and fetch it again."""
    active = state.current_route().active_block
    if active is ActiveBlock.LATEST_BLOCKS:
        state.reset_statistics()
        state.ens.clear()
        state.latest_blocks = None
        state.dispatch(GetStatistics())
        state.dispatch(GetLatestBlocks(n))
        if state.latest_transactions is not None and state.latest_transactions.items:
            state.dispatch(GetEnsNames(tuple(tx_addresses(state.latest_transactions.items))))
    elif active is ActiveBlock.LATEST_TRANSACTIONS:
        state.latest_transactions = None
        state.dispatch(GetLatestTransactions(n))
