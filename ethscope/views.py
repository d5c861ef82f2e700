"""Text for each pane, built from a locked AppState."""
import time
from datetime import datetime, timezone
from typing import Optional

from rich.text import Text

from ethscope.ens import EnsCache
from ethscope.models import (
    AddressInfo,
    BlockWithReceipts,
    Statistics,
    TxWithReceipt,
    format_ether,
    format_gwei,
)
from ethscope.route import (
    AddressView,
    BlockTransactionsView,
    BlockView,
    BlockWithdrawalsView,
    InputDataView,
    Route,
    Searching,
    TransactionView,
    Welcome,
)
from ethscope.state import AppState
from ethscope.widget import SelectableList, spinner_frame

SELECTED_STYLE = "reverse"
MAX_SOURCE_LINES = 200

WELCOME = """\
Welcome to ethscope

  s        search a block number, transaction hash, address or ENS name
  1 / 2    focus latest blocks / latest transactions
  j / k    move down / up
  enter    open the selected item
  ctrl+p   go back
  r        reload the focused list
  q        quit
"""


def format_optional(value: object, empty: str = "-") -> str:
    if value is None:
        return empty
    if isinstance(value, str) and not value.strip():
        return empty
    return str(value)


def format_timestamp(value: object) -> str:
    try:
        ts = int(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return "-"
    if ts <= 0:
        return "-"
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def format_age(timestamp: int, now: Optional[float] = None) -> str:
    seconds = max(0, int((now if now is not None else time.time()) - timestamp))
    if seconds < 60:
        return f"{seconds}s ago"
    minutes, seconds = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m {seconds}s ago"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m ago"


def short_hash(value: object, length: int = 12) -> str:
    if not isinstance(value, str) or not value:
        return "-"
    if len(value) <= length:
        return value
    return f"{value[:length]}…"


def fit_column(value: str, width: int) -> str:
    if len(value) <= width:
        return value.ljust(width)
    if width <= 1:
        return value[:width]
    return f"{value[: width - 1]}…"


def _rows(header: str, lines: list[str], selected: Optional[int]) -> Text:
    text = Text()
    text.append(header + "\n", style="bold")
    for index, line in enumerate(lines):
        text.append(line + "\n", style=SELECTED_STYLE if index == selected else "")
    return text


def statistics_lines(stats: Statistics) -> list[str]:
    def block_line(label: str, block: object) -> str:
        number = getattr(block, "number", None)
        return f"{label}: {format_optional(number)}"

    price = f"${stats.ethusd:,.2f}" if stats.ethusd is not None else "-"
    base_fee = f"{stats.suggested_base_fee:.2f} Gwei" if stats.suggested_base_fee is not None else "-"
    gas = f"{stats.med_gas_price:.2f} Gwei" if stats.med_gas_price is not None else "-"
    return [
        f"ETH price: {price}",
        f"Nodes: {format_optional(stats.node_count)}",
        f"Suggested base fee: {base_fee}",
        f"Median gas price: {gas}",
        block_line("Last safe block", stats.last_safe_block),
        block_line("Last finalized block", stats.last_finalized_block),
    ]


def latest_blocks_text(state: AppState, now: Optional[float] = None) -> Text:
    blocks = state.latest_blocks
    if blocks is None:
        return Text("... loading")
    header = f"{'Number':<10} {'Fee recipient':<20} {'Txs':>5} {'Gas used':>9}  Age"
    lines = [
        f"{block.number:<10} {fit_column(state.ens.display(block.miner, 20), 20)} "
        f"{len(block.transactions):>5} {block.gas_used_pct:>8.1f}%  {format_age(block.timestamp, now)}"
        for block in blocks.items
    ]
    return _rows(header, lines, blocks.selected_item_index())


def latest_transactions_text(state: AppState) -> Text:
    transactions = state.latest_transactions
    if transactions is None:
        return Text("... loading")
    header = f"{'Hash':<14} {'From':<20} {'To':<20} {'Value':>16}"
    lines = []
    for tx in transactions.items:
        t = tx.transaction
        lines.append(
            f"{fit_column(short_hash(t.hash), 14)} {fit_column(state.ens.display(t.from_address, 20), 20)} "
            f"{fit_column(state.ens.display(t.to_address, 20), 20)} {format_ether(t.value, 4):>16}"
        )
    return _rows(header, lines, transactions.selected_item_index())


def _items_text(lines: list[str], items: list[str], detail: SelectableList[str]) -> Text:
    text = Text("\n".join(lines) + "\n\n")
    selected = detail.selected_item_index()
    for index, item in enumerate(items):
        text.append(f"▸ {item}\n", style=SELECTED_STYLE if index == selected else "")
    return text


def block_text(payload: BlockWithReceipts, ens: EnsCache, items: list[str], detail: SelectableList[str]) -> Text:
    block = payload.block
    lines = [
        f"Block height: {block.number}",
        f"Hash: {block.hash}",
        f"Timestamp: {format_timestamp(block.timestamp)} ({format_age(block.timestamp)})",
        f"Transactions: {len(block.transactions)}",
        f"Withdrawals: {format_optional(len(block.withdrawals) if block.withdrawals is not None else None)}",
        f"Fee recipient: {ens.display(block.miner)}",
        f"Size: {format_optional(block.size)} bytes",
        f"Gas used: {block.gas_used:,} ({block.gas_used_pct:.2f}%)",
        f"Gas limit: {block.gas_limit:,}",
        f"Base fee per gas: {format_gwei(block.base_fee_per_gas)}",
        f"Burnt fees: {format_ether(block.burnt_fees)}",
        f"Extra data: {block.extra_data}",
        f"Parent hash: {block.parent_hash}",
    ]
    return _items_text(lines, items, detail)


def block_transactions_text(payload: BlockWithReceipts, ens: EnsCache, detail: SelectableList[str]) -> Text:
    header = f"{'Hash':<14} {'From':<20} {'To':<20} {'Value':>16} {'Status':>7}"
    lines = []
    for tx in payload.block.transactions:
        receipt = payload.receipt_for(tx.hash)
        if payload.receipts is None:
            status = "…"
        elif receipt is None or receipt.status is None:
            status = "-"
        else:
            status = "ok" if receipt.status == 1 else "failed"
        lines.append(
            f"{fit_column(short_hash(tx.hash), 14)} {fit_column(ens.display(tx.from_address, 20), 20)} "
            f"{fit_column(ens.display(tx.to_address, 20), 20)} {format_ether(tx.value, 4):>16} {status:>7}"
        )
    if not lines:
        return Text("No transactions in this block.")
    return _rows(header, lines, detail.selected_item_index())


def block_withdrawals_text(payload: BlockWithReceipts, ens: EnsCache, detail: SelectableList[str]) -> Text:
    withdrawals = payload.block.withdrawals or ()
    if not withdrawals:
        return Text("No withdrawals in this block.")
    header = f"{'Index':<10} {'Validator':<10} {'Recipient':<44} Amount"
    lines = [
        f"{w.index:<10} {w.validator_index:<10} {fit_column(ens.display(w.address), 44)} "
        f"{w.amount_gwei / 10**9:.6f} ETH"
        for w in withdrawals
    ]
    return _rows(header, lines, detail.selected_item_index())


def transaction_text(payload: TxWithReceipt, ens: EnsCache, items: list[str], detail: SelectableList[str]) -> Text:
    tx = payload.transaction
    receipt = payload.receipt
    status = "-"
    if receipt is not None and receipt.status is not None:
        status = "Success" if receipt.status == 1 else "Failure"
    lines = [
        f"Transaction hash: {tx.hash}",
        f"Status: {status}",
        f"Block: {format_optional(tx.block_number)}",
        f"From: {ens.display(tx.from_address)}",
        f"To: {ens.display(tx.to_address) if tx.to_address else 'contract creation'}",
        f"Value: {format_ether(tx.value)}",
        f"Transaction fee: {format_ether(receipt.fee if receipt else None)}",
        f"Gas price: {format_gwei(receipt.effective_gas_price if receipt else tx.gas_price)}",
        f"Gas limit & usage: {format_optional(tx.gas)} | {format_optional(receipt.gas_used if receipt else None)}",
        f"Max fee / priority fee: {format_gwei(tx.max_fee_per_gas)} / {format_gwei(tx.max_priority_fee_per_gas)}",
        f"Nonce: {format_optional(tx.nonce)}  Type: {format_optional(tx.tx_type)}",
    ]
    if receipt is not None and receipt.contract_address:
        lines.append(f"Created contract: {receipt.contract_address}")
    return _items_text(lines, items, detail)


def input_data_text(payload: TxWithReceipt, loading: bool) -> Text:
    text = Text(f"Input data of {payload.hash}\n\n", style="bold")
    decoded = payload.decoded_input
    if decoded is not None:
        text.append(f"Function: {decoded.function}\n")
        for name, value in decoded.arguments:
            text.append(f"  {name}: {value}\n")
        text.append("\n")
    elif loading:
        text.append("Decoding…\n\n")
    else:
        text.append("Could not decode input data (no verified ABI).\n\n")
    text.append(payload.transaction.input)
    return text


def address_text(info: AddressInfo, detail: SelectableList[str], items: list[str]) -> Text:
    lines = [
        f"Address: {info.address}",
        f"ENS name: {format_optional(info.ens_id)}",
        f"Avatar: {format_optional(info.avatar_url)}",
        f"Balance: {format_ether(info.balance)}",
    ]
    source = info.contract_source
    if source is not None:
        optimization = f"yes, {source.runs} runs" if source.optimization_used else "no"
        lines += [
            f"Contract name: {source.contract_name}",
            f"Compiler: {source.compiler_version} (optimization: {optimization})",
            f"License: {format_optional(source.license_type)}",
        ]
    text = _items_text(lines, items, detail)
    selected = detail.selected_item()
    if selected == "Contract source" and source is not None:
        text.append("\n" + "\n".join(source.source_code.splitlines()[:MAX_SOURCE_LINES]))
    elif selected == "Contract ABI" and info.contract_abi is not None:
        text.append("\n" + info.contract_abi)
    return text


def main_title(route: Route) -> str:
    view = route.id
    if isinstance(view, Welcome):
        return "Welcome"
    if isinstance(view, Searching):
        return f"Searching {view.query}"
    if isinstance(view, AddressView):
        return "Address"
    if isinstance(view, BlockView):
        return "Block"
    if isinstance(view, BlockTransactionsView):
        return "Transactions of block"
    if isinstance(view, BlockWithdrawalsView):
        return "Withdrawals of block"
    if isinstance(view, TransactionView):
        return "Transaction"
    if isinstance(view, InputDataView):
        return "Input data"
    raise TypeError(f"unknown view {view!r}")


def main_text(state: AppState, items: list[str], now_ms: Optional[int] = None) -> Text:
    """Body of the main pane for the top route frame."""
    view = state.current_route().id
    detail = state.detail
    if isinstance(view, Welcome):
        return Text(WELCOME)
    if isinstance(view, Searching):
        if not state.is_loading:
            return Text(f"Search failed: {view.query}")
        frame = spinner_frame(now_ms if now_ms is not None else int(time.time() * 1000))
        return Text(f"{frame} Searching {view.query} …")
    if view.payload is None:
        return Text("Not Found", style="bold red")
    if isinstance(view, AddressView):
        return address_text(view.payload, detail, items)
    if isinstance(view, BlockView):
        return block_text(view.payload, state.ens, items, detail)
    if isinstance(view, BlockTransactionsView):
        return block_transactions_text(view.payload, state.ens, detail)
    if isinstance(view, BlockWithdrawalsView):
        return block_withdrawals_text(view.payload, state.ens, detail)
    if isinstance(view, TransactionView):
        return transaction_text(view.payload, state.ens, items, detail)
    if isinstance(view, InputDataView):
        return input_data_text(view.payload, state.is_loading)
    raise TypeError(f"unknown view {view!r}")
