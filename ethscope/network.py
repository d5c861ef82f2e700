import asyncio
import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence, TypeVar

from ethscope.config import DEFAULT_BATCH_SIZE
from ethscope.models import (
    AddressInfo,
    Block,
    BlockWithReceipts,
    TxWithReceipt,
    block_addresses,
    normalize_address,
    tx_addresses,
)
from ethscope.route import (
    ActiveBlock,
    AddressView,
    BlockTransactionsView,
    BlockView,
    InputDataView,
    Route,
    Searching,
    TransactionView,
)
from ethscope.services.abi import decode_input
from ethscope.services.explorer import ExplorerClient
from ethscope.services.rpc import RpcClient
from ethscope.state import AppState, SharedState
from ethscope.widget import SelectableList

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")


@dataclass(frozen=True)
class GetStatistics:
    generation: int = 0


@dataclass(frozen=True)
class GetNameOrAddressInfo:
    name_or_address: str
    is_searching: bool = False
    generation: int = 0


@dataclass(frozen=True)
class GetBlock:
    number: int
    is_searching: bool = False
    generation: int = 0


@dataclass(frozen=True)
class GetBlockByHash:
    hash: str
    is_searching: bool = False
    generation: int = 0


@dataclass(frozen=True)
class GetTransactionWithReceipt:
    transaction_hash: str
    is_searching: bool = False
    generation: int = 0


@dataclass(frozen=True)
class GetTransactionReceipts:
    block: BlockWithReceipts
    generation: int = 0


@dataclass(frozen=True)
class GetDecodedInputData:
    transaction: TxWithReceipt
    generation: int = 0


@dataclass(frozen=True)
class GetLatestBlocks:
    n: int
    generation: int = 0


@dataclass(frozen=True)
class GetLatestTransactions:
    n: int
    generation: int = 0


@dataclass(frozen=True)
class GetEnsNames:
    addresses: tuple[str, ...]
    generation: int = 0


@dataclass(frozen=True)
class InitialSetup:
    n: int
    generation: int = 0


def describe(event: Any) -> str:
    if isinstance(event, GetStatistics):
        return "Statistics"
    if isinstance(event, GetNameOrAddressInfo):
        return f"Address {event.name_or_address}"
    if isinstance(event, GetBlock):
        return f"Block {event.number}"
    if isinstance(event, GetBlockByHash):
        return f"Block {event.hash[:12]}"
    if isinstance(event, GetTransactionWithReceipt):
        return f"Transaction {event.transaction_hash[:12]}"
    if isinstance(event, GetTransactionReceipts):
        return f"Receipts of block {event.block.block.number}"
    if isinstance(event, GetDecodedInputData):
        return f"Input data of {event.transaction.hash[:12]}"
    if isinstance(event, GetLatestBlocks):
        return "Latest blocks"
    if isinstance(event, GetLatestTransactions):
        return "Latest transactions"
    if isinstance(event, GetEnsNames):
        return "ENS names"
    if isinstance(event, InitialSetup):
        return "Initial setup"
    return type(event).__name__


async def fetch_in_batches(
    keys: Sequence[K],
    lookup: Callable[[K], Awaitable[V]],
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_chunk: Optional[Callable[[list[tuple[K, Optional[V]]]], None]] = None,
) -> list[tuple[K, Optional[V]]]:
    """Look up every key, at most ``batch_size`` at a time.

    Chunks run one after another; inside a chunk all lookups run concurrently.
    A failed lookup gives None for its key. ``on_chunk`` sees each finished
    chunk before the next one starts.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be positive")
    results: list[tuple[K, Optional[V]]] = []
    for start in range(0, len(keys), batch_size):
        chunk = keys[start : start + batch_size]
        outcomes = await asyncio.gather(*(lookup(key) for key in chunk), return_exceptions=True)
        chunk_results: list[tuple[K, Optional[V]]] = []
        for key, outcome in zip(chunk, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.debug("lookup of %s failed: %s", key, outcome)
                outcome = None
            chunk_results.append((key, outcome))
        if on_chunk is not None:
            on_chunk(chunk_results)
        results.extend(chunk_results)
    return results


class Network:
    """Runs fetch commands and commits their results into the shared state."""

    def __init__(
        self,
        shared: SharedState,
        rpc: RpcClient,
        explorer: ExplorerClient,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.shared = shared
        self.rpc = rpc
        self.explorer = explorer
        self.batch_size = batch_size

    async def _call(self, fn: Callable[..., V], *args: Any) -> V:
        return await asyncio.get_event_loop().run_in_executor(None, fn, *args)

    async def _gather(self, **calls: Awaitable[Any]) -> tuple[dict[str, Any], dict[str, Exception]]:
        """Await independent sub-fetches; split results from failures by name."""
        names = list(calls)
        outcomes = await asyncio.gather(*calls.values(), return_exceptions=True)
        ok: dict[str, Any] = {}
        failed: dict[str, Exception] = {}
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, Exception):
                failed[name] = outcome
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                ok[name] = outcome
        return ok, failed

    def _report(self, message: str) -> None:
        logger.warning(message)
        with self.shared as state:
            state.report_error(message)

    async def handle_network_event(self, event: Any) -> None:
        started = time.monotonic()
        error: Optional[str] = None
        try:
            await self._handle(event)
        except Exception as e:
            logger.exception("%s failed", describe(event))
            error = f"{describe(event)} failed: {e}"
        with self.shared as state:
            if error:
                state.report_error(error)
                if (
                    getattr(event, "is_searching", False)
                    and not self._is_stale(state, event)
                    and isinstance(state.current_route().id, Searching)
                ):
                    state.routes.pop()
            state.finish_command()
        logger.debug("%s done in %.2fs", describe(event), time.monotonic() - started)

    async def _handle(self, event: Any) -> None:
        if isinstance(event, GetStatistics):
            await self._refresh_statistics()
        elif isinstance(event, GetNameOrAddressInfo):
            await self._get_name_or_address_info(event)
        elif isinstance(event, GetBlock):
            block = await self._call(self.rpc.get_block, event.number, True)
            await self._show_block(event, block, event.is_searching)
        elif isinstance(event, GetBlockByHash):
            block = await self._call(self.rpc.get_block_by_hash, event.hash, True)
            await self._show_block(event, block, event.is_searching)
        elif isinstance(event, GetTransactionWithReceipt):
            await self._get_transaction_with_receipt(event)
        elif isinstance(event, GetTransactionReceipts):
            await self._get_transaction_receipts(event)
        elif isinstance(event, GetDecodedInputData):
            await self._get_decoded_input_data(event)
        elif isinstance(event, GetLatestBlocks):
            await self._load_latest_blocks(event.n)
        elif isinstance(event, GetLatestTransactions):
            await self._load_latest_transactions(event.n)
        elif isinstance(event, GetEnsNames):
            await self._resolve_ens(event.addresses, only_missing=False)
        elif isinstance(event, InitialSetup):
            await self._initial_setup(event.n)
        else:
            raise TypeError(f"unknown command {event!r}")

    # -- committing routes -------------------------------------------------

    @staticmethod
    def _is_stale(state: AppState, event: Any) -> bool:
        if event.generation != state.generation:
            logger.info(
                "dropping stale %s result (generation %d, now %d)",
                describe(event),
                event.generation,
                state.generation,
            )
            return True
        return False

    def _push(self, event: Any, route: Route, is_searching: bool = False) -> None:
        with self.shared as state:
            if self._is_stale(state, event):
                return
            if is_searching and isinstance(state.current_route().id, Searching):
                state.routes.pop()
            state.routes.push(route)

    def _fill(self, event: Any, route: Route, matches: Callable[[Route], bool]) -> None:
        """Replace the top frame in place if it is still the view this result belongs to."""
        with self.shared as state:
            if self._is_stale(state, event):
                return
            current = state.current_route()
            if not current.same_view(route) or not matches(current):
                logger.info("%s no longer on screen, result dropped", describe(event))
                return
            state.routes.replace_current(route.with_active_block(current.active_block))

    # -- ENS ---------------------------------------------------------------

    async def _resolve_ens(self, addresses: Iterable[str], only_missing: bool = True) -> None:
        if only_missing:
            with self.shared as state:
                pending = state.ens.missing(addresses)
        else:
            pending = list(dict.fromkeys(normalize_address(a) for a in addresses if a))
        if not pending:
            return

        def merge(chunk: list[tuple[str, Optional[str]]]) -> None:
            with self.shared as state:
                state.ens.merge(chunk)

        logger.debug("resolving %d ENS names", len(pending))
        await fetch_in_batches(
            pending,
            lambda address: self._call(self.rpc.lookup_address, address),
            self.batch_size,
            on_chunk=merge,
        )

    # -- statistics and latest lists ---------------------------------------

    async def _refresh_statistics(self) -> None:
        ok, failed = await self._gather(
            ethusd=self._call(self.explorer.get_eth_price),
            node_count=self._call(self.explorer.get_node_count),
            gas=self._call(self.explorer.get_gas_oracle),
            last_safe_block=self._call(self.rpc.get_block, "safe", False),
            last_finalized_block=self._call(self.rpc.get_block, "finalized", False),
        )
        gas = ok.pop("gas", None) or {}
        with self.shared as state:
            state.statistics.merge(
                suggested_base_fee=gas.get("suggest_base_fee"),
                med_gas_price=gas.get("propose_gas_price"),
                **ok,
            )
        if failed:
            for name, e in failed.items():
                logger.debug("statistics field %s failed: %s", name, e)
            self._report(f"Statistics unavailable: {', '.join(failed)}")

    async def _load_latest_blocks(self, n: int) -> None:
        blocks: list[Block] = []
        if n > 0:
            height = await self._call(self.rpc.get_block_number)
            numbers = [height - i for i in range(n) if height - i >= 0]
            fetched = await fetch_in_batches(
                numbers, lambda number: self._call(self.rpc.get_block, number, True), self.batch_size
            )
            blocks = [block for _, block in fetched if block is not None]
            missing = [str(number) for number, block in fetched if block is None]
            if missing:
                self._report(f"Blocks unavailable: {', '.join(missing)}")
        with self.shared as state:
            state.latest_blocks = SelectableList(blocks)
        await self._resolve_ens(block.miner for block in blocks if block.miner)

    async def _load_latest_transactions(self, n: int) -> None:
        transactions: list[TxWithReceipt] = []
        if n > 0:
            block = await self._call(self.rpc.get_block, "latest", True)
            if block is not None:
                selected = list(block.transactions[:n])
                receipts = await fetch_in_batches(
                    [tx.hash for tx in selected],
                    lambda tx_hash: self._call(self.rpc.get_transaction_receipt, tx_hash),
                    self.batch_size,
                )
                transactions = [
                    TxWithReceipt(tx, receipt) for tx, (_, receipt) in zip(selected, receipts)
                ]
        with self.shared as state:
            state.latest_transactions = SelectableList(transactions)
        await self._resolve_ens(tx_addresses(transactions))

    async def _initial_setup(self, n: int) -> None:
        _, failed = await self._gather(
            statistics=self._refresh_statistics(),
            blocks=self._load_latest_blocks(n),
            transactions=self._load_latest_transactions(n),
        )
        for name, e in failed.items():
            self._report(f"Initial setup: {name} failed: {e}")

    # -- detail views ------------------------------------------------------

    async def _show_block(self, event: Any, block: Block | None, is_searching: bool) -> None:
        payload = BlockWithReceipts(block) if block is not None else None
        self._push(event, Route(BlockView(payload), ActiveBlock.MAIN), is_searching)
        if block is not None:
            await self._resolve_ens(block_addresses(block))

    async def _get_transaction_with_receipt(self, event: GetTransactionWithReceipt) -> None:
        ok, failed = await self._gather(
            transaction=self._call(self.rpc.get_transaction, event.transaction_hash),
            receipt=self._call(self.rpc.get_transaction_receipt, event.transaction_hash),
        )
        if "transaction" in failed:
            raise failed["transaction"]
        if "receipt" in failed:
            self._report(f"Receipt of {event.transaction_hash[:12]} unavailable: {failed['receipt']}")
        transaction = ok["transaction"]
        payload = TxWithReceipt(transaction, ok.get("receipt")) if transaction is not None else None
        self._push(event, Route(TransactionView(payload), ActiveBlock.MAIN), event.is_searching)
        if transaction is not None:
            await self._resolve_ens(tx_addresses([transaction]))

    async def _get_transaction_receipts(self, event: GetTransactionReceipts) -> None:
        block = event.block.block
        fetched = await fetch_in_batches(
            [tx.hash for tx in block.transactions],
            lambda tx_hash: self._call(self.rpc.get_transaction_receipt, tx_hash),
            self.batch_size,
        )
        receipts = tuple(receipt for _, receipt in fetched if receipt is not None)
        if len(receipts) < len(fetched):
            self._report(f"{len(fetched) - len(receipts)} receipts of block {block.number} unavailable")
        filled = BlockWithReceipts(block, receipts)

        def same_block(route: Route) -> bool:
            return route.id.payload is not None and route.id.payload.block.hash == block.hash

        self._fill(event, Route(BlockTransactionsView(filled), ActiveBlock.MAIN), same_block)
        await self._resolve_ens(tx_addresses(block.transactions))

    async def _get_decoded_input_data(self, event: GetDecodedInputData) -> None:
        tx = event.transaction
        decoded = None
        to_address = tx.transaction.to_address
        if to_address and tx.transaction.has_input:
            abi = await self._call(self.explorer.get_contract_abi, to_address)
            if abi:
                decoded = await self._call(decode_input, abi, tx.transaction.input)

        def same_transaction(route: Route) -> bool:
            return route.id.payload is not None and route.id.payload.hash == tx.hash

        self._fill(
            event, Route(InputDataView(tx.with_decoded_input(decoded)), ActiveBlock.MAIN), same_transaction
        )

    async def _get_name_or_address_info(self, event: GetNameOrAddressInfo) -> None:
        target = event.name_or_address.strip()
        name: Optional[str] = None
        if is_address(target):
            address = normalize_address(target)
        else:
            name = target
            address = await self._call(self.rpc.resolve_name, name)
            if address is None:
                self._push(event, Route(AddressView(None), ActiveBlock.MAIN), event.is_searching)
                return

        calls: dict[str, Awaitable[Any]] = {
            "balance": self._call(self.rpc.get_balance, address),
            "contract_abi": self._call(self.explorer.get_contract_abi, address),
            "contract_source": self._call(self.explorer.get_contract_source, address),
        }
        if name is None:
            calls["ens_id"] = self._call(self.rpc.lookup_address, address)
        ok, failed = await self._gather(**calls)
        ens_id = name if name is not None else ok.get("ens_id")

        avatar_url = None
        if ens_id:
            try:
                avatar_url = await self._call(self.rpc.get_avatar, ens_id)
            except Exception as e:
                failed["avatar_url"] = e
        if failed:
            for field_name, e in failed.items():
                logger.debug("address field %s failed: %s", field_name, e)
            self._report(f"Address {address[:12]}: {', '.join(failed)} unavailable")

        info = AddressInfo(
            address=address,
            ens_id=ens_id,
            avatar_url=avatar_url,
            balance=ok.get("balance"),
            contract_abi=ok.get("contract_abi"),
            contract_source=ok.get("contract_source"),
        )
        if "ens_id" not in failed:
            with self.shared as state:
                state.ens.insert(address, ens_id)
        self._push(event, Route(AddressView(info), ActiveBlock.MAIN), event.is_searching)


def is_address(text: str) -> bool:
    return len(text) == 42 and text[:2].lower() == "0x" and is_hex(text[2:])


def is_tx_hash(text: str) -> bool:
    return len(text) == 66 and text[:2].lower() == "0x" and is_hex(text[2:])


def is_hex(text: str) -> bool:
    return bool(text) and all(c in "0123456789abcdefABCDEF" for c in text)


class Worker:
    """Background thread that feeds queued commands to ``Network`` one at a time."""

    def __init__(self, network: Network, io_queue: "queue.Queue[Any]") -> None:
        self.network = network
        self.io_queue = io_queue
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, name="fetch-worker", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        loop.set_default_executor(
            ThreadPoolExecutor(max_workers=self.network.batch_size, thread_name_prefix="fetch")
        )
        logger.info("fetch worker started")
        try:
            while True:
                event = self.io_queue.get()
                if event is None:
                    break
                loop.run_until_complete(self.network.handle_network_event(event))
        finally:
            loop.run_until_complete(loop.shutdown_default_executor())
            loop.close()
            logger.info("fetch worker stopped")

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self.io_queue.put(None)
        self._thread.join(timeout)
        self._thread = None
