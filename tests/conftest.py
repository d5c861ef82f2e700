import asyncio
import queue

import pytest

from ethscope.exceptions import ExplorerError, RpcError
from ethscope.models import Block, Transaction, TransactionReceipt, Withdrawal
from ethscope.network import Network
from ethscope.state import AppState, SharedState

TRANSFER_INPUT = (
    "0xa9059cbb"
    "0000000000000000000000000000000000000000000000000000000000000001"
    "00000000000000000000000000000000000000000000000000000000000003e8"
)


def address(n: int) -> str:
    return "0x" + f"{n:040x}"


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


def build_transaction(block_number: int, i: int) -> Transaction:
    return Transaction(
        hash=tx_hash(block_number * 1000 + i + 1),
        from_address=address(1000 + i),
        to_address=address(2000 + i),
        value=(i + 1) * 10**17,
        block_number=block_number,
        gas=21000,
        gas_price=2 * 10**9,
        nonce=i,
        input=TRANSFER_INPUT if i == 0 else "0x",
        tx_type=2,
    )


def build_block(number: int, tx_count: int = 3, withdrawals: bool = True) -> Block:
    return Block(
        number=number,
        hash=tx_hash(number),
        parent_hash=tx_hash(number - 1),
        timestamp=1_700_000_000 + number * 12,
        miner=address(number),
        gas_used=15_000_000,
        gas_limit=30_000_000,
        base_fee_per_gas=10**9,
        size=1234,
        transactions=tuple(build_transaction(number, i) for i in range(tx_count)),
        withdrawals=(
            (Withdrawal(index=number, validator_index=7, address=address(3000), amount_gwei=10**7),)
            if withdrawals
            else None
        ),
    )


class FakeRpc:
    """In-memory chain of blocks 0..height."""

    def __init__(self, height: int = 100, tx_count: int = 3) -> None:
        self.height = height
        self.blocks = {n: build_block(n, tx_count) for n in range(height + 1)}
        self.transactions = {
            tx.hash: tx for block in self.blocks.values() for tx in block.transactions
        }
        self.names: dict[str, str] = {}
        self.avatars: dict[str, str] = {}
        self.failing_blocks: set = set()
        self.failing_receipts: set = set()
        self.failing_lookups: set = set()
        self.lookups: list[str] = []

    def get_block_number(self) -> int:
        return self.height

    def get_block(self, number, full_transactions=True):
        if number in self.failing_blocks:
            raise RpcError("eth_getBlockByNumber", "upstream unavailable")
        if number == "latest":
            number = self.height
        elif number == "safe":
            number = self.height - 32
        elif number == "finalized":
            number = self.height - 64
        return self.blocks.get(number)

    def get_block_by_hash(self, block_hash, full_transactions=True):
        for block in self.blocks.values():
            if block.hash == block_hash:
                return block
        return None

    def get_transaction(self, hash_):
        return self.transactions.get(hash_)

    def get_transaction_receipt(self, hash_):
        if hash_ in self.failing_receipts:
            raise RpcError("eth_getTransactionReceipt", "upstream unavailable")
        if hash_ not in self.transactions:
            return None
        return TransactionReceipt(
            transaction_hash=hash_, status=1, gas_used=21000, effective_gas_price=2 * 10**9
        )

    def get_balance(self, address_):
        return 5 * 10**18

    def lookup_address(self, address_):
        self.lookups.append(address_)
        if address_ in self.failing_lookups:
            raise RpcError("ens_name", "resolver error")
        return self.names.get(address_)

    def resolve_name(self, name):
        for address_, known in self.names.items():
            if known == name:
                return address_
        return None

    def get_avatar(self, name):
        return self.avatars.get(name)


class FakeExplorer:
    enabled = True

    def __init__(self) -> None:
        self.failing: set = set()
        self.abis: dict[str, str] = {}

    def _check(self, action: str) -> None:
        if action in self.failing:
            raise ExplorerError(action, "Max rate limit reached")

    def get_eth_price(self):
        self._check("ethprice")
        return 3150.25

    def get_node_count(self):
        self._check("nodecount")
        return 6800

    def get_gas_oracle(self):
        self._check("gasoracle")
        return {"suggest_base_fee": 11.5, "propose_gas_price": 13.0}

    def get_contract_abi(self, address_):
        self._check("getabi")
        return self.abis.get(address_)

    def get_contract_source(self, address_):
        self._check("getsourcecode")
        return None


@pytest.fixture
def rpc():
    return FakeRpc()


@pytest.fixture
def explorer():
    return FakeExplorer()


@pytest.fixture
def io_queue():
    return queue.Queue()


@pytest.fixture
def shared(io_queue):
    return SharedState(AppState(io_queue))


@pytest.fixture
def network(shared, rpc, explorer):
    return Network(shared, rpc, explorer, batch_size=4)


@pytest.fixture
def run_queued(network, io_queue):
    """Run every queued command to completion, in order, on this thread."""

    def run() -> int:
        count = 0
        while not io_queue.empty():
            asyncio.run(network.handle_network_event(io_queue.get_nowait()))
            count += 1
        return count

    return run
