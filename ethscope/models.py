from dataclasses import dataclass, replace
from typing import Any, Optional

WEI_PER_GWEI = 10**9
WEI_PER_ETHER = 10**18


def hex_to_int(val: Any) -> int | None:
    if val is None:
        return None
    if isinstance(val, int):
        return val
    try:
        return int(str(val), 16) if str(val).startswith("0x") else int(str(val))
    except (TypeError, ValueError):
        return None


def normalize_address(address: str) -> str:
    return address.strip().lower()


def format_ether(wei: int | None, precision: int = 6) -> str:
    if wei is None:
        return "-"
    return f"{wei / WEI_PER_ETHER:.{precision}f} ETH"


def format_gwei(wei: int | None, precision: int = 2) -> str:
    if wei is None:
        return "-"
    return f"{wei / WEI_PER_GWEI:.{precision}f} Gwei"


@dataclass(frozen=True)
class Withdrawal:
    index: int
    validator_index: int
    address: str
    amount_gwei: int

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "Withdrawal":
        return cls(
            index=hex_to_int(data.get("index")) or 0,
            validator_index=hex_to_int(data.get("validatorIndex")) or 0,
            address=normalize_address(data.get("address") or ""),
            amount_gwei=hex_to_int(data.get("amount")) or 0,
        )


@dataclass(frozen=True)
class Transaction:
    hash: str
    from_address: str
    to_address: Optional[str]
    value: int
    block_number: Optional[int] = None
    gas: Optional[int] = None
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    nonce: Optional[int] = None
    input: str = "0x"
    tx_type: Optional[int] = None

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "Transaction":
        to_address = data.get("to")
        return cls(
            hash=data["hash"],
            from_address=normalize_address(data.get("from") or ""),
            to_address=normalize_address(to_address) if to_address else None,
            value=hex_to_int(data.get("value")) or 0,
            block_number=hex_to_int(data.get("blockNumber")),
            gas=hex_to_int(data.get("gas")),
            gas_price=hex_to_int(data.get("gasPrice")),
            max_fee_per_gas=hex_to_int(data.get("maxFeePerGas")),
            max_priority_fee_per_gas=hex_to_int(data.get("maxPriorityFeePerGas")),
            nonce=hex_to_int(data.get("nonce")),
            input=data.get("input") or "0x",
            tx_type=hex_to_int(data.get("type")),
        )

    @property
    def has_input(self) -> bool:
        return len(self.input) > 2


@dataclass(frozen=True)
class TransactionReceipt:
    transaction_hash: str
    status: Optional[int]
    gas_used: Optional[int]
    effective_gas_price: Optional[int] = None
    contract_address: Optional[str] = None
    logs_count: int = 0

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "TransactionReceipt":
        contract_address = data.get("contractAddress")
        return cls(
            transaction_hash=data["transactionHash"],
            status=hex_to_int(data.get("status")),
            gas_used=hex_to_int(data.get("gasUsed")),
            effective_gas_price=hex_to_int(data.get("effectiveGasPrice")),
            contract_address=normalize_address(contract_address) if contract_address else None,
            logs_count=len(data.get("logs") or []),
        )

    @property
    def fee(self) -> int | None:
        if self.gas_used is None or self.effective_gas_price is None:
            return None
        return self.gas_used * self.effective_gas_price


@dataclass(frozen=True)
class Block:
    number: int
    hash: str
    parent_hash: str
    timestamp: int
    miner: Optional[str]
    gas_used: int
    gas_limit: int
    base_fee_per_gas: Optional[int] = None
    size: Optional[int] = None
    extra_data: str = "0x"
    transactions: tuple[Transaction, ...] = ()
    withdrawals: Optional[tuple[Withdrawal, ...]] = None

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "Block":
        transactions = tuple(
            Transaction.from_rpc(tx) for tx in data.get("transactions") or [] if isinstance(tx, dict)
        )
        withdrawals = data.get("withdrawals")
        miner = data.get("miner")
        return cls(
            number=hex_to_int(data.get("number")) or 0,
            hash=data.get("hash") or "",
            parent_hash=data.get("parentHash") or "",
            timestamp=hex_to_int(data.get("timestamp")) or 0,
            miner=normalize_address(miner) if miner else None,
            gas_used=hex_to_int(data.get("gasUsed")) or 0,
            gas_limit=hex_to_int(data.get("gasLimit")) or 0,
            base_fee_per_gas=hex_to_int(data.get("baseFeePerGas")),
            size=hex_to_int(data.get("size")),
            extra_data=data.get("extraData") or "0x",
            transactions=transactions,
            withdrawals=(
                tuple(Withdrawal.from_rpc(w) for w in withdrawals) if withdrawals is not None else None
            ),
        )

    @property
    def gas_used_pct(self) -> float:
        if not self.gas_limit:
            return 0.0
        return self.gas_used * 100 / self.gas_limit

    @property
    def burnt_fees(self) -> int | None:
        if self.base_fee_per_gas is None:
            return None
        return self.base_fee_per_gas * self.gas_used


@dataclass(frozen=True)
class DecodedInput:
    function: str
    arguments: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class TxWithReceipt:
    transaction: Transaction
    receipt: Optional[TransactionReceipt]
    decoded_input: Optional[DecodedInput] = None

    @property
    def hash(self) -> str:
        return self.transaction.hash

    def with_decoded_input(self, decoded: DecodedInput | None) -> "TxWithReceipt":
        return replace(self, decoded_input=decoded)


@dataclass(frozen=True)
class BlockWithReceipts:
    block: Block
    receipts: Optional[tuple[TransactionReceipt, ...]] = None

    def receipt_for(self, tx_hash: str) -> TransactionReceipt | None:
        for receipt in self.receipts or ():
            if receipt.transaction_hash == tx_hash:
                return receipt
        return None


@dataclass(frozen=True)
class ContractSource:
    contract_name: str
    compiler_version: str
    optimization_used: bool
    runs: Optional[int]
    license_type: Optional[str]
    source_code: str

    @classmethod
    def from_explorer(cls, data: dict[str, Any]) -> "ContractSource":
        runs = data.get("Runs")
        return cls(
            contract_name=data.get("ContractName") or "",
            compiler_version=data.get("CompilerVersion") or "",
            optimization_used=str(data.get("OptimizationUsed")) == "1",
            runs=int(runs) if str(runs).isdigit() else None,
            license_type=data.get("LicenseType") or None,
            source_code=data.get("SourceCode") or "",
        )


@dataclass(frozen=True)
class AddressInfo:
    address: str
    ens_id: Optional[str] = None
    avatar_url: Optional[str] = None
    balance: Optional[int] = None
    contract_abi: Optional[str] = None
    contract_source: Optional[ContractSource] = None

    @property
    def is_contract(self) -> bool:
        return self.contract_abi is not None or self.contract_source is not None


@dataclass
class Statistics:
    ethusd: Optional[float] = None
    node_count: Optional[int] = None
    suggested_base_fee: Optional[float] = None
    med_gas_price: Optional[float] = None
    last_safe_block: Optional[Block] = None
    last_finalized_block: Optional[Block] = None

    def merge(self, **fields: Any) -> None:
        """Set each given field whose value is not None; other fields keep their value."""
        for name, value in fields.items():
            if value is not None:
                setattr(self, name, value)


def tx_addresses(transactions: Any) -> list[str]:
    """Addresses mentioned by transactions, in first-seen order without duplicates."""
    seen: dict[str, None] = {}
    for tx in transactions:
        if isinstance(tx, TxWithReceipt):
            tx = tx.transaction
        seen.setdefault(tx.from_address, None)
        if tx.to_address:
            seen.setdefault(tx.to_address, None)
    return [addr for addr in seen if addr]


def block_addresses(block: Block) -> list[str]:
    addresses = [block.miner] if block.miner else []
    addresses.extend(tx_addresses(block.transactions))
    addresses.extend(w.address for w in block.withdrawals or ())
    return list(dict.fromkeys(addresses))
