import itertools
import logging
from typing import Any, Optional

import requests
from web3 import Web3

from ethscope.config import Settings
from ethscope.exceptions import RpcError
from ethscope.models import Block, Transaction, TransactionReceipt, hex_to_int, normalize_address

logger = logging.getLogger(__name__)

BLOCK_TAGS = {"latest", "earliest", "pending", "safe", "finalized"}


class RpcClient:
    """Ethereum JSON-RPC over HTTP. Blocking; call it from an executor.

    Lookups that the node answers with ``null`` return None. Transport errors,
    HTTP errors and error payloads raise ``RpcError``.
    """

    def __init__(self, settings: Settings) -> None:
        self.endpoint = settings.endpoint
        self.timeout = settings.timeout
        self._ids = itertools.count(1)
        self._w3: Web3 | None = None

    def _rpc_call(self, method: str, params: Optional[list] = None) -> Any:
        logger.debug("rpc %s %s", method, params or [])
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or []}
        try:
            response = requests.post(self.endpoint, json=payload, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise RpcError(method, str(e)) from e
        if data.get("error"):
            error = data["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise RpcError(method, str(message))
        return data.get("result")

    @property
    def w3(self) -> Web3:
        if self._w3 is None:
            self._w3 = Web3(Web3.HTTPProvider(self.endpoint, request_kwargs={"timeout": self.timeout}))
        return self._w3

    def get_block_number(self) -> int:
        number = hex_to_int(self._rpc_call("eth_blockNumber"))
        if number is None:
            raise RpcError("eth_blockNumber", "node returned no block number")
        return number

    def get_block(self, number: int | str, full_transactions: bool = True) -> Block | None:
        if isinstance(number, str) and number in BLOCK_TAGS:
            tag = number
        else:
            tag = hex(int(number))
        data = self._rpc_call("eth_getBlockByNumber", [tag, full_transactions])
        return Block.from_rpc(data) if data else None

    def get_block_by_hash(self, block_hash: str, full_transactions: bool = True) -> Block | None:
        data = self._rpc_call("eth_getBlockByHash", [block_hash, full_transactions])
        return Block.from_rpc(data) if data else None

    def get_transaction(self, tx_hash: str) -> Transaction | None:
        data = self._rpc_call("eth_getTransactionByHash", [tx_hash])
        return Transaction.from_rpc(data) if data else None

    def get_transaction_receipt(self, tx_hash: str) -> TransactionReceipt | None:
        data = self._rpc_call("eth_getTransactionReceipt", [tx_hash])
        return TransactionReceipt.from_rpc(data) if data else None

    def get_balance(self, address: str) -> int | None:
        return hex_to_int(self._rpc_call("eth_getBalance", [address, "latest"]))

    def lookup_address(self, address: str) -> str | None:
        """Reverse ENS lookup: address to primary name, or None."""
        try:
            return self.w3.ens.name(Web3.to_checksum_address(address))
        except Exception as e:
            raise RpcError("ens_name", str(e)) from e

    def resolve_name(self, name: str) -> str | None:
        """Forward ENS lookup: name to address, or None."""
        try:
            address = self.w3.ens.address(name)
        except Exception as e:
            raise RpcError("ens_address", str(e)) from e
        return normalize_address(address) if address else None

    def get_avatar(self, name: str) -> str | None:
        try:
            avatar = self.w3.ens.get_text(name, "avatar")
        except Exception as e:
            raise RpcError("ens_avatar", str(e)) from e
        return avatar or None
