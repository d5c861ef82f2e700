import logging
from typing import Any

import requests

from ethscope.config import Settings
from ethscope.exceptions import ExplorerError
from ethscope.models import ContractSource

logger = logging.getLogger(__name__)

NOT_VERIFIED_MARKERS = ("not verified", "source code not verified")


def _float_or_none(val: Any) -> float | None:
    if val is None or val == "":
        return None
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


class ExplorerClient:
    """Etherscan-compatible API. Every lookup returns None when no API key is set."""

    def __init__(self, settings: Settings) -> None:
        self.base_url = settings.etherscan_url
        self.api_key = settings.etherscan_api_key
        self.chain_id = settings.chain_id
        self.timeout = settings.timeout

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _get(self, module: str, action: str, **params: Any) -> Any:
        query = {
            "chainid": self.chain_id,
            "module": module,
            "action": action,
            "apikey": self.api_key,
            **params,
        }
        logger.debug("explorer %s.%s %s", module, action, params)
        try:
            response = requests.get(self.base_url, params=query, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise ExplorerError(action, str(e)) from e
        if str(data.get("status")) != "1":
            result = data.get("result")
            detail = result if isinstance(result, str) else data.get("message", "request failed")
            if any(marker in str(detail).lower() for marker in NOT_VERIFIED_MARKERS):
                return None
            raise ExplorerError(action, str(detail))
        return data.get("result")

    def get_eth_price(self) -> float | None:
        if not self.enabled:
            return None
        result = self._get("stats", "ethprice")
        return _float_or_none((result or {}).get("ethusd"))

    def get_node_count(self) -> int | None:
        if not self.enabled:
            return None
        result = self._get("stats", "nodecount")
        count = (result or {}).get("TotalNodeCount")
        return int(count) if str(count).isdigit() else None

    def get_gas_oracle(self) -> dict[str, float | None]:
        """Return suggested base fee and proposed (median) gas price in Gwei."""
        if not self.enabled:
            return {"suggest_base_fee": None, "propose_gas_price": None}
        result = self._get("gastracker", "gasoracle") or {}
        return {
            "suggest_base_fee": _float_or_none(result.get("suggestBaseFee")),
            "propose_gas_price": _float_or_none(result.get("ProposeGasPrice")),
        }

    def get_contract_abi(self, address: str) -> str | None:
        if not self.enabled:
            return None
        result = self._get("contract", "getabi", address=address)
        return result if isinstance(result, str) and result.startswith("[") else None

    def get_contract_source(self, address: str) -> ContractSource | None:
        if not self.enabled:
            return None
        result = self._get("contract", "getsourcecode", address=address)
        if not isinstance(result, list) or not result or not isinstance(result[0], dict):
            return None
        source = ContractSource.from_explorer(result[0])
        return source if source.source_code else None
