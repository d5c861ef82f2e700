import json

from web3 import Web3

from ethscope.models import DecodedInput

MAX_ARGUMENT_WIDTH = 200


def _format_argument(value: object) -> str:
    if isinstance(value, bytes):
        text = Web3.to_hex(value)
    elif isinstance(value, (list, tuple)):
        text = "[" + ", ".join(_format_argument(v) for v in value) + "]"
    else:
        text = str(value)
    return text if len(text) <= MAX_ARGUMENT_WIDTH else text[: MAX_ARGUMENT_WIDTH - 1] + "…"


def decode_input(abi: str, data: str) -> DecodedInput | None:
    """Decode transaction input against a contract ABI. None if no function matches."""
    contract = Web3().eth.contract(abi=json.loads(abi))
    try:
        function, arguments = contract.decode_function_input(data)
    except ValueError:
        return None
    return DecodedInput(
        function=function.fn_name,
        arguments=tuple((name, _format_argument(value)) for name, value in arguments.items()),
    )
