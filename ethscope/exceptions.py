class EthscopeError(Exception):
    """Base class for errors raised by ethscope."""


class ConfigError(EthscopeError):
    pass


class RpcError(EthscopeError):
    """A JSON-RPC call failed (transport, HTTP status or an error payload)."""

    def __init__(self, method: str, message: str) -> None:
        super().__init__(f"{method}: {message}")
        self.method = method


class ExplorerError(EthscopeError):
    """The chain-explorer API answered with an error or could not be reached."""

    def __init__(self, action: str, message: str) -> None:
        super().__init__(f"{action}: {message}")
        self.action = action
