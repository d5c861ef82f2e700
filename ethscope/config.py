import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ethscope.exceptions import ConfigError

DEFAULT_ENDPOINT = "https://eth.llamarpc.com"
DEFAULT_ETHERSCAN_URL = "https://api.etherscan.io/v2/api"
DEFAULT_CONF_PATH = Path.home() / ".config" / "ethscope" / "ethscope.conf"

# Etherscan free tier allows a few calls per second; RPC providers throttle
# bursts above roughly this many in-flight requests.
DEFAULT_BATCH_SIZE = 60


@dataclass
class Settings:
    endpoint: str = DEFAULT_ENDPOINT
    etherscan_api_key: Optional[str] = None
    etherscan_url: str = DEFAULT_ETHERSCAN_URL
    chain_id: int = 1
    timeout: float = 10.0
    batch_size: int = DEFAULT_BATCH_SIZE
    log_dir: str = "logs"
    log_level: str = "DEBUG"

    @property
    def explorer_enabled(self) -> bool:
        return bool(self.etherscan_api_key)


ENV_KEYS = {
    "endpoint": "ETHSCOPE_ENDPOINT",
    "etherscan_api_key": "ETHERSCAN_API_KEY",
    "etherscan_url": "ETHSCOPE_ETHERSCAN_URL",
    "chain_id": "ETHSCOPE_CHAIN_ID",
    "timeout": "ETHSCOPE_TIMEOUT",
    "batch_size": "ETHSCOPE_BATCH_SIZE",
    "log_dir": "ETHSCOPE_LOG_DIR",
    "log_level": "ETHSCOPE_LOG_LEVEL",
}


def _read_conf(path: Path) -> dict[str, str]:
    values: dict[str, str] = {}
    if not path.exists():
        return values
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip().lower()
        value = value.strip()
        if key in ENV_KEYS and value:
            values[key] = value
    return values


def load_settings(conf_path: str | Path | None = None) -> Settings:
    """Build settings from the environment, then the conf file, then defaults."""
    path = Path(conf_path or os.environ.get("ETHSCOPE_CONF", DEFAULT_CONF_PATH))
    raw = _read_conf(path)
    for key, env_name in ENV_KEYS.items():
        env_value = os.environ.get(env_name)
        if env_value:
            raw[key] = env_value

    settings = Settings()
    for key, value in raw.items():
        if key == "timeout":
            try:
                settings.timeout = float(value)
            except ValueError:
                raise ConfigError(f"timeout must be a number, got {value!r}") from None
            if settings.timeout <= 0:
                raise ConfigError("timeout must be positive")
        elif key == "chain_id":
            if not value.isdigit():
                raise ConfigError(f"chain_id must be an integer, got {value!r}")
            settings.chain_id = int(value)
        elif key == "batch_size":
            if not value.isdigit() or int(value) < 1:
                raise ConfigError(f"batch_size must be a positive integer, got {value!r}")
            settings.batch_size = int(value)
        else:
            setattr(settings, key, value)
    if not settings.endpoint.startswith(("http://", "https://")):
        raise ConfigError(f"endpoint must be an http(s) URL, got {settings.endpoint!r}")
    return settings
