"""Configuration loading: JSON file, then environment, then CLI overrides."""

import os
import re
from typing import Any, Dict, Mapping, Optional

from ._util import _is_address, _load_json, _to_checksum
from .errors import ConfigError

DEFAULT_CONFIG_PATH = "config.json"

DEFAULTS: Dict[str, Any] = {
    "rpc_http": None,
    "round_address": None,
    "registry_address": None,
    "out_path": "data/round-read-model.latest.json",
    "cursor_path": "data/round-read-model.cursor.json",
    "confirmations": 2,
    "reorg_lookback": 12,
    "from_block": None,
    "to_block": None,
    "batch_size": 2000,
    "request_timeout": 25,
    "poll_interval": 15,
    "stale_after": 30,
    "host": "127.0.0.1",
    "port": 8080,
}

# First variable that is set wins.
ENV_VARS: Dict[str, tuple] = {
    "rpc_http": ("ROUND_INDEXER_RPC_URL", "SHAPE_SEPOLIA_RPC_URL", "SHAPE_MAINNET_RPC_URL"),
    "round_address": ("ROUND_ADDRESS",),
    "registry_address": ("ARENA_REGISTRY_ADDRESS",),
    "out_path": ("INDEXER_READ_MODEL_PATH",),
    "cursor_path": ("INDEXER_CURSOR_PATH",),
}

INT_KEYS = (
    "confirmations",
    "reorg_lookback",
    "from_block",
    "to_block",
    "batch_size",
    "request_timeout",
    "poll_interval",
    "stale_after",
    "port",
)

_DECIMAL_RE = re.compile(r"^\d+$")


def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Load the JSON config file; a missing default file yields an empty config."""
    if path is None:
        path = DEFAULT_CONFIG_PATH
        if not os.path.exists(path):
            return {}
    if not os.path.exists(path):
        raise ConfigError(f"config file not found: {path}")
    cfg = _load_json(path)
    if not isinstance(cfg, dict):
        raise ConfigError(f"config file {path} must contain a JSON object")
    return cfg


def parse_non_negative_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be a non-negative integer")
    if isinstance(value, int) and value >= 0:
        return value
    if isinstance(value, str) and _DECIMAL_RE.match(value):
        return int(value)
    raise ConfigError(f"{key} must be a non-negative integer")


def parse_round_address(raw: Optional[str]) -> str:
    if not raw:
        raise ConfigError("--round or ROUND_ADDRESS is required")
    if not _is_address(raw):
        raise ConfigError(f"invalid round address: {raw}")
    return _to_checksum(raw)


def resolve_config(
    file_cfg: Mapping[str, Any],
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    cfg = dict(DEFAULTS)
    cfg.update({key: value for key, value in file_cfg.items() if value is not None})

    for key, names in ENV_VARS.items():
        for name in names:
            if environ.get(name):
                cfg[key] = environ[name]
                break

    if overrides:
        cfg.update({key: value for key, value in overrides.items() if value is not None})

    for key in INT_KEYS:
        if cfg.get(key) is not None:
            cfg[key] = parse_non_negative_int(cfg[key], key)
    return cfg
