"""Small helpers shared across the indexer: stderr logging, JSON, addresses."""

import json
import sys
import time
from datetime import datetime, timezone
from typing import Any, Optional

from web3 import Web3


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def _log(msg: str) -> None:
    ts = time.strftime("%Y-%m-%d %H:%M:%S", time.gmtime())
    sys.stderr.write(f"[{ts} UTC] {msg}\n")
    sys.stderr.flush()


def _json_dumps(obj: Any, indent: Optional[int] = None) -> str:
    return json.dumps(obj, ensure_ascii=True, indent=indent)


def _load_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _parse_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        if value.startswith("0x"):
            return int(value, 16)
        return int(value)
    return int(value)


def _is_address(value: Any) -> bool:
    return isinstance(value, str) and Web3.is_address(value)


def _to_checksum(addr: str) -> str:
    return Web3.to_checksum_address(addr)


def _same_address(a: str, b: str) -> bool:
    return a.lower() == b.lower()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso_utc(moment: datetime) -> str:
    # Millisecond precision with a Z suffix, e.g. 2026-02-12T16:00:00.000Z
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _parse_iso_utc(value: str) -> datetime:
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
