"""Shared pytest fixtures."""

from pathlib import Path
from typing import Any, Dict

import pytest


@pytest.fixture
def sync_config(tmp_path: Path) -> Dict[str, Any]:
    """Resolved sync settings writing into a temporary data directory."""
    return {
        "out_path": str(tmp_path / "data" / "round-read-model.latest.json"),
        "cursor_path": str(tmp_path / "data" / "round-read-model.cursor.json"),
        "confirmations": 5,
        "reorg_lookback": 12,
        "from_block": None,
        "to_block": None,
        "poll_interval": 0,
    }
