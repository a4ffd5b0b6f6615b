"""Block window selection for the next sync pass."""

from dataclasses import dataclass
from typing import Optional

from .errors import ConfigError
from .models import RoundSyncCursor


@dataclass(frozen=True, slots=True)
class SyncWindow:
    from_block: int
    to_block: int
    used_cursor: bool


def compute_sync_window(
    latest_block: int,
    confirmations: int,
    reorg_lookback: int,
    cursor: Optional[RoundSyncCursor] = None,
    explicit_from_block: Optional[int] = None,
    explicit_to_block: Optional[int] = None,
) -> SyncWindow:
    """Pick ``[from_block, to_block]`` for the next pass.

    The upper bound trails the tip by ``confirmations``. A cursor rewinds the
    lower bound by ``reorg_lookback`` so the tail of the previous pass is
    re-read and replaced. Explicit bounds win over both. When the range comes
    out inverted it collapses to ``[to_block, to_block]`` instead of failing.
    """
    if confirmations < 0:
        raise ConfigError("confirmations must be non-negative")
    if reorg_lookback < 0:
        raise ConfigError("reorg_lookback must be non-negative")

    confirmed_tip = max(0, latest_block - confirmations)
    to_block = explicit_to_block if explicit_to_block is not None else confirmed_tip

    if explicit_from_block is not None:
        from_block = explicit_from_block
        used_cursor = False
    elif cursor is not None:
        from_block = max(0, cursor.last_synced_block - reorg_lookback)
        used_cursor = True
    else:
        from_block = 0
        used_cursor = False

    if to_block < from_block:
        return SyncWindow(from_block=to_block, to_block=to_block, used_cursor=used_cursor)
    return SyncWindow(from_block=from_block, to_block=to_block, used_cursor=used_cursor)
