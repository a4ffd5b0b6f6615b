"""Tests for sync window selection."""

import pytest

from round_indexer import ConfigError, RoundSyncCursor, compute_sync_window

CURSOR = RoundSyncCursor(
    version="v1",
    chain_id=11011,
    round_address="0x1111111111111111111111111111111111111111",
    last_synced_block=80,
    synced_at="2026-02-12T17:00:00.000Z",
)


class TestComputeSyncWindow:
    """Window bounds from tip, confirmations, lookback and cursor."""

    def test_starts_from_genesis_without_cursor(self) -> None:
        """No cursor and no override scans from block 0 to the confirmed tip."""
        window = compute_sync_window(latest_block=100, confirmations=5, reorg_lookback=12)

        assert window.from_block == 0
        assert window.to_block == 95
        assert window.used_cursor is False

    def test_rewinds_cursor_by_reorg_lookback(self) -> None:
        """A cursor at 80 with lookback 12 re-reads from 68."""
        window = compute_sync_window(latest_block=100, confirmations=5, reorg_lookback=12, cursor=CURSOR)

        assert (window.from_block, window.to_block, window.used_cursor) == (68, 95, True)

    def test_explicit_bounds_win_over_cursor(self) -> None:
        """Explicit from/to ignore both the cursor and the confirmed tip."""
        window = compute_sync_window(
            latest_block=100,
            confirmations=5,
            reorg_lookback=12,
            cursor=CURSOR,
            explicit_from_block=40,
            explicit_to_block=55,
        )

        assert (window.from_block, window.to_block, window.used_cursor) == (40, 55, False)

    def test_clamps_when_confirmations_exceed_tip(self) -> None:
        """Confirmations deeper than the chain never produce negative blocks."""
        window = compute_sync_window(latest_block=20, confirmations=20, reorg_lookback=12, cursor=CURSOR)

        assert window.from_block == 0
        assert window.to_block == 0

    def test_inverted_range_collapses_to_to_block(self) -> None:
        """A cursor ahead of the confirmed tip yields an empty range at the tip."""
        ahead = RoundSyncCursor(
            version="v1",
            chain_id=11011,
            round_address=CURSOR.round_address,
            last_synced_block=200,
            synced_at=CURSOR.synced_at,
        )
        window = compute_sync_window(latest_block=100, confirmations=5, reorg_lookback=12, cursor=ahead)

        assert (window.from_block, window.to_block) == (95, 95)
        assert window.used_cursor is True

    def test_lookback_larger_than_cursor_floors_at_zero(self) -> None:
        """Rewinding past genesis stops at block 0."""
        window = compute_sync_window(latest_block=100, confirmations=0, reorg_lookback=500, cursor=CURSOR)

        assert window.from_block == 0
        assert window.to_block == 100

    @pytest.mark.parametrize("confirmations,lookback", [(-1, 0), (0, -1)])
    def test_rejects_negative_depths(self, confirmations: int, lookback: int) -> None:
        """Negative confirmations or lookback are configuration errors."""
        with pytest.raises(ConfigError):
            compute_sync_window(latest_block=100, confirmations=confirmations, reorg_lookback=lookback)
