"""Reorg-safe read model for an on-chain commit/reveal round contract."""

from .builder import build_round_read_model, merge_event_window
from .client import RoundIndexerClient, Web3RoundClient
from .errors import (
    ConfigError,
    ConsistencyError,
    FetchError,
    KeeperPaidMismatchError,
    ReadModelUnavailableError,
    ReconciliationError,
    RoundIndexerError,
    StoreFormatError,
)
from .models import (
    Accounting,
    BlockRange,
    ClaimedEvent,
    CommittedEvent,
    FinalizedEvent,
    Lifecycle,
    PlayerClaimedEvent,
    RevealedEvent,
    RoundEvents,
    RoundReadModel,
    RoundState,
    RoundSyncCursor,
    SteppedEvent,
)
from .reconcile import ReconciliationResult, reconcile_round_events
from .store import (
    parse_round_read_model,
    parse_round_sync_cursor,
    read_round_read_model,
    read_round_sync_cursor,
    stringify_round_read_model,
    stringify_round_sync_cursor,
    write_round_read_model,
    write_round_sync_cursor,
)
from .sync import RoundSyncer
from .window import SyncWindow, compute_sync_window

__all__ = [
    "Accounting",
    "BlockRange",
    "ClaimedEvent",
    "CommittedEvent",
    "ConfigError",
    "ConsistencyError",
    "FetchError",
    "FinalizedEvent",
    "KeeperPaidMismatchError",
    "Lifecycle",
    "PlayerClaimedEvent",
    "ReadModelUnavailableError",
    "ReconciliationError",
    "ReconciliationResult",
    "RevealedEvent",
    "RoundEvents",
    "RoundIndexerClient",
    "RoundIndexerError",
    "RoundReadModel",
    "RoundState",
    "RoundSyncCursor",
    "RoundSyncer",
    "SteppedEvent",
    "StoreFormatError",
    "SyncWindow",
    "Web3RoundClient",
    "build_round_read_model",
    "compute_sync_window",
    "merge_event_window",
    "parse_round_read_model",
    "parse_round_sync_cursor",
    "read_round_read_model",
    "read_round_sync_cursor",
    "reconcile_round_events",
    "stringify_round_read_model",
    "stringify_round_sync_cursor",
    "write_round_read_model",
    "write_round_sync_cursor",
]
