"""Build a ``RoundReadModel`` from one fetch window plus the previous snapshot.

Merge policy: for every event category the previous model contributes only
entries strictly before ``from_block``; everything from ``from_block`` on is
taken from the fresh fetch. Re-reading an overlapping window therefore
replaces reorged logs rather than appending duplicates.
"""

import asyncio
from typing import Any, Optional, Sequence, Tuple

from ._util import _iso_utc, _log, _same_address, _utc_now
from .client import RoundIndexerClient
from .errors import ConfigError, ConsistencyError
from .models import (
    EVENT_CATEGORIES,
    READ_MODEL_VERSION,
    STATUS_OK,
    STATUS_PENDING_FINALIZE,
    Accounting,
    BlockRange,
    Lifecycle,
    RoundEvents,
    RoundReadModel,
    log_order_key,
)
from .reconcile import reconcile_round_events


async def _resolve_to_block(client: RoundIndexerClient, requested: Optional[int]) -> int:
    if requested is not None:
        return requested
    get_latest = getattr(client, "get_latest_block_number", None)
    if get_latest is None:
        raise ConfigError("to_block is required when client does not expose get_latest_block_number")
    return int(await get_latest())


def merge_event_window(previous: Sequence[Any], fetched: Sequence[Any], from_block: int, category: str = "") -> Tuple:
    """Keep ``previous`` entries before ``from_block``, append ``fetched``, sort."""
    kept = [event for event in previous if event.block_number < from_block]
    merged = sorted(kept + list(fetched), key=log_order_key)
    for earlier, later in zip(merged, merged[1:]):
        if log_order_key(earlier) == log_order_key(later):
            block_number, log_index = log_order_key(later)
            raise ConsistencyError(
                f"duplicate {category or 'event'} log at block {block_number} index {log_index}"
            )
    return tuple(merged)


async def build_round_read_model(
    client: RoundIndexerClient,
    round_address: str,
    from_block: int = 0,
    to_block: Optional[int] = None,
    previous_model: Optional[RoundReadModel] = None,
    synced_at: Optional[str] = None,
) -> RoundReadModel:
    """Fetch state and events for ``[from_block, to_block]`` and fold in ``previous_model``.

    Raises before returning anything on a bad range, a previous model for a
    different round or chain, a fetch failure, or a keeper-paid mismatch.
    """
    to_block = await _resolve_to_block(client, to_block)
    if to_block < from_block:
        raise ConfigError(f"invalid block range: fromBlock {from_block} > toBlock {to_block}")

    if previous_model is not None and not _same_address(previous_model.round_address, round_address):
        raise ConsistencyError("previous model round address does not match target round")

    block_range = BlockRange(from_block=from_block, to_block=to_block)
    (
        chain_id,
        round_state,
        stepped,
        finalized,
        claimed,
        player_claimed,
        committed,
        revealed,
    ) = await asyncio.gather(
        client.get_chain_id(),
        client.read_round_state(round_address),
        client.get_stepped_events(round_address, block_range),
        client.get_finalized_events(round_address, block_range),
        client.get_claimed_events(round_address, block_range),
        client.get_player_claimed_events(round_address, block_range),
        client.get_committed_events(round_address, block_range),
        client.get_revealed_events(round_address, block_range),
    )

    if previous_model is not None and previous_model.chain_id != chain_id:
        raise ConsistencyError("previous model chain id does not match target chain")

    fetched = {
        "stepped": stepped,
        "finalized": finalized,
        "claimed": claimed,
        "player_claimed": player_claimed,
        "committed": committed,
        "revealed": revealed,
    }
    previous_events = previous_model.events if previous_model is not None else RoundEvents.empty()
    events = RoundEvents(
        **{
            attr: merge_event_window(getattr(previous_events, attr), fetched[attr], from_block, key)
            for attr, key, _ in EVENT_CATEGORIES
        }
    )

    finalized_event = events.finalized[-1] if events.finalized else None
    if finalized_event is None:
        lifecycle = Lifecycle(finalized=False, final_gen=None, winner_pool_final=None)
        accounting = Accounting(
            total_funded=round_state.total_funded,
            winner_paid=round_state.winner_paid,
            keeper_paid=round_state.keeper_paid,
            treasury_dust=round_state.treasury_dust,
            derived_keeper_paid=None,
            accounted_total=None,
            invariant_holds=None,
            reconciliation_status=STATUS_PENDING_FINALIZE,
        )
    else:
        lifecycle = Lifecycle(
            finalized=True,
            final_gen=finalized_event.final_gen,
            winner_pool_final=finalized_event.winner_pool_final,
        )
        result = reconcile_round_events(
            total_funded=round_state.total_funded,
            stepped=events.stepped,
            finalized=finalized_event,
            claimed=events.claimed,
            player_claimed=events.player_claimed,
        )
        if not result.invariant_holds:
            _log(
                f"WARN: round {round_address} accounted total {result.accounted_total} "
                f"exceeds total funded {round_state.total_funded}"
            )
        accounting = Accounting(
            total_funded=round_state.total_funded,
            winner_paid=round_state.winner_paid,
            keeper_paid=round_state.keeper_paid,
            treasury_dust=round_state.treasury_dust,
            derived_keeper_paid=result.derived_keeper_paid,
            accounted_total=result.accounted_total,
            invariant_holds=result.invariant_holds,
            reconciliation_status=STATUS_OK,
        )

    return RoundReadModel(
        version=READ_MODEL_VERSION,
        chain_id=chain_id,
        round_address=round_address,
        synced_at=synced_at if synced_at is not None else _iso_utc(_utc_now()),
        cursor=block_range,
        phase=round_state.phase,
        gen=round_state.gen,
        max_gen=round_state.max_gen,
        max_batch=round_state.max_batch,
        lifecycle=lifecycle,
        events=events,
        event_counts=events.counts(),
        accounting=accounting,
    )
