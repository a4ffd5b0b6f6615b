"""Immutable records for the round read model and its sync cursor.

Python attributes are snake_case; the persisted document uses their camelCase
aliases. Block numbers and wei amounts are ``BigInt`` fields, tagged as large
integers on the wire (see ``codec``).
"""

from dataclasses import dataclass
from typing import Annotated, Any, Dict, Literal, Optional, Tuple

from pydantic import AfterValidator, field_validator, model_validator

from ._util import _is_address
from .base import StrictBaseModel
from .codec import BigInt, NonNegativeInt

READ_MODEL_VERSION = "v1"
STATUS_OK = "ok"
STATUS_PENDING_FINALIZE = "pending-finalize"


def _check_address(value: str) -> str:
    if not _is_address(value):
        raise ValueError(f"invalid address {value!r}")
    return value


Address = Annotated[str, AfterValidator(_check_address)]


class BlockRange(StrictBaseModel):
    from_block: BigInt
    to_block: BigInt


@dataclass(frozen=True, slots=True)
class RoundState:
    """Contract-reported counters; the four value fields are wei amounts."""

    phase: int
    gen: int
    max_gen: int
    max_batch: int
    total_funded: int
    winner_paid: int
    keeper_paid: int
    treasury_dust: int


class SteppedEvent(StrictBaseModel):
    block_number: BigInt
    log_index: NonNegativeInt
    from_gen: NonNegativeInt
    to_gen: NonNegativeInt
    keeper: str
    reward: BigInt


class FinalizedEvent(StrictBaseModel):
    block_number: BigInt
    log_index: NonNegativeInt
    final_gen: NonNegativeInt
    winner_pool_final: BigInt
    keeper_paid: BigInt
    treasury_dust: BigInt


class ClaimedEvent(StrictBaseModel):
    """Bulk winner distribution; ``cumulative_winner_paid`` is a running total."""

    block_number: BigInt
    log_index: NonNegativeInt
    distributed: BigInt
    cumulative_winner_paid: BigInt
    treasury_dust: BigInt
    remaining_winner_pool: BigInt


class PlayerClaimedEvent(StrictBaseModel):
    block_number: BigInt
    log_index: NonNegativeInt
    player: str
    slot_index: NonNegativeInt
    amount: BigInt


class CommittedEvent(StrictBaseModel):
    block_number: BigInt
    log_index: NonNegativeInt
    player: str
    team: NonNegativeInt
    slot_index: NonNegativeInt


class RevealedEvent(StrictBaseModel):
    block_number: BigInt
    log_index: NonNegativeInt
    player: str
    team: NonNegativeInt
    slot_index: NonNegativeInt


# (python attribute, wire key, record type), in persisted order.
EVENT_CATEGORIES: Tuple[Tuple[str, str, type], ...] = (
    ("stepped", "stepped", SteppedEvent),
    ("finalized", "finalized", FinalizedEvent),
    ("claimed", "claimed", ClaimedEvent),
    ("player_claimed", "playerClaimed", PlayerClaimedEvent),
    ("committed", "committed", CommittedEvent),
    ("revealed", "revealed", RevealedEvent),
)


def log_order_key(event: Any) -> Tuple[int, int]:
    return (event.block_number, event.log_index)


class RoundEvents(StrictBaseModel):
    stepped: Tuple[SteppedEvent, ...]
    finalized: Tuple[FinalizedEvent, ...]
    claimed: Tuple[ClaimedEvent, ...]
    player_claimed: Tuple[PlayerClaimedEvent, ...]
    committed: Tuple[CommittedEvent, ...]
    revealed: Tuple[RevealedEvent, ...]

    @classmethod
    def empty(cls) -> "RoundEvents":
        return cls(**{attr: () for attr, _, _ in EVENT_CATEGORIES})

    def counts(self) -> Dict[str, int]:
        return {key: len(getattr(self, attr)) for attr, key, _ in EVENT_CATEGORIES}


class Lifecycle(StrictBaseModel):
    finalized: bool
    final_gen: Optional[NonNegativeInt]
    winner_pool_final: Optional[BigInt]


class Accounting(StrictBaseModel):
    """Contract totals, plus the reconciled fields once the round is finalized."""

    total_funded: BigInt
    winner_paid: BigInt
    keeper_paid: BigInt
    treasury_dust: BigInt
    derived_keeper_paid: Optional[BigInt]
    accounted_total: Optional[BigInt]
    invariant_holds: Optional[bool]
    reconciliation_status: Literal["ok", "pending-finalize"]


class RoundReadModel(StrictBaseModel):
    version: str
    chain_id: NonNegativeInt
    round_address: Address
    synced_at: str
    cursor: BlockRange
    phase: NonNegativeInt
    gen: NonNegativeInt
    max_gen: NonNegativeInt
    max_batch: NonNegativeInt
    lifecycle: Lifecycle
    events: RoundEvents
    event_counts: Dict[str, NonNegativeInt]
    accounting: Accounting

    @field_validator("version")
    @classmethod
    def _known_version(cls, value: str) -> str:
        if value != READ_MODEL_VERSION:
            raise ValueError(f"unsupported read model version {value!r}")
        return value

    @model_validator(mode="after")
    def _counts_match_events(self) -> "RoundReadModel":
        expected = self.events.counts()
        for key in sorted(set(expected) | set(self.event_counts)):
            if self.event_counts.get(key) != expected.get(key):
                raise ValueError(f"eventCounts.{key} does not match events.{key}")
        return self


class RoundSyncCursor(StrictBaseModel):
    """Resume point for the next sync; never authoritative for event content."""

    version: str
    chain_id: NonNegativeInt
    round_address: Address
    last_synced_block: BigInt
    synced_at: str

    @field_validator("version")
    @classmethod
    def _known_version(cls, value: str) -> str:
        if value != READ_MODEL_VERSION:
            raise ValueError("invalid cursor version")
        return value

    @classmethod
    def for_model(cls, model: RoundReadModel) -> "RoundSyncCursor":
        return cls(
            version=READ_MODEL_VERSION,
            chain_id=model.chain_id,
            round_address=model.round_address,
            last_synced_block=model.cursor.to_block,
            synced_at=model.synced_at,
        )
