"""Post-finalize accounting checks over the merged event streams."""

from dataclasses import dataclass
from typing import Optional, Sequence

from .errors import KeeperPaidMismatchError, ReconciliationError
from .models import ClaimedEvent, FinalizedEvent, PlayerClaimedEvent, SteppedEvent


@dataclass(frozen=True, slots=True)
class ReconciliationResult:
    derived_keeper_paid: int
    accounted_total: int
    invariant_holds: bool


def reconcile_round_events(
    total_funded: int,
    stepped: Sequence[SteppedEvent],
    finalized: Optional[FinalizedEvent],
    claimed: Sequence[ClaimedEvent],
    player_claimed: Sequence[PlayerClaimedEvent],
) -> ReconciliationResult:
    """Verify keeper payouts and compute the funds-accounted total.

    A keeper-paid mismatch raises: the event stream and the contract disagree
    about money already paid out. ``accounted_total > total_funded`` does not
    raise; it comes back as ``invariant_holds=False`` for operators to inspect.
    """
    if finalized is None:
        raise ReconciliationError("missing finalized event")

    derived_keeper_paid = sum(event.reward for event in stepped)
    if derived_keeper_paid != finalized.keeper_paid:
        raise KeeperPaidMismatchError(derived_keeper_paid, finalized.keeper_paid)

    last_claim = claimed[-1] if claimed else None
    if last_claim is not None:
        winner_paid = last_claim.cumulative_winner_paid
        treasury_dust = last_claim.treasury_dust
    else:
        # Per-player claim path: no bulk distribution was emitted.
        winner_paid = sum(event.amount for event in player_claimed)
        treasury_dust = finalized.treasury_dust

    accounted_total = winner_paid + finalized.keeper_paid + treasury_dust
    return ReconciliationResult(
        derived_keeper_paid=derived_keeper_paid,
        accounted_total=accounted_total,
        invariant_holds=accounted_total <= total_funded,
    )
