"""Tests for read model construction and reorg-safe merging."""

import asyncio

import pytest
from web3 import Web3

from round_indexer import (
    ClaimedEvent,
    ConfigError,
    ConsistencyError,
    FetchError,
    KeeperPaidMismatchError,
    build_round_read_model,
    merge_event_window,
)
from tests.helpers import (
    KEEPER_A,
    KEEPER_B,
    ROUND_ADDRESS,
    FakeRoundClient,
    TipAwareClient,
    finalized,
    round_state,
    stepped,
)

SYNCED_AT = "2026-02-12T17:00:00.000Z"


def _build(client, **kwargs):
    kwargs.setdefault("round_address", ROUND_ADDRESS)
    kwargs.setdefault("synced_at", SYNCED_AT)
    return asyncio.run(build_round_read_model(client, **kwargs))


def _finalized_client(**overrides) -> FakeRoundClient:
    params = dict(
        chain_id=11011,
        state=round_state(total_funded=11, winner_paid=6, keeper_paid=2, treasury_dust=3),
        stepped=[stepped(120, reward=0, from_gen=2, to_gen=4), stepped(100, reward=2)],
        finalized=[finalized(130, keeper_paid=2, final_gen=4, treasury_dust=1)],
        claimed=[
            ClaimedEvent(
                block_number=140,
                log_index=0,
                distributed=6,
                cumulative_winner_paid=6,
                treasury_dust=3,
                remaining_winner_pool=0,
            )
        ],
    )
    params.update(overrides)
    return FakeRoundClient(**params)


class TestBuildRoundReadModel:
    """Single-window builds from a fake client."""

    def test_builds_reconciled_model_for_finalized_round(self) -> None:
        """A finalized round reconciles keeper pay and funds accounted."""
        model = _build(_finalized_client(), from_block=0, to_block=200)

        assert model.version == "v1"
        assert model.chain_id == 11011
        assert model.round_address == ROUND_ADDRESS
        assert model.synced_at == SYNCED_AT
        assert (model.cursor.from_block, model.cursor.to_block) == (0, 200)
        assert model.lifecycle.finalized is True
        assert model.lifecycle.final_gen == 4
        assert model.accounting.derived_keeper_paid == 2
        assert model.accounting.accounted_total == 11
        assert model.accounting.invariant_holds is True
        assert model.accounting.reconciliation_status == "ok"
        assert model.event_counts == {
            "stepped": 2,
            "finalized": 1,
            "claimed": 1,
            "playerClaimed": 0,
            "committed": 0,
            "revealed": 0,
        }

    def test_sorts_events_by_block_and_log_index(self) -> None:
        """Events come back in chain order regardless of fetch order."""
        client = _finalized_client(
            stepped=[stepped(120, log_index=3, reward=0), stepped(100, reward=1), stepped(120, log_index=1, reward=1)]
        )
        model = _build(client, from_block=0, to_block=200)

        assert [(e.block_number, e.log_index) for e in model.events.stepped] == [(100, 0), (120, 1), (120, 3)]

    def test_unfinalized_round_is_pending(self) -> None:
        """Without a Finalized event the derived fields stay empty."""
        client = FakeRoundClient(state=round_state(phase=1, gen=0, keeper_paid=0), stepped=[stepped(100, reward=0)])
        model = _build(client, from_block=0, to_block=200)

        assert model.lifecycle.finalized is False
        assert model.lifecycle.final_gen is None
        assert model.lifecycle.winner_pool_final is None
        assert model.accounting.reconciliation_status == "pending-finalize"
        assert model.accounting.derived_keeper_paid is None
        assert model.accounting.accounted_total is None
        assert model.accounting.invariant_holds is None

    def test_keeper_paid_mismatch_fails_build(self) -> None:
        """Disagreeing keeper pay aborts the build."""
        client = _finalized_client(finalized=[finalized(130, keeper_paid=3)])

        with pytest.raises(KeeperPaidMismatchError, match="keeper paid mismatch"):
            _build(client, from_block=0, to_block=200)

    def test_overdrawn_round_builds_with_warning(self, capsys: pytest.CaptureFixture) -> None:
        """A broken funds invariant is recorded and logged, not raised."""
        client = _finalized_client(state=round_state(total_funded=5))
        model = _build(client, from_block=0, to_block=200)

        assert model.accounting.invariant_holds is False
        assert model.accounting.reconciliation_status == "ok"
        assert "WARN:" in capsys.readouterr().err

    def test_is_deterministic_for_same_inputs(self) -> None:
        """Two builds over identical inputs produce equal models."""
        first = _build(_finalized_client(), from_block=0, to_block=200)
        second = _build(_finalized_client(), from_block=0, to_block=200)

        assert first == second
        assert first.model_dump_json() == second.model_dump_json()

    def test_rejects_inverted_range(self) -> None:
        """from_block above to_block is a configuration error."""
        with pytest.raises(ConfigError, match="invalid block range: fromBlock 50 > toBlock 10"):
            _build(FakeRoundClient(), from_block=50, to_block=10)

    def test_resolves_to_block_from_latest(self) -> None:
        """A client exposing the tip fills in a missing to_block."""
        client = TipAwareClient(latest_block=321)
        model = _build(client, from_block=0)

        assert model.cursor.to_block == 321
        assert client.ranges[-1].to_block == 321

    def test_requires_to_block_without_latest(self) -> None:
        """A client without a tip query needs an explicit to_block."""
        with pytest.raises(ConfigError, match="to_block is required"):
            _build(FakeRoundClient(), from_block=0)

    def test_fetch_failure_propagates(self) -> None:
        """Any failed chain read fails the whole build."""
        with pytest.raises(FetchError, match="claimed failed"):
            _build(_finalized_client(fail_on="claimed"), from_block=0, to_block=200)


class TestIncrementalBuild:
    """Folding a previous snapshot into a new window."""

    def test_keeps_previous_events_before_window(self) -> None:
        """Events below from_block carry over; the window supplies the rest."""
        first_client = FakeRoundClient(state=round_state(keeper_paid=0), stepped=[stepped(100, reward=0)])
        previous = _build(first_client, from_block=0, to_block=110)

        second_client = FakeRoundClient(
            state=round_state(keeper_paid=0),
            stepped=[stepped(120, reward=0, from_gen=2, to_gen=4, keeper=KEEPER_B)],
        )
        model = _build(second_client, from_block=105, to_block=150, previous_model=previous)

        assert [e.block_number for e in model.events.stepped] == [100, 120]
        assert [e.keeper for e in model.events.stepped] == [KEEPER_A, KEEPER_B]

    def test_replaces_reorged_events_in_overlap(self) -> None:
        """A re-read window replaces the stale log instead of duplicating it."""
        previous = _build(
            FakeRoundClient(state=round_state(keeper_paid=0), stepped=[stepped(100, reward=0), stepped(108, reward=2)]),
            from_block=0,
            to_block=110,
        )
        model = _build(
            FakeRoundClient(state=round_state(keeper_paid=0), stepped=[stepped(108, reward=4)]),
            from_block=98,
            to_block=120,
            previous_model=previous,
        )

        assert [e.block_number for e in model.events.stepped] == [108]
        assert model.events.stepped[0].reward == 4

    def test_refetch_at_boundary_block_keeps_single_entry(self) -> None:
        """Stepped@10 reward=2 re-read over [10, 12] as reward=4 leaves one entry."""
        previous = _build(
            FakeRoundClient(state=round_state(keeper_paid=0), stepped=[stepped(10, reward=2)]),
            from_block=0,
            to_block=10,
        )
        model = _build(
            FakeRoundClient(state=round_state(keeper_paid=0), stepped=[stepped(10, reward=4)]),
            from_block=10,
            to_block=12,
            previous_model=previous,
        )

        assert [(e.block_number, e.reward) for e in model.events.stepped] == [(10, 4)]

    def test_drops_reorged_events_missing_from_refetch(self) -> None:
        """A log that vanished in the reorg disappears from the merged model."""
        previous = _build(
            FakeRoundClient(state=round_state(keeper_paid=0), stepped=[stepped(90, reward=0), stepped(105, reward=2)]),
            from_block=0,
            to_block=110,
        )
        model = _build(
            FakeRoundClient(state=round_state(keeper_paid=0)),
            from_block=98,
            to_block=120,
            previous_model=previous,
        )

        assert [e.block_number for e in model.events.stepped] == [90]

    def test_rejects_previous_model_for_other_round(self) -> None:
        """A snapshot of another round cannot seed this one."""
        previous = _build(FakeRoundClient(state=round_state(keeper_paid=0)), from_block=0, to_block=10)
        client = FakeRoundClient(state=round_state(keeper_paid=0))

        with pytest.raises(ConsistencyError, match="round address"):
            _build(
                client,
                round_address="0x2222222222222222222222222222222222222222",
                from_block=5,
                to_block=20,
                previous_model=previous,
            )
        assert client.ranges == []

    def test_rejects_previous_model_for_other_chain(self) -> None:
        """A snapshot from another chain cannot seed this one."""
        previous = _build(FakeRoundClient(chain_id=1, state=round_state(keeper_paid=0)), from_block=0, to_block=10)

        with pytest.raises(ConsistencyError, match="chain id"):
            _build(
                FakeRoundClient(chain_id=11011, state=round_state(keeper_paid=0)),
                from_block=5,
                to_block=20,
                previous_model=previous,
            )

    def test_matches_round_address_case_insensitively(self) -> None:
        """Checksum and lowercase forms name the same round."""
        mixed = Web3.to_checksum_address("0xabcdef0000000000000000000000000000000001")
        previous = _build(FakeRoundClient(state=round_state(keeper_paid=0)), round_address=mixed, from_block=0, to_block=10)

        model = _build(
            FakeRoundClient(state=round_state(keeper_paid=0)),
            round_address=mixed.lower(),
            from_block=5,
            to_block=20,
            previous_model=previous,
        )

        assert model.cursor.to_block == 20


class TestMergeEventWindow:
    """The merge rule on its own."""

    def test_rejects_duplicate_positions(self) -> None:
        """Two logs at the same (block, logIndex) are inconsistent."""
        with pytest.raises(ConsistencyError, match="duplicate stepped log at block 100 index 0"):
            merge_event_window([], [stepped(100), stepped(100, reward=5)], from_block=0, category="stepped")

    def test_previous_entries_at_from_block_are_replaced(self) -> None:
        """The boundary block belongs to the fresh window."""
        merged = merge_event_window([stepped(99), stepped(100, reward=1)], [stepped(100, reward=7)], from_block=100)

        assert [(e.block_number, e.reward) for e in merged] == [(99, 2), (100, 7)]
