"""Shared builders and fake chain clients for the test suite."""

from .fakes import (
    KEEPER_A,
    KEEPER_B,
    ROUND_ADDRESS,
    FakeRoundClient,
    TipAwareClient,
    finalized,
    round_state,
    stepped,
    write_sample_model,
)

__all__ = [
    "KEEPER_A",
    "KEEPER_B",
    "ROUND_ADDRESS",
    "FakeRoundClient",
    "TipAwareClient",
    "finalized",
    "round_state",
    "stepped",
    "write_sample_model",
]
