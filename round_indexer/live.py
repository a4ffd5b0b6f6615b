"""Spectator payload built from the persisted read model.

The reader never touches the chain. It parses whatever snapshot is on disk,
renders wei amounts as decimal strings and reports how old the snapshot is.
Older snapshots without event lists still render, with empty feeds.
"""

import json
import os
from datetime import datetime
from typing import Any, Dict, Optional

from ._util import _iso_utc, _parse_iso_utc, _utc_now
from .codec import revive_bigints
from .errors import ReadModelUnavailableError
from .feeds import build_keeper_leaderboard, build_participant_roster
from .models import EVENT_CATEGORIES

STALE_AFTER_SECONDS = 30.0

PHASE_LABELS = {0: "commit", 1: "reveal", 2: "sim", 3: "claim"}


def phase_label(phase: int) -> str:
    return PHASE_LABELS.get(phase, "unknown")


def _decimal(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def build_round_live_payload(
    document: Dict[str, Any],
    path: str,
    now: Optional[datetime] = None,
    stale_after: float = STALE_AFTER_SECONDS,
) -> Dict[str, Any]:
    now = now or _utc_now()
    lifecycle = document["lifecycle"]
    accounting = document["accounting"]
    cursor = document["cursor"]
    events = document.get("events") or {}
    counts = document.get("eventCounts") or {}

    age_ms = int((now - _parse_iso_utc(document["syncedAt"])).total_seconds() * 1000)

    return {
        "round": {
            "chainId": document["chainId"],
            "roundAddress": document["roundAddress"],
            "phase": document["phase"],
            "phaseLabel": phase_label(document["phase"]),
            "gen": document["gen"],
            "maxGen": document["maxGen"],
            "maxBatch": document["maxBatch"],
            "finalized": lifecycle["finalized"],
            "finalGen": lifecycle["finalGen"],
        },
        "lifecycle": {
            "finalized": lifecycle["finalized"],
            "finalGen": lifecycle["finalGen"],
            "winnerPoolFinal": _decimal(lifecycle["winnerPoolFinal"]),
        },
        "events": {
            key: len(events[key]) if key in events else counts.get(key, 0) for _, key, _ in EVENT_CATEGORIES
        },
        "accounting": {
            "totalFunded": _decimal(accounting["totalFunded"]),
            "winnerPaid": _decimal(accounting["winnerPaid"]),
            "keeperPaid": _decimal(accounting["keeperPaid"]),
            "treasuryDust": _decimal(accounting["treasuryDust"]),
            "derivedKeeperPaid": _decimal(accounting.get("derivedKeeperPaid")),
            "accountedTotal": _decimal(accounting.get("accountedTotal")),
            "invariantHolds": accounting.get("invariantHolds"),
            "reconciliationStatus": accounting["reconciliationStatus"],
        },
        "participants": build_participant_roster(
            events.get("committed", []),
            events.get("revealed", []),
            events.get("playerClaimed", []),
        ),
        "keepers": build_keeper_leaderboard(events.get("stepped", [])),
        "source": {
            "path": path,
            "syncedAt": document["syncedAt"],
            "ageMs": age_ms,
            "stale": age_ms > stale_after * 1000,
            "cursor": {
                "fromBlock": _decimal(cursor["fromBlock"]),
                "toBlock": _decimal(cursor["toBlock"]),
            },
            "generatedAt": _iso_utc(now),
        },
    }


def read_round_live_payload(
    path: Optional[str],
    now: Optional[datetime] = None,
    stale_after: float = STALE_AFTER_SECONDS,
) -> Dict[str, Any]:
    if not path:
        raise ReadModelUnavailableError("read model path is not configured")
    if not os.path.exists(path):
        raise ReadModelUnavailableError(f"{path} does not exist")
    try:
        with open(path, "r", encoding="utf-8") as f:
            document = revive_bigints(json.load(f))
        return build_round_live_payload(document, path, now=now, stale_after=stale_after)
    except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ReadModelUnavailableError(f"{path} is not a readable read model: {exc}") from exc
