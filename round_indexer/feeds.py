"""Spectator feeds folded from persisted event lists.

Inputs are event records in wire shape (camelCase keys, large integers
already revived to ``int``), as produced by ``codec.revive_bigints``.
"""

from typing import Any, Dict, List, Sequence


def build_participant_roster(
    committed: Sequence[Dict[str, Any]],
    revealed: Sequence[Dict[str, Any]],
    player_claimed: Sequence[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    by_player: Dict[str, Dict[str, Any]] = {}

    for event in committed:
        by_player[event["player"].lower()] = {
            "address": event["player"],
            "team": event["team"],
            "slotIndex": event["slotIndex"],
            "committed": True,
            "revealed": False,
            "claimedAmount": None,
        }

    # Reveals and claims only annotate players we saw commit.
    for event in revealed:
        entry = by_player.get(event["player"].lower())
        if entry is not None:
            entry["revealed"] = True

    for event in player_claimed:
        entry = by_player.get(event["player"].lower())
        if entry is not None:
            entry["claimedAmount"] = str(event["amount"])

    return sorted(by_player.values(), key=lambda entry: (entry["team"], entry["slotIndex"]))


def build_keeper_leaderboard(stepped: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    by_keeper: Dict[str, Dict[str, Any]] = {}

    for event in stepped:
        key = event["keeper"].lower()
        entry = by_keeper.get(key)
        if entry is None:
            entry = by_keeper[key] = {
                "address": event["keeper"],
                "totalReward": 0,
                "stepCount": 0,
                "gensAdvanced": 0,
            }
        entry["totalReward"] += event["reward"]
        entry["stepCount"] += 1
        entry["gensAdvanced"] += event["toGen"] - event["fromGen"]

    ranked = sorted(by_keeper.values(), key=lambda entry: entry["totalReward"], reverse=True)
    return [dict(entry, totalReward=str(entry["totalReward"])) for entry in ranked]
