"""Chain access for the round contract: state reads and decoded event logs.

``RoundIndexerClient`` is the interface the builder depends on; tests supply
fakes. ``Web3RoundClient`` implements it over a JSON-RPC HTTP endpoint.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from eth_utils import event_abi_to_log_topic
from hexbytes import HexBytes
from web3 import Web3
from web3._utils.events import get_event_data
from web3.exceptions import Web3Exception

from ._util import ZERO_ADDRESS, _is_address, _log, _parse_int, _to_checksum
from .errors import ConfigError, FetchError
from .models import (
    BlockRange,
    ClaimedEvent,
    CommittedEvent,
    FinalizedEvent,
    PlayerClaimedEvent,
    RevealedEvent,
    RoundState,
    SteppedEvent,
)


class RoundIndexerClient(Protocol):
    """Read-only view of one round contract.

    Implementations may also provide ``async get_latest_block_number() -> int``;
    it is only required when the caller does not pass an explicit ``to_block``.
    """

    async def get_chain_id(self) -> int: ...

    async def read_round_state(self, round_address: str) -> RoundState: ...

    async def get_stepped_events(self, round_address: str, block_range: BlockRange) -> List[SteppedEvent]: ...

    async def get_finalized_events(self, round_address: str, block_range: BlockRange) -> List[FinalizedEvent]: ...

    async def get_claimed_events(self, round_address: str, block_range: BlockRange) -> List[ClaimedEvent]: ...

    async def get_player_claimed_events(
        self, round_address: str, block_range: BlockRange
    ) -> List[PlayerClaimedEvent]: ...

    async def get_committed_events(self, round_address: str, block_range: BlockRange) -> List[CommittedEvent]: ...

    async def get_revealed_events(self, round_address: str, block_range: BlockRange) -> List[RevealedEvent]: ...


def _view_abi(name: str, output_type: str) -> Dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": output_type}],
    }


def _event_abi(name: str, inputs: List[Tuple[str, str]]) -> Dict[str, Any]:
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [{"name": arg, "type": arg_type, "indexed": False} for arg, arg_type in inputs],
    }


ROUND_READ_ABI = [
    _view_abi("phase", "uint8"),
    _view_abi("gen", "uint16"),
    _view_abi("maxGen", "uint16"),
    _view_abi("maxBatch", "uint16"),
    _view_abi("totalFunded", "uint256"),
    _view_abi("winnerPaid", "uint256"),
    _view_abi("keeperPaid", "uint256"),
    _view_abi("treasuryDust", "uint256"),
]

REGISTRY_ABI = [_view_abi("currentRound", "address")]

STEPPED_EVENT = _event_abi(
    "Stepped", [("fromGen", "uint16"), ("toGen", "uint16"), ("keeper", "address"), ("reward", "uint256")]
)
FINALIZED_EVENT = _event_abi(
    "Finalized",
    [("finalGen", "uint16"), ("winnerPoolFinal", "uint256"), ("keeperPaid", "uint256"), ("treasuryDust", "uint256")],
)
CLAIMED_EVENT = _event_abi(
    "Claimed",
    [
        ("distributed", "uint256"),
        ("cumulativeWinnerPaid", "uint256"),
        ("treasuryDust", "uint256"),
        ("remainingWinnerPool", "uint256"),
    ],
)
PLAYER_CLAIMED_EVENT = _event_abi("PlayerClaimed", [("player", "address"), ("slotIndex", "uint8"), ("amount", "uint256")])
COMMITTED_EVENT = _event_abi("Committed", [("player", "address"), ("team", "uint8"), ("slotIndex", "uint8")])
REVEALED_EVENT = _event_abi("Revealed", [("player", "address"), ("team", "uint8"), ("slotIndex", "uint8")])


def event_topic(event_abi: Dict[str, Any]) -> str:
    return Web3.to_hex(event_abi_to_log_topic(event_abi))


def _normalize_log(log: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(log)
    for key in ("transactionHash", "blockHash"):
        if isinstance(out.get(key), str):
            out[key] = HexBytes(out[key])
    if isinstance(out.get("data"), str):
        out["data"] = HexBytes(out["data"])
    if isinstance(out.get("topics"), list):
        out["topics"] = [HexBytes(t) if isinstance(t, str) else t for t in out["topics"]]
    for key in ("blockNumber", "transactionIndex", "logIndex"):
        if out.get(key) is not None:
            out[key] = _parse_int(out[key])
    if "address" in out and isinstance(out["address"], str):
        out["address"] = _to_checksum(out["address"])
    return out


def _require_log_position(event_name: str, log: Dict[str, Any]) -> Tuple[int, int]:
    block_number = log.get("blockNumber")
    log_index = log.get("logIndex")
    if block_number is None or log_index is None:
        raise FetchError(f"{event_name} log missing block/log index")
    return block_number, log_index


def _decode_stepped(args: Dict[str, Any], block_number: int, log_index: int) -> SteppedEvent:
    return SteppedEvent(
        block_number=block_number,
        log_index=log_index,
        from_gen=int(args["fromGen"]),
        to_gen=int(args["toGen"]),
        keeper=args["keeper"],
        reward=int(args["reward"]),
    )


def _decode_finalized(args: Dict[str, Any], block_number: int, log_index: int) -> FinalizedEvent:
    return FinalizedEvent(
        block_number=block_number,
        log_index=log_index,
        final_gen=int(args["finalGen"]),
        winner_pool_final=int(args["winnerPoolFinal"]),
        keeper_paid=int(args["keeperPaid"]),
        treasury_dust=int(args["treasuryDust"]),
    )


def _decode_claimed(args: Dict[str, Any], block_number: int, log_index: int) -> ClaimedEvent:
    return ClaimedEvent(
        block_number=block_number,
        log_index=log_index,
        distributed=int(args["distributed"]),
        cumulative_winner_paid=int(args["cumulativeWinnerPaid"]),
        treasury_dust=int(args["treasuryDust"]),
        remaining_winner_pool=int(args["remainingWinnerPool"]),
    )


def _decode_player_claimed(args: Dict[str, Any], block_number: int, log_index: int) -> PlayerClaimedEvent:
    return PlayerClaimedEvent(
        block_number=block_number,
        log_index=log_index,
        player=args["player"],
        slot_index=int(args["slotIndex"]),
        amount=int(args["amount"]),
    )


def _decode_committed(args: Dict[str, Any], block_number: int, log_index: int) -> CommittedEvent:
    return CommittedEvent(
        block_number=block_number,
        log_index=log_index,
        player=args["player"],
        team=int(args["team"]),
        slot_index=int(args["slotIndex"]),
    )


def _decode_revealed(args: Dict[str, Any], block_number: int, log_index: int) -> RevealedEvent:
    return RevealedEvent(
        block_number=block_number,
        log_index=log_index,
        player=args["player"],
        team=int(args["team"]),
        slot_index=int(args["slotIndex"]),
    )


def _is_oversized_query(exc: Exception) -> bool:
    msg = str(exc).lower()
    return "query returned more than" in msg or "too many" in msg or "block range" in msg


class Web3RoundClient:
    """``RoundIndexerClient`` over web3.py's HTTP provider.

    web3 calls block, so every chain read runs in a worker thread and the
    builder can fan them out with ``asyncio.gather``.
    """

    def __init__(
        self,
        rpc_http: Optional[str] = None,
        request_timeout: int = 25,
        batch_size: int = 2000,
        w3: Optional[Any] = None,
    ):
        if w3 is None:
            if not rpc_http:
                raise ConfigError("rpc_http is required")
            w3 = Web3(Web3.HTTPProvider(rpc_http, request_kwargs={"timeout": request_timeout}))
        if batch_size < 1:
            raise ConfigError("batch_size must be at least 1")
        self.w3 = w3
        self.batch_size = batch_size

    async def get_chain_id(self) -> int:
        return await self._call("eth_chainId", lambda: int(self.w3.eth.chain_id))

    async def get_latest_block_number(self) -> int:
        return await self._call("eth_blockNumber", lambda: int(self.w3.eth.block_number))

    async def read_round_state(self, round_address: str) -> RoundState:
        contract = self.w3.eth.contract(address=_to_checksum(round_address), abi=ROUND_READ_ABI)
        names = ("phase", "gen", "maxGen", "maxBatch", "totalFunded", "winnerPaid", "keeperPaid", "treasuryDust")
        values = await asyncio.gather(
            *(self._call(f"{name}()", getattr(contract.functions, name)().call) for name in names)
        )
        phase, gen, max_gen, max_batch, total_funded, winner_paid, keeper_paid, treasury_dust = (
            int(value) for value in values
        )
        return RoundState(
            phase=phase,
            gen=gen,
            max_gen=max_gen,
            max_batch=max_batch,
            total_funded=total_funded,
            winner_paid=winner_paid,
            keeper_paid=keeper_paid,
            treasury_dust=treasury_dust,
        )

    async def get_current_round(self, registry_address: str) -> str:
        if not _is_address(registry_address):
            raise ConfigError(f"invalid registry address: {registry_address}")
        contract = self.w3.eth.contract(address=_to_checksum(registry_address), abi=REGISTRY_ABI)
        current = await self._call("currentRound()", contract.functions.currentRound().call)
        if not current or current.lower() == ZERO_ADDRESS:
            raise ConfigError("registry has no current round set")
        return _to_checksum(current)

    async def get_stepped_events(self, round_address: str, block_range: BlockRange) -> List[SteppedEvent]:
        return await self._get_events(STEPPED_EVENT, _decode_stepped, round_address, block_range)

    async def get_finalized_events(self, round_address: str, block_range: BlockRange) -> List[FinalizedEvent]:
        return await self._get_events(FINALIZED_EVENT, _decode_finalized, round_address, block_range)

    async def get_claimed_events(self, round_address: str, block_range: BlockRange) -> List[ClaimedEvent]:
        return await self._get_events(CLAIMED_EVENT, _decode_claimed, round_address, block_range)

    async def get_player_claimed_events(
        self, round_address: str, block_range: BlockRange
    ) -> List[PlayerClaimedEvent]:
        return await self._get_events(PLAYER_CLAIMED_EVENT, _decode_player_claimed, round_address, block_range)

    async def get_committed_events(self, round_address: str, block_range: BlockRange) -> List[CommittedEvent]:
        return await self._get_events(COMMITTED_EVENT, _decode_committed, round_address, block_range)

    async def get_revealed_events(self, round_address: str, block_range: BlockRange) -> List[RevealedEvent]:
        return await self._get_events(REVEALED_EVENT, _decode_revealed, round_address, block_range)

    async def _call(self, what: str, fn: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(fn)
        except FetchError:
            raise
        except Exception as exc:
            raise FetchError(f"{what} failed: {exc}") from exc

    async def _get_events(
        self,
        event_abi: Dict[str, Any],
        decode: Callable[[Dict[str, Any], int, int], Any],
        round_address: str,
        block_range: BlockRange,
    ) -> List[Any]:
        name = event_abi["name"]
        logs = await self._call(
            f"get_logs({name})",
            lambda: self.fetch_logs(round_address, event_topic(event_abi), block_range.from_block, block_range.to_block),
        )
        events = []
        for raw in logs:
            normalized = _normalize_log(raw)
            block_number, log_index = _require_log_position(name, normalized)
            event_data = get_event_data(self.w3.codec, event_abi, normalized)
            events.append(decode(dict(event_data["args"]), block_number, log_index))
        return events

    def fetch_logs(self, address: str, topic0: str, from_block: int, to_block: int) -> List[Dict[str, Any]]:
        """Fetch logs in ``batch_size`` chunks, halving the chunk when the node refuses."""
        collected: List[Dict[str, Any]] = []
        current = from_block
        batch_size = self.batch_size
        checksum = _to_checksum(address)

        while current <= to_block:
            batch_to = min(current + batch_size - 1, to_block)
            try:
                logs = self.w3.eth.get_logs(
                    {
                        "fromBlock": current,
                        "toBlock": batch_to,
                        "address": checksum,
                        "topics": [topic0],
                    }
                )
            except (ValueError, Web3Exception) as exc:
                if batch_size <= 1 or not _is_oversized_query(exc):
                    raise
                batch_size = max(batch_size // 2, 1)
                _log(f"WARN: get_logs too large ({current}-{batch_to}), reducing batch size to {batch_size}")
                continue
            collected.extend(logs)
            current = batch_to + 1
        return collected
