"""Sync orchestration: window → build → persist, plus a polling loop."""

import asyncio
import os
from typing import Any, Dict, Optional

from ._util import _log, _same_address
from .builder import build_round_read_model
from .client import RoundIndexerClient, Web3RoundClient
from .config import DEFAULTS, parse_round_address
from .errors import ConfigError, ConsistencyError, FetchError
from .models import RoundSyncCursor
from .store import read_round_read_model, read_round_sync_cursor, write_round_read_model, write_round_sync_cursor
from .window import compute_sync_window


class RoundSyncer:
    def __init__(self, config: Dict[str, Any], client: Optional[RoundIndexerClient] = None):
        self.config = config
        self.out_path = os.path.abspath(config.get("out_path") or DEFAULTS["out_path"])
        self.cursor_path = os.path.abspath(config.get("cursor_path") or DEFAULTS["cursor_path"])
        self.confirmations = int(config.get("confirmations", DEFAULTS["confirmations"]))
        self.reorg_lookback = int(config.get("reorg_lookback", DEFAULTS["reorg_lookback"]))
        self.from_block: Optional[int] = config.get("from_block")
        self.to_block: Optional[int] = config.get("to_block")
        self.poll_interval = int(config.get("poll_interval", DEFAULTS["poll_interval"]))

        if client is None:
            client = Web3RoundClient(
                config.get("rpc_http"),
                request_timeout=int(config.get("request_timeout", DEFAULTS["request_timeout"])),
                batch_size=int(config.get("batch_size", DEFAULTS["batch_size"])),
            )
        self.client = client

    async def resolve_round_address(self) -> str:
        """Round from config if given, otherwise the registry's ``currentRound()``."""
        explicit = self.config.get("round_address")
        if explicit:
            return parse_round_address(explicit)

        registry = self.config.get("registry_address")
        if not registry:
            raise ConfigError("--round, ROUND_ADDRESS, --registry, or ARENA_REGISTRY_ADDRESS is required")
        get_current_round = getattr(self.client, "get_current_round", None)
        if get_current_round is None:
            raise ConfigError("client cannot resolve the current round from a registry")
        return parse_round_address(await get_current_round(registry))

    async def sync_once(self, round_address: str) -> Dict[str, Any]:
        """Run one pass and persist the result.

        Storage is written only after the new model is fully built, so any
        failure leaves the previous model and cursor untouched.
        """
        round_address = parse_round_address(round_address)
        get_latest = getattr(self.client, "get_latest_block_number", None)
        if get_latest is None:
            raise ConfigError("client does not expose latest block number")

        previous_model = read_round_read_model(self.out_path) if os.path.exists(self.out_path) else None
        cursor = read_round_sync_cursor(self.cursor_path) if self.from_block is None else None

        if cursor is not None and previous_model is not None and cursor.chain_id != previous_model.chain_id:
            raise ConsistencyError("cursor chain id does not match existing read model chain id")
        if cursor is not None and not _same_address(cursor.round_address, round_address):
            raise ConsistencyError("cursor round address does not match requested round")

        latest_block = int(await get_latest())
        window = compute_sync_window(
            latest_block=latest_block,
            confirmations=self.confirmations,
            reorg_lookback=self.reorg_lookback,
            cursor=cursor,
            explicit_from_block=self.from_block,
            explicit_to_block=self.to_block,
        )

        model = await build_round_read_model(
            client=self.client,
            round_address=round_address,
            from_block=window.from_block,
            to_block=window.to_block,
            previous_model=previous_model,
        )
        if cursor is not None and cursor.chain_id != model.chain_id:
            raise ConsistencyError("cursor chain id does not match target chain")

        write_round_read_model(self.out_path, model)
        write_round_sync_cursor(self.cursor_path, RoundSyncCursor.for_model(model))

        _log(
            f"Synced {model.round_address} blocks {window.from_block}-{window.to_block} "
            f"(latest={latest_block}, cursor={'yes' if window.used_cursor else 'no'}, "
            f"status={model.accounting.reconciliation_status})"
        )
        return {
            "outPath": self.out_path,
            "cursorPath": self.cursor_path,
            "chainId": model.chain_id,
            "roundAddress": model.round_address,
            "fromBlock": str(model.cursor.from_block),
            "toBlock": str(model.cursor.to_block),
            "confirmations": str(self.confirmations),
            "reorgLookback": str(self.reorg_lookback),
            "usedCursor": window.used_cursor,
            "finalized": model.lifecycle.finalized,
            "reconciliationStatus": model.accounting.reconciliation_status,
            "invariantHolds": model.accounting.invariant_holds,
        }

    async def watch(
        self,
        round_address: str,
        interval: Optional[int] = None,
        max_passes: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """Sync repeatedly. Fetch and I/O failures back off and retry; anything else raises."""
        interval = self.poll_interval if interval is None else interval
        backoff = max(interval, 1)
        max_backoff = 60
        passes = 0
        last_summary = None

        while max_passes is None or passes < max_passes:
            passes += 1
            try:
                last_summary = await self.sync_once(round_address)
                backoff = max(interval, 1)
                delay = max(interval, 1)
            except (FetchError, OSError) as exc:
                _log(f"Sync error: {exc}")
                delay = backoff
                backoff = min(backoff * 2, max_backoff)
            if max_passes is not None and passes >= max_passes:
                break
            await asyncio.sleep(delay)
        return last_summary
