#!/usr/bin/env python3
"""Round read-model indexer.

Usage:
  round-indexer --config config.json sync --round 0xRound
  round-indexer sync --registry 0xRegistry --confirmations 2 --reorg-lookback 12
  round-indexer watch --round 0xRound --interval 15
  round-indexer serve --out data/round-read-model.latest.json --port 8080
  round-indexer show --out data/round-read-model.latest.json

Notes:
- Settings resolve from CLI flags, then environment variables, then the config file.
- Deleting the cursor file forces a full resync from block 0 (or --from-block).
"""

import argparse
import asyncio
import sys
from typing import Any, Dict, List, Optional

from ._util import _json_dumps, _log
from .config import load_config, resolve_config
from .errors import RoundIndexerError
from .live import read_round_live_payload
from .server import ReadServer, ReadServerConfig
from .sync import RoundSyncer


def _add_sync_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--rpc", dest="rpc_http", default=None, help="JSON-RPC HTTP endpoint")
    parser.add_argument("--round", dest="round_address", default=None, help="Round contract address")
    parser.add_argument("--registry", dest="registry_address", default=None, help="Registry to resolve currentRound()")
    parser.add_argument("--from-block", dest="from_block", default=None)
    parser.add_argument("--to-block", dest="to_block", default=None)
    parser.add_argument("--confirmations", default=None)
    parser.add_argument("--reorg-lookback", dest="reorg_lookback", default=None)
    parser.add_argument("--batch-size", dest="batch_size", default=None)
    parser.add_argument("--out", dest="out_path", default=None, help="Read model output path")
    parser.add_argument("--cursor", dest="cursor_path", default=None, help="Sync cursor path")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Round read-model indexer")
    parser.add_argument("--config", default=None, help="Path to config JSON (default: config.json if present)")

    sub = parser.add_subparsers(dest="command", required=True)

    sync_parser = sub.add_parser("sync", help="Run one sync pass")
    _add_sync_args(sync_parser)

    watch_parser = sub.add_parser("watch", help="Sync repeatedly")
    _add_sync_args(watch_parser)
    watch_parser.add_argument("--interval", dest="poll_interval", default=None, help="Seconds between passes")

    serve_parser = sub.add_parser("serve", help="Serve the read model over HTTP")
    serve_parser.add_argument("--out", dest="out_path", default=None)
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", default=None)
    serve_parser.add_argument("--stale-after", dest="stale_after", default=None)

    show_parser = sub.add_parser("show", help="Print the live payload for the persisted read model")
    show_parser.add_argument("--out", dest="out_path", default=None)
    show_parser.add_argument("--stale-after", dest="stale_after", default=None)

    return parser


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    return {key: value for key, value in vars(args).items() if key not in ("config", "command")}


async def _run_sync(cfg: Dict[str, Any]) -> Dict[str, Any]:
    syncer = RoundSyncer(cfg)
    round_address = await syncer.resolve_round_address()
    return await syncer.sync_once(round_address)


async def _run_watch(cfg: Dict[str, Any]) -> None:
    syncer = RoundSyncer(cfg)
    round_address = await syncer.resolve_round_address()
    _log(f"Watching round {round_address} every {syncer.poll_interval}s")
    await syncer.watch(round_address)


async def _run_serve(cfg: Dict[str, Any]) -> None:
    server = ReadServer(
        ReadServerConfig(
            read_model_path=cfg["out_path"],
            host=cfg["host"],
            port=cfg["port"],
            stale_after=float(cfg["stale_after"]),
        )
    )
    try:
        await server.run()
    finally:
        await server.stop()


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        cfg = resolve_config(load_config(args.config), _overrides(args))

        if args.command == "sync":
            summary = asyncio.run(_run_sync(cfg))
            print(_json_dumps(summary, indent=2))
            return

        if args.command == "watch":
            asyncio.run(_run_watch(cfg))
            return

        if args.command == "serve":
            asyncio.run(_run_serve(cfg))
            return

        if args.command == "show":
            payload = read_round_live_payload(cfg["out_path"], stale_after=float(cfg["stale_after"]))
            print(_json_dumps(payload, indent=2))
            return
    except RoundIndexerError as exc:
        _log(f"ERROR: {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
