"""
HTTP read endpoint for spectators.

Provides:
- /api/round/live - Live round payload from the persisted read model
- /api/health - Liveness check

The server only reads the snapshot file; it never calls the chain.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from aiohttp import web

from ._util import _iso_utc, _log, _utc_now
from .errors import ReadModelUnavailableError
from .live import STALE_AFTER_SECONDS, read_round_live_payload

SERVICE_NAME = "round-indexer"

_NO_STORE = {"cache-control": "no-store"}


async def _handle_health(_request: web.Request) -> web.Response:
    """Handle health check endpoint."""
    return web.json_response(
        {"service": SERVICE_NAME, "status": "ok", "now": _iso_utc(_utc_now())},
        headers=_NO_STORE,
    )


@dataclass(frozen=True, slots=True)
class ReadServerConfig:
    """Configuration for the read server."""

    read_model_path: str
    """Path of the persisted round read model."""

    host: str = "127.0.0.1"
    """Host address to bind to."""

    port: int = 8080
    """Port to listen on."""

    stale_after: float = STALE_AFTER_SECONDS
    """Snapshot age in seconds past which the payload is flagged stale."""


@dataclass(slots=True)
class ReadServer:
    """aiohttp server exposing the read model to spectator clients."""

    config: ReadServerConfig

    _runner: Optional[web.AppRunner] = field(default=None, init=False)
    _site: Optional[web.TCPSite] = field(default=None, init=False)

    def build_app(self) -> web.Application:
        app = web.Application()
        app.add_routes(
            [
                web.get("/api/health", _handle_health),
                web.get("/api/round/live", self._handle_round_live),
            ]
        )
        return app

    async def start(self) -> None:
        """Start serving in the background."""
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await self._site.start()

        _log(f"Read server listening on {self.config.host}:{self.config.port}")

    async def run(self) -> None:
        """Serve until ``stop()`` is awaited."""
        await self.start()
        while self._runner is not None:
            await asyncio.sleep(1)

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            _log("Read server stopped")

    async def _handle_round_live(self, _request: web.Request) -> web.Response:
        """
        Serve the live round payload.

        200 with the payload when a snapshot is readable, otherwise 503 with
        ``{"status": "unavailable", "error": "read model unavailable: ..."}``.
        Staleness is reported in ``source.stale``, never as an error.
        """
        try:
            payload = await asyncio.to_thread(
                read_round_live_payload, self.config.read_model_path, stale_after=self.config.stale_after
            )
        except ReadModelUnavailableError as exc:
            return web.json_response(
                {"status": "unavailable", "error": f"read model unavailable: {exc}"},
                status=503,
                headers=_NO_STORE,
            )
        return web.json_response(payload, headers=_NO_STORE)
