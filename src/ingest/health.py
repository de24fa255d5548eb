"""
Liveness and readiness probes served from the ingest event loop.

    GET /health/live   200 while the process is up
    GET /health/ready  200 while the hub stream is live, 503 otherwise
"""

import errno
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

from aiohttp import web

logger = logging.getLogger(__name__)

LISTEN_HOST = "0.0.0.0"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class HealthCheckServer:
    """
    Probe server for orchestrators.

    Readiness is pulled from ``readiness_check`` on every request, so the
    server holds no copy of connection state. ``port=None`` disables the
    server entirely; ``port=0`` binds an ephemeral port.
    """

    def __init__(
        self,
        port: int | None = 8080,
        worker_name: str = "cast-ingest",
        readiness_check: Callable[[], bool] | None = None,
        state_provider: Callable[[], str] | None = None,
    ):
        self.port = port
        self.worker_name = worker_name
        self._enabled = port is not None
        self._readiness_check = readiness_check or (lambda: False)
        self._state_provider = state_provider
        self._boot = time.monotonic()
        self._bound_port: int | None = None
        self._runner: web.AppRunner | None = None

    async def handle_liveness(self, request: web.Request) -> web.Response:
        return web.json_response(
            {
                "status": "alive",
                "worker": self.worker_name,
                "uptime_seconds": int(time.monotonic() - self._boot),
                "timestamp": _now_iso(),
            }
        )

    async def handle_readiness(self, request: web.Request) -> web.Response:
        ready = self.is_ready
        payload = {
            "status": "ready" if ready else "not_ready",
            "worker": self.worker_name,
            "timestamp": _now_iso(),
        }
        if self._state_provider:
            payload["connection_state"] = self._state_provider()
        return web.json_response(payload, status=200 if ready else 503)

    def create_app(self) -> web.Application:
        app = web.Application()
        app.add_routes(
            [
                web.get("/health/live", self.handle_liveness),
                web.get("/health/ready", self.handle_readiness),
            ]
        )
        return app

    async def _bind(self, port: int) -> web.AppRunner | None:
        """Runner listening on ``port``, or None when the address is taken."""
        runner = web.AppRunner(self.create_app())
        await runner.setup()
        site = web.TCPSite(runner, LISTEN_HOST, port, reuse_address=True)
        try:
            await site.start()
        except OSError as e:
            await runner.cleanup()
            if e.errno == errno.EADDRINUSE:
                return None
            raise

        self._bound_port = port
        for address in runner.addresses:
            # (host, port) for IPv4, (host, port, flow, scope) for IPv6
            if isinstance(address, tuple):
                self._bound_port = address[1]
                break
        return runner

    async def start(self) -> None:
        """
        Bind the configured port, or an ephemeral one if it is taken.

        When neither can be bound the server disables itself and the
        service keeps running without probes.
        """
        if not self._enabled or self._runner is not None:
            return

        runner = await self._bind(self.port)
        if runner is None and self.port != 0:
            logger.warning(
                f"Port {self.port} in use, binding an ephemeral port",
                extra={"worker_name": self.worker_name, "port": self.port},
            )
            runner = await self._bind(0)

        if runner is None:
            logger.warning(
                "Health server not started, continuing without probes",
                extra={"worker_name": self.worker_name},
            )
            self._enabled = False
            return

        self._runner = runner
        logger.info(
            "Health server listening",
            extra={"worker_name": self.worker_name, "port": self._bound_port},
        )

    async def stop(self) -> None:
        runner, self._runner = self._runner, None
        if runner is None:
            return
        await runner.cleanup()
        self._bound_port = None
        logger.info("Health server stopped", extra={"worker_name": self.worker_name})

    @property
    def is_ready(self) -> bool:
        return bool(self._readiness_check())

    @property
    def actual_port(self) -> int | None:
        return self._bound_port

    @property
    def is_enabled(self) -> bool:
        return self._enabled


__all__ = ["HealthCheckServer"]
