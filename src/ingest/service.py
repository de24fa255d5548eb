"""
Cast ingest service: hub stream -> batch accumulator -> HTTP sink.

Wires the configured collaborators together on one event loop and owns
the shutdown sequence: stop consuming, final flush, release resources.
"""

import asyncio
import logging
from collections.abc import Callable

from config.config import IngestConfig
from core.logging.periodic_logger import PeriodicStatsLogger
from ingest.accumulator import BatchAccumulator
from ingest.connection import ConnectionManager, ConnectionState
from ingest.health import HealthCheckServer
from ingest.hub.client import HubClient, HubClientProtocol
from ingest.scheduler import LoopScheduler
from ingest.sink import BatchSink, HttpBatchSink

logger = logging.getLogger(__name__)

STAGE = "cast-ingest"


class StreamService:
    """
    Runs the ingest pipeline until a shutdown event is set.

    Collaborators default to the production implementations built from
    config; tests pass fakes for the sink and the hub client factory.
    """

    def __init__(
        self,
        config: IngestConfig,
        sink: BatchSink | None = None,
        client_factory: Callable[[], HubClientProtocol] | None = None,
        worker_id: str = STAGE,
    ):
        self.config = config
        self.worker_id = worker_id

        self._owned_sink: HttpBatchSink | None = None
        if sink is None:
            self._owned_sink = HttpBatchSink(config.sink_base_url)
            sink = self._owned_sink
        self.sink = sink

        self.scheduler = LoopScheduler()
        self.accumulator = BatchAccumulator(
            sink,
            max_batch_size=config.max_batch_size,
            max_idle_ms=config.max_idle_ms,
            scheduler=self.scheduler,
        )
        self.connection = ConnectionManager(
            client_factory=client_factory or self._default_client_factory,
            on_event=self.accumulator.add,
            ready_timeout=config.ready_timeout_seconds,
            reconnect_delay=config.reconnect_delay_seconds,
            hub_endpoint=config.hub_endpoint,
        )
        self.health_server = HealthCheckServer(
            port=config.health_port or None,
            worker_name=STAGE,
            readiness_check=lambda: self.connection.state is ConnectionState.STREAMING,
            state_provider=lambda: self.connection.state.value,
        )
        self.stats_logger = PeriodicStatsLogger(
            interval_seconds=config.stats_interval_seconds,
            get_stats=self._get_stats,
            stage=STAGE,
            worker_id=worker_id,
        )

    def _default_client_factory(self) -> HubClientProtocol:
        return HubClient(self.config.hub_endpoint, self.config.hub_api_key)

    def _get_stats(self) -> dict:
        stats = self.accumulator.stats()
        stats["connection_state"] = self.connection.state.value
        stats["casts_forwarded"] = self.connection.casts_forwarded
        return stats

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """
        Consume until shutdown_event is set, then flush once and stop.

        Raises:
            Any error that escapes the connection manager, after the
            final flush has run
        """
        if self._owned_sink is not None:
            await self._owned_sink.start()
        await self.health_server.start()
        self.stats_logger.start()

        consume_task = asyncio.create_task(
            self.connection.run_forever(shutdown_event), name="hub-consume"
        )
        shutdown_task = asyncio.create_task(shutdown_event.wait(), name="shutdown-wait")
        try:
            await asyncio.wait(
                {consume_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            await self._shutdown(consume_task, shutdown_task)

        if consume_task.done() and not consume_task.cancelled():
            consume_task.result()

    async def _shutdown(self, consume_task: asyncio.Task, shutdown_task: asyncio.Task) -> None:
        logger.info("Stopping hub consumption")
        shutdown_task.cancel()
        if not consume_task.done():
            consume_task.cancel()
        await asyncio.gather(consume_task, shutdown_task, return_exceptions=True)

        logger.info(
            "Performing final flush",
            extra={"pending": self.accumulator.pending},
        )
        try:
            await self.accumulator.close()
            await self.scheduler.shutdown()
        finally:
            await self.stats_logger.stop()
            await self.health_server.stop()
            if self._owned_sink is not None:
                await self._owned_sink.close()

        stats = self.accumulator.stats()
        logger.info(
            "Ingest service stopped",
            extra={
                "records_received": stats["records_received"],
                "records_delivered": stats["records_delivered"],
                "records_dropped": stats["records_dropped"],
                "batches_failed": stats["batches_failed"],
            },
        )
