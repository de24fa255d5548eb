"""
Hub connection manager.

Owns the connect -> subscribe -> consume lifecycle and the reconnect
policy: any failure, or a stream that simply ends, closes the client and
starts over after a fixed delay. There is no attempt cap and no backoff.
No upstream cursor is kept, so events emitted while disconnected are lost.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from enum import Enum
from typing import Any

from core.errors.exceptions import SubscriptionError, UpstreamConnectionError
from core.logging.utilities import log_exception
from ingest import metrics
from ingest.hub.client import HubClientProtocol
from ingest.hub.messages import HUB_EVENT_TYPE_MERGE_MESSAGE, extract_cast
from ingest.types import CastEvent, now_ms

logger = logging.getLogger(__name__)

PROGRESS_LOG_EVERY = 100


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    STREAMING = "streaming"


ALL_STATES = [state.value for state in ConnectionState]


class ConnectionManager:
    """
    Maintains the hub subscription and forwards casts to ``on_event``.

    ``on_event`` is awaited for each cast before the next stream element
    is read.

    Args:
        client_factory: Builds a fresh, unconnected hub client
        on_event: Coroutine receiving each accepted CastEvent
        event_types: Hub event types to subscribe to
        ready_timeout: Seconds to wait for channel readiness
        reconnect_delay: Fixed seconds between reconnect attempts
        hub_endpoint: Endpoint name, for logs only
        clock: Epoch-millisecond clock stamping each cast
    """

    def __init__(
        self,
        client_factory: Callable[[], HubClientProtocol],
        on_event: Callable[[CastEvent], Awaitable[None]],
        event_types: Sequence[int] = (HUB_EVENT_TYPE_MERGE_MESSAGE,),
        ready_timeout: float = 10.0,
        reconnect_delay: float = 10.0,
        hub_endpoint: str = "",
        clock: Callable[[], int] = now_ms,
    ):
        self.client_factory = client_factory
        self.on_event = on_event
        self.event_types = list(event_types)
        self.ready_timeout = ready_timeout
        self.reconnect_delay = reconnect_delay
        self.hub_endpoint = hub_endpoint
        self._clock = clock

        self._state = ConnectionState.DISCONNECTED
        self._client: HubClientProtocol | None = None
        self._attempt = 0
        self._casts_forwarded = 0
        metrics.update_connection_state(self._state.value, ALL_STATES)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def casts_forwarded(self) -> int:
        return self._casts_forwarded

    @property
    def attempts(self) -> int:
        return self._attempt

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.debug(
            f"Connection state {self._state.value} -> {state.value}",
            extra={"connection_state": state.value},
        )
        self._state = state
        metrics.update_connection_state(state.value, ALL_STATES)

    async def connect(self) -> HubClientProtocol:
        """
        Build a client and wait for the channel to become ready.

        Raises:
            UpstreamConnectionError: Channel failed or timed out; the client
                has been closed
        """
        self._set_state(ConnectionState.CONNECTING)
        client: HubClientProtocol | None = None
        try:
            client = self.client_factory()
            await client.wait_for_ready(self.ready_timeout)
        except BaseException as e:
            # Cancellation included: the channel must not outlive this call
            if client is not None:
                await self._disconnect(client)
            else:
                self._set_state(ConnectionState.DISCONNECTED)
            if isinstance(e, UpstreamConnectionError) or not isinstance(e, Exception):
                raise
            raise UpstreamConnectionError(
                f"Failed to connect to hub: {type(e).__name__}",
                cause=e,
                context={"hub_endpoint": self.hub_endpoint},
            ) from e

        self._client = client
        logger.info(
            "Connected to hub",
            extra={"hub_endpoint": self.hub_endpoint, "attempt": self._attempt},
        )
        return client

    async def subscribe(self, client: HubClientProtocol) -> AsyncIterator[Any]:
        """
        Subscribe to the configured event types.

        Raises:
            SubscriptionError: The hub refused the subscription
        """
        try:
            stream = await client.subscribe(self.event_types)
        except SubscriptionError:
            raise
        except Exception as e:
            raise SubscriptionError(
                f"Subscribe failed: {type(e).__name__}",
                cause=e,
                context={"hub_endpoint": self.hub_endpoint},
            ) from e

        self._set_state(ConnectionState.STREAMING)
        logger.info(
            "Subscribed to hub events",
            extra={"hub_endpoint": self.hub_endpoint, "attempt": self._attempt},
        )
        return stream

    async def consume(self, stream: AsyncIterator[Any]) -> int:
        """
        Forward every CAST_ADD merge message until the stream ends.

        Returns:
            Casts forwarded from this stream

        Raises:
            Whatever the stream or on_event raises
        """
        forwarded = 0
        async for envelope in stream:
            cast = extract_cast(envelope, self._clock())
            if cast is None:
                continue

            await self.on_event(cast)
            forwarded += 1
            self._casts_forwarded += 1
            if self._casts_forwarded % PROGRESS_LOG_EVERY == 0:
                logger.info(
                    f"Forwarded {self._casts_forwarded} casts",
                    extra={"casts_forwarded": self._casts_forwarded},
                )
        return forwarded

    async def run_once(self) -> int:
        """One connect -> subscribe -> consume pass. The client is always closed."""
        client = await self.connect()
        try:
            stream = await self.subscribe(client)
            forwarded = await self.consume(stream)
            logger.warning(
                "Hub stream ended",
                extra={"hub_endpoint": self.hub_endpoint, "casts_forwarded": forwarded},
            )
            return forwarded
        finally:
            await self._disconnect(client)

    async def run_forever(self, shutdown_event: asyncio.Event | None = None) -> None:
        """
        Keep the subscription alive until shutdown is requested or the task
        is cancelled.
        """
        shutdown_event = shutdown_event or asyncio.Event()

        while not shutdown_event.is_set():
            self._attempt += 1
            if self._attempt > 1:
                metrics.record_reconnect_attempt()
            logger.info(
                "Connecting to hub",
                extra={"hub_endpoint": self.hub_endpoint, "attempt": self._attempt},
            )

            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                retryable = getattr(e, "is_retryable", True)
                log_exception(
                    logger,
                    e,
                    "Hub connection lost",
                    level=logging.WARNING if retryable else logging.ERROR,
                    include_traceback=False,
                    hub_endpoint=self.hub_endpoint,
                    attempt=self._attempt,
                )

            if shutdown_event.is_set():
                break

            logger.info(
                f"Reconnecting in {self.reconnect_delay}s",
                extra={"delay_seconds": self.reconnect_delay, "attempt": self._attempt},
            )
            await self._wait(shutdown_event)

        logger.info("Connection manager stopped", extra={"attempt": self._attempt})

    async def _wait(self, shutdown_event: asyncio.Event) -> None:
        if self.reconnect_delay <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=self.reconnect_delay)
        except asyncio.TimeoutError:
            pass

    async def _disconnect(self, client: HubClientProtocol) -> None:
        if self._client is client:
            self._client = None
        self._set_state(ConnectionState.DISCONNECTED)
        try:
            await client.close()
        except Exception as e:
            log_exception(
                logger,
                e,
                "Error closing hub client",
                level=logging.DEBUG,
                include_traceback=False,
            )
