"""
Async gRPC client for the hub's Subscribe stream.

Opens a TLS channel and authenticates every call with the ``x-api-key``
metadata header. Built on grpc.aio generic stream calls with the minimal
message subset from ingest.hub.messages, so no generated stubs are needed.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any, Protocol

import grpc

from core.errors.exceptions import SubscriptionError, UpstreamConnectionError
from ingest.hub.messages import SUBSCRIBE_METHOD, HubEvent, SubscribeRequest

logger = logging.getLogger(__name__)

MAX_RECEIVE_MESSAGE_LENGTH = 20 * 1024 * 1024


class HubClientProtocol(Protocol):
    async def wait_for_ready(self, timeout: float) -> None:
        ...

    async def subscribe(self, event_types: Sequence[int]) -> AsyncIterator[Any]:
        ...

    async def close(self) -> None:
        ...


class HubClient:
    """
    One channel to the hub.

    A client is single-use: after close() build a new one. close() is
    idempotent.
    """

    def __init__(self, endpoint: str, api_key: str, secure: bool = True):
        self.endpoint = endpoint
        self._metadata = (("x-api-key", api_key),)
        options = [("grpc.max_receive_message_length", MAX_RECEIVE_MESSAGE_LENGTH)]
        if secure:
            self._channel = grpc.aio.secure_channel(
                endpoint, grpc.ssl_channel_credentials(), options=options
            )
        else:
            self._channel = grpc.aio.insecure_channel(endpoint, options=options)
        self._subscribe = self._channel.unary_stream(
            SUBSCRIBE_METHOD,
            request_serializer=SubscribeRequest.SerializeToString,
            response_deserializer=HubEvent.FromString,
        )
        self._call: grpc.aio.UnaryStreamCall | None = None
        self._closed = False

    async def wait_for_ready(self, timeout: float) -> None:
        """
        Wait until the channel is connected.

        Raises:
            UpstreamConnectionError: Not ready within timeout
        """
        try:
            await asyncio.wait_for(self._channel.channel_ready(), timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamConnectionError(
                f"Hub channel not ready after {timeout}s",
                cause=e,
                context={"hub_endpoint": self.endpoint},
            ) from e

    async def subscribe(self, event_types: Sequence[int]) -> AsyncIterator[Any]:
        """
        Start the event subscription.

        Waits for the server's initial metadata so a rejected request
        (bad key, unknown method) fails here rather than on first read.

        Raises:
            SubscriptionError: The hub rejected the subscription
        """
        request = SubscribeRequest()
        request.event_types.extend(event_types)
        call = self._subscribe(request, metadata=self._metadata)
        try:
            await call.initial_metadata()
        except grpc.aio.AioRpcError as e:
            call.cancel()
            raise SubscriptionError(
                f"Hub rejected subscription: {e.code().name}",
                cause=e,
                context={"hub_endpoint": self.endpoint},
            ) from e
        self._call = call
        return self._iterate(call)

    @staticmethod
    async def _iterate(call) -> AsyncIterator[Any]:
        async for event in call:
            yield event

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._call is not None:
            self._call.cancel()
            self._call = None
        await self._channel.close()
