"""
Batch sink: the downstream collection endpoint.

HttpBatchSink posts each batch once as JSON and raises DeliveryError on
any non-2xx status or transport failure. Retrying is the caller's job.
"""

import asyncio
import logging
import time
from collections.abc import Sequence
from typing import Protocol

import aiohttp

from core.errors.exceptions import DeliveryError
from ingest.types import CastEvent

logger = logging.getLogger(__name__)

BATCH_PATH = "/api/batch-casts"


class BatchSink(Protocol):
    async def send(self, events: Sequence[CastEvent]) -> None:
        """Deliver one batch in a single call. Raises DeliveryError on failure."""
        ...


class HttpBatchSink:
    """
    POSTs batches to ``{base_url}/api/batch-casts``.

    Body: ``{"casts": [{"fid": int, "timestamp": int}, ...]}``.

    Owns its aiohttp session unless one is passed in, in which case the
    caller manages the session lifecycle.

    Usage:
        async with HttpBatchSink("https://worker.example.dev") as sink:
            await sink.send(batch)
    """

    def __init__(
        self,
        base_url: str,
        session: aiohttp.ClientSession | None = None,
        path: str = BATCH_PATH,
    ):
        self.url = base_url.rstrip("/") + path
        self._session = session
        self._owns_session = session is None

    async def start(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "HttpBatchSink":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def send(self, events: Sequence[CastEvent]) -> None:
        if self._session is None:
            raise RuntimeError("HttpBatchSink not started")

        payload = {"casts": [event.to_payload() for event in events]}
        start = time.perf_counter()

        try:
            async with self._session.post(self.url, json=payload) as response:
                status = response.status
                if not 200 <= status < 300:
                    body = await response.text(errors="replace")
                    raise DeliveryError(
                        f"Sink returned HTTP {status}",
                        status_code=status,
                        context={"url": self.url, "body": body[:200]},
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DeliveryError(
                f"Sink request failed: {type(e).__name__}",
                cause=e,
                context={"url": self.url},
            ) from e

        logger.debug(
            "Batch delivered",
            extra={
                "batch_size": len(events),
                "status_code": status,
                "http_method": "POST",
                "http_url": self.url,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
