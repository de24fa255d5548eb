"""
Batch accumulator: buffers casts and flushes them to the sink.

A batch is flushed when it reaches max_batch_size, or when no cast has
arrived for max_idle_ms. Failed deliveries put the head of the batch back
for the next flush; the rest is dropped and counted.
"""

import asyncio
import logging
import time
import uuid
from typing import Any

from core.errors.exceptions import DeliveryError
from core.logging.context import get_log_context, set_log_context
from core.logging.utilities import log_exception
from ingest import metrics
from ingest.buffer import REQUEUE_CAP, PendingBatch
from ingest.scheduler import DelayedCall, LoopScheduler, Scheduler
from ingest.sink import BatchSink
from ingest.types import CastEvent

logger = logging.getLogger(__name__)

DEFAULT_MAX_BATCH_SIZE = 20
DEFAULT_MAX_IDLE_MS = 5000


class BatchAccumulator:
    """
    Size- and idle-triggered batching in front of a BatchSink.

    All state is touched from one event loop, so no locking is needed.
    flush() swaps the pending batch out before sending, so casts added
    while a delivery is in flight go into a fresh batch.

    Invariants:
        - At most one idle timer is alive
        - A live timer implies a non-empty pending batch

    Usage:
        accumulator = BatchAccumulator(sink, max_batch_size=20, max_idle_ms=5000)
        await accumulator.add(event)
        ...
        await accumulator.close()  # final flush
    """

    def __init__(
        self,
        sink: BatchSink,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        max_idle_ms: int = DEFAULT_MAX_IDLE_MS,
        scheduler: Scheduler | None = None,
        requeue_cap: int = REQUEUE_CAP,
    ):
        if max_batch_size < 1:
            raise ValueError(f"max_batch_size must be >= 1, got {max_batch_size}")
        if max_idle_ms <= 0:
            raise ValueError(f"max_idle_ms must be > 0, got {max_idle_ms}")

        self.sink = sink
        self.max_batch_size = max_batch_size
        self.max_idle_ms = max_idle_ms
        self.requeue_cap = requeue_cap
        self._scheduler = scheduler or LoopScheduler()

        self._pending = PendingBatch()
        self._timer: DelayedCall | None = None
        self._closed = False
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()

        self._records_received = 0
        self._records_delivered = 0
        self._records_dropped = 0
        self._batches_delivered = 0
        self._batches_failed = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def timer_active(self) -> bool:
        return self._timer is not None and self._timer.active

    @property
    def closed(self) -> bool:
        return self._closed

    async def add(self, event: CastEvent) -> None:
        """
        Buffer one cast.

        Awaits the flush when the size threshold is reached; otherwise
        (re)arms the idle timer.
        """
        if self._closed:
            self._records_dropped += 1
            metrics.record_cast_dropped_closed()
            logger.warning(
                "Accumulator closed, dropping cast",
                extra={"records_dropped": self._records_dropped},
            )
            return

        self._records_received += 1
        metrics.record_cast_received()
        self._pending.append(event)

        if len(self._pending) >= self.max_batch_size:
            self._cancel_timer()
            # Cancelling the caller must not abandon a swapped-out batch
            await asyncio.shield(self._flush(trigger="size"))
            return

        self._cancel_timer()
        if self._pending:
            self._timer = self._scheduler.call_later(
                self.max_idle_ms / 1000, self._on_idle_timeout
            )
        metrics.update_pending(len(self._pending))

    async def flush(self) -> None:
        """Send everything pending now. No-op when nothing is pending."""
        await self._flush(trigger="manual")

    async def close(self) -> None:
        """
        Stop accepting casts and deliver what is left.

        Cancels the idle timer, waits for in-flight deliveries, then
        performs exactly one final flush. Later calls are no-ops.
        """
        if self._closed:
            return
        self._closed = True
        self._cancel_timer()

        if self._in_flight:
            logger.info(
                "Waiting for in-flight deliveries before final flush",
                extra={"pending": len(self._pending)},
            )
        await self._idle.wait()
        await self._flush(trigger="shutdown")

        logger.info(
            "Accumulator closed",
            extra={
                "records_received": self._records_received,
                "records_delivered": self._records_delivered,
                "records_dropped": self._records_dropped,
                "pending": len(self._pending),
            },
        )

    def stats(self) -> dict[str, Any]:
        """Cumulative counters for periodic logging."""
        return {
            "records_received": self._records_received,
            "records_delivered": self._records_delivered,
            "records_dropped": self._records_dropped,
            "batches_delivered": self._batches_delivered,
            "batches_failed": self._batches_failed,
            "pending": len(self._pending),
        }

    async def _on_idle_timeout(self) -> None:
        await self._flush(trigger="timeout")

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _flush(self, trigger: str) -> None:
        if not self._pending:
            return

        batch = self._pending.swap()
        self._cancel_timer()
        metrics.update_pending(0)

        self._in_flight += 1
        self._idle.clear()
        # One trace id per delivery attempt, restored for the caller afterwards
        outer_trace = get_log_context()["trace_id"]
        set_log_context(trace_id=uuid.uuid4().hex)
        start = time.perf_counter()
        try:
            await self.sink.send(batch)
        except Exception as e:
            # Any sink exception counts as a delivery failure
            duration = time.perf_counter() - start
            dropped = self._pending.requeue(batch, self.requeue_cap)
            self._batches_failed += 1
            self._records_dropped += dropped
            metrics.record_batch_failed(dropped, trigger, duration)
            log_exception(
                logger,
                e,
                "Batch delivery failed",
                level=logging.WARNING,
                include_traceback=False,
                batch_size=len(batch),
                status_code=e.status_code if isinstance(e, DeliveryError) else None,
                records_requeued=len(batch) - dropped,
                records_dropped=dropped,
                trigger=trigger,
                duration_ms=round(duration * 1000, 2),
            )
        else:
            duration = time.perf_counter() - start
            self._batches_delivered += 1
            self._records_delivered += len(batch)
            metrics.record_batch_delivered(len(batch), trigger, duration)
            logger.info(
                "Batch delivered",
                extra={
                    "batch_size": len(batch),
                    "trigger": trigger,
                    "duration_ms": round(duration * 1000, 2),
                    "records_delivered": self._records_delivered,
                },
            )
        finally:
            set_log_context(trace_id=outer_trace)
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.set()
            metrics.update_pending(len(self._pending))
