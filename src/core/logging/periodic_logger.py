"""Cycle summaries for long-running services, logged on a fixed interval."""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any

from core.logging.utilities import format_cycle_output

logger = logging.getLogger(__name__)

TRACKED_COUNTERS = ("records_received", "records_delivered", "records_dropped")


class PeriodicStatsLogger:
    """
    Logs cumulative counters every ``interval_seconds`` plus the change
    since the previous cycle.

    ``get_stats`` returns cumulative values (records_received,
    records_delivered, records_dropped, pending, ...). Everything it
    returns is attached to the log record as extras.
    """

    def __init__(
        self,
        interval_seconds: float,
        get_stats: Callable[[], dict[str, Any]],
        stage: str,
        worker_id: str,
    ):
        self.interval_seconds = interval_seconds
        self.get_stats = get_stats
        self.stage = stage
        self.worker_id = worker_id
        self._task: asyncio.Task | None = None
        self._cycle_count = 0
        self._previous_stats: dict[str, int] = {}

    def start(self) -> None:
        if self._task is not None:
            logger.warning("Periodic logger already running")
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def _read(self) -> tuple[dict[str, int], dict[str, Any]]:
        raw = self.get_stats()
        return {name: int(raw.get(name, 0)) for name in TRACKED_COUNTERS}, raw

    def _extra(self, raw: dict[str, Any], **fields: Any) -> dict[str, Any]:
        return {"worker_id": self.worker_id, "stage": self.stage, "cycle": self._cycle_count, **fields, **raw}

    def log_cycle(self) -> None:
        """Log one summary and make the current counters the new baseline."""
        counters, raw = self._read()
        received = counters["records_received"] - self._previous_stats.get("records_received", 0)
        delivered = counters["records_delivered"] - self._previous_stats.get("records_delivered", 0)
        self._previous_stats = counters

        rate = received / self.interval_seconds if self.interval_seconds > 0 else 0
        line = format_cycle_output(
            cycle_count=self._cycle_count,
            delivered=counters["records_delivered"],
            dropped=counters["records_dropped"],
            pending=int(raw.get("pending", 0)),
            since_last={"received": received, "delivered": delivered},
            interval_seconds=self.interval_seconds,
        )
        logger.info(
            line,
            extra=self._extra(
                raw,
                delta_received=received,
                delta_delivered=delivered,
                rate_casts_per_sec=round(rate, 1),
            ),
        )

    def _log_baseline(self) -> None:
        counters, raw = self._read()
        self._previous_stats = counters
        line = format_cycle_output(
            cycle_count=0,
            delivered=counters["records_delivered"],
            dropped=counters["records_dropped"],
            pending=int(raw.get("pending", 0)),
        )
        logger.info(f"{line} [cycle output every {self.interval_seconds}s]", extra=self._extra(raw))

    async def _run(self) -> None:
        self._log_baseline()
        try:
            while True:
                await asyncio.sleep(self.interval_seconds)
                self._cycle_count += 1
                self.log_cycle()
        except asyncio.CancelledError:
            logger.debug("Periodic stats logger cancelled")
            raise
