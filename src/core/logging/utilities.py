"""Logging utility functions."""

import logging
from typing import Any


def log_exception(
    logger: logging.Logger,
    exc: Exception,
    msg: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
    **kwargs: Any,
) -> None:
    """
    Log exception with context and optional traceback.

    Automatically extracts error_category from PipelineError subclasses
    and truncates long error messages.

    Example:
        try:
            await sink.send(batch)
        except DeliveryError as e:
            log_exception(logger, e, "Batch delivery failed", batch_size=len(batch))
    """
    if kwargs.get("error_category") is None and hasattr(exc, "category"):
        cat = exc.category
        kwargs["error_category"] = cat.value if hasattr(cat, "value") else str(cat)

    error_msg = str(exc)
    if len(error_msg) > 500:
        error_msg = error_msg[:500] + "..."
    kwargs["error_message"] = error_msg
    kwargs.setdefault("error_type", type(exc).__name__)

    if include_traceback:
        logger.log(level, msg, exc_info=exc, extra=kwargs)
    else:
        logger.log(level, msg, extra=kwargs)


def format_cycle_output(
    cycle_count: int,
    delivered: int,
    dropped: int,
    pending: int,
    since_last: dict[str, int] | None = None,
    interval_seconds: float = 60,
) -> str:
    """
    Format a one-line cycle summary with optional deltas.

    Example:
        >>> format_cycle_output(1, 1200, 34, 5)
        'Cycle 1: delivered=1200, dropped=34, pending=5'
        >>> format_cycle_output(5, 1200, 0, 3, {"received": 240, "delivered": 240}, 30)
        'Cycle 5: +240 received this cycle | total: 1200 delivered, 3 pending | 8.0 casts/s'
    """
    if since_last is None:
        return f"Cycle {cycle_count}: delivered={delivered}, dropped={dropped}, pending={pending}"

    received_delta = since_last.get("received", 0)
    rate = received_delta / interval_seconds if interval_seconds > 0 else 0

    total_parts = [f"{delivered} delivered"]
    if dropped > 0:
        total_parts.append(f"{dropped} dropped")
    total_parts.append(f"{pending} pending")

    parts = [
        f"+{received_delta} received this cycle",
        f"total: {', '.join(total_parts)}",
        f"{rate:.1f} casts/s",
    ]
    return f"Cycle {cycle_count}: {' | '.join(parts)}"
