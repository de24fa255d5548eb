"""
Prometheus metrics for the ingest service.

Focused on essential metrics:
- Casts received, delivered and dropped
- Batch deliveries by outcome, with latency
- Hub reconnect attempts and connection state
- Pending batch size
"""

import errno
import logging
import socket

from prometheus_client import REGISTRY, Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)

# =============================================================================
# Core Metrics
# =============================================================================

casts_received_counter = Counter(
    "ingest_casts_received_total",
    "Total casts accepted from the hub stream",
)

casts_delivered_counter = Counter(
    "ingest_casts_delivered_total",
    "Total casts delivered to the sink",
)

casts_dropped_counter = Counter(
    "ingest_casts_dropped_total",
    "Total casts dropped by requeue truncation or after shutdown",
    labelnames=["reason"],
)

batch_deliveries_counter = Counter(
    "ingest_batch_deliveries_total",
    "Total batch delivery attempts by outcome",
    labelnames=["outcome", "trigger"],
)

batch_delivery_duration_seconds = Histogram(
    "ingest_batch_delivery_duration_seconds",
    "Time spent delivering one batch to the sink",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

pending_batch_gauge = Gauge(
    "ingest_pending_batch_size",
    "Casts currently waiting for delivery",
)

reconnect_attempts_counter = Counter(
    "ingest_hub_reconnect_attempts_total",
    "Total hub connection attempts after a failure or stream end",
)

hub_connection_state_gauge = Gauge(
    "ingest_hub_connection_state",
    "Hub connection state (1 for the current state, 0 otherwise)",
    labelnames=["state"],
)


# =============================================================================
# Convenience Functions
# =============================================================================


def record_cast_received() -> None:
    casts_received_counter.inc()


def record_batch_delivered(size: int, trigger: str, duration_seconds: float) -> None:
    """Record a successful batch delivery."""
    casts_delivered_counter.inc(size)
    batch_deliveries_counter.labels(outcome="success", trigger=trigger).inc()
    batch_delivery_duration_seconds.observe(duration_seconds)


def record_batch_failed(dropped: int, trigger: str, duration_seconds: float) -> None:
    """Record a failed batch delivery and the casts lost to truncation."""
    batch_deliveries_counter.labels(outcome="failure", trigger=trigger).inc()
    batch_delivery_duration_seconds.observe(duration_seconds)
    if dropped:
        casts_dropped_counter.labels(reason="requeue_cap").inc(dropped)


def record_cast_dropped_closed() -> None:
    casts_dropped_counter.labels(reason="closed").inc()


def update_pending(size: int) -> None:
    pending_batch_gauge.set(size)


def record_reconnect_attempt() -> None:
    reconnect_attempts_counter.inc()


def update_connection_state(current: str, all_states: list[str]) -> None:
    """Set the gauge to 1 for the current state and 0 for the others."""
    for state in all_states:
        hub_connection_state_gauge.labels(state=state).set(1 if state == current else 0)


def start_metrics_server(preferred_port: int) -> int:
    """Start Prometheus metrics server with automatic port fallback.
    Returns actual port number that the server is listening on."""
    try:
        start_http_server(preferred_port, registry=REGISTRY)
        return preferred_port
    except OSError as e:
        if e.errno != errno.EADDRINUSE:
            raise

        logger.info(
            "Port already in use, finding available port",
            extra={"port": preferred_port},
        )
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("", 0))
            s.listen(1)
            available_port = s.getsockname()[1]

        start_http_server(available_port, registry=REGISTRY)
        return available_port
