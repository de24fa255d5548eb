"""
Cast ingest: Farcaster hub stream -> batch accumulator -> HTTP sink.

Run with ``python -m ingest``.
"""

from ingest.accumulator import BatchAccumulator
from ingest.buffer import REQUEUE_CAP, PendingBatch
from ingest.connection import ConnectionManager, ConnectionState
from ingest.sink import BatchSink, HttpBatchSink
from ingest.types import CastEvent

__all__ = [
    "BatchAccumulator",
    "BatchSink",
    "CastEvent",
    "ConnectionManager",
    "ConnectionState",
    "HttpBatchSink",
    "PendingBatch",
    "REQUEUE_CAP",
]
