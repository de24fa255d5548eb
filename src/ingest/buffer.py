"""Pending batch with bounded requeue."""

from collections import deque
from collections.abc import Iterable, Iterator

from ingest.types import CastEvent

# Max records of a failed batch put back for the next attempt
REQUEUE_CAP = 10


class PendingBatch:
    """
    Ordered buffer of casts awaiting delivery.

    Insertion order is preserved and nothing is deduplicated; the same
    subject may appear more than once.
    """

    def __init__(self, items: Iterable[CastEvent] = ()):
        self._items: deque[CastEvent] = deque(items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[CastEvent]:
        return iter(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def append(self, event: CastEvent) -> None:
        self._items.append(event)

    def swap(self) -> list[CastEvent]:
        """Take every pending record, leaving the buffer empty."""
        taken = list(self._items)
        self._items = deque()
        return taken

    def requeue(self, failed: list[CastEvent], cap: int = REQUEUE_CAP) -> int:
        """
        Put the head of a failed batch back in front of anything pending.

        The first ``cap`` records of ``failed`` are re-inserted ahead of
        records added since the batch was taken, keeping their original
        order. The rest are discarded.

        Returns:
            Number of records dropped
        """
        survivors = failed[:cap]
        self._items.extendleft(reversed(survivors))
        return len(failed) - len(survivors)
