"""Records flowing from the hub stream to the batch sink."""

import time
from dataclasses import dataclass


def now_ms() -> int:
    """Wall-clock Unix epoch time in milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CastEvent:
    """
    A single observed cast.

    Attributes:
        subject_id: Farcaster id (fid) of the cast author
        observed_at_ms: Wall-clock receipt time, epoch milliseconds
    """

    subject_id: int
    observed_at_ms: int

    def to_payload(self) -> dict[str, int]:
        """Wire shape expected by the batch sink."""
        return {"fid": self.subject_id, "timestamp": self.observed_at_ms}
