"""
pytest configuration for ingest tests.

Adds src directory to Python path for imports and provides in-memory
stand-ins for the sink, the hub client and the timer scheduler.
"""

import asyncio
import sys
from pathlib import Path

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from core.errors.exceptions import DeliveryError  # noqa: E402
from ingest.scheduler import DelayedCall  # noqa: E402


class ManualScheduler:
    """Scheduler driven by advance() instead of wall time."""

    def __init__(self):
        self.now = 0.0
        self._calls: list[tuple[float, DelayedCall, object]] = []

    def call_later(self, delay_seconds, callback):
        handle = DelayedCall()
        self._calls.append((self.now + delay_seconds, handle, callback))
        return handle

    @property
    def active_count(self) -> int:
        return sum(1 for _, handle, _ in self._calls if handle.active)

    async def advance(self, seconds: float) -> None:
        self.now += seconds
        due = [c for c in self._calls if c[0] <= self.now]
        self._calls = [c for c in self._calls if c[0] > self.now]
        for _, handle, callback in sorted(due, key=lambda c: c[0]):
            if handle.fire():
                await callback()


class FakeSink:
    """Records delivered batches. Can fail, or hold a send open."""

    def __init__(self):
        self.batches: list[list] = []
        self.attempts: list[list] = []
        self.failures: list[int | None | Exception] = []
        self.gate: asyncio.Event | None = None
        self.entered = asyncio.Event()

    def fail_next(self, *failures: int | None | Exception) -> None:
        """Queue failures: an HTTP status (None for transport) or an exception to raise."""
        self.failures.extend(failures)

    async def send(self, events):
        batch = list(events)
        self.attempts.append(batch)
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            failure = self.failures.pop(0)
            if isinstance(failure, Exception):
                raise failure
            raise DeliveryError("sink failed", status_code=failure)
        self.batches.append(batch)

    @property
    def delivered(self) -> list:
        return [event for batch in self.batches for event in batch]


class FakeHubClient:
    """In-memory hub client yielding a fixed list of events."""

    def __init__(
        self,
        events=(),
        error_after=None,
        ready_error=None,
        subscribe_error=None,
        hold_open=False,
        ready_delay=0.0,
    ):
        self.events = list(events)
        self.hold_open = hold_open
        self.ready_delay = ready_delay
        self.error_after = error_after
        self.ready_error = ready_error
        self.subscribe_error = subscribe_error
        self.closed = False
        self.close_calls = 0
        self.subscribed_types = None

    async def wait_for_ready(self, timeout):
        if self.ready_delay:
            await asyncio.sleep(self.ready_delay)
        if self.ready_error is not None:
            raise self.ready_error

    async def subscribe(self, event_types):
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.subscribed_types = list(event_types)
        return self._stream()

    async def _stream(self):
        for index, event in enumerate(self.events):
            if self.error_after is not None and index == self.error_after:
                raise ConnectionResetError("stream reset")
            yield event
        if self.error_after is not None and self.error_after >= len(self.events):
            raise ConnectionResetError("stream reset")
        if self.hold_open:
            await asyncio.Event().wait()

    async def close(self):
        self.close_calls += 1
        self.closed = True


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def hub_client_cls():
    return FakeHubClient


@pytest.fixture
def clean_env(monkeypatch):
    """Remove environment variables that feed the config loader."""
    for name in ("NEYNAR_API_KEY", "HUB_ENDPOINT", "WORKER_URL"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
