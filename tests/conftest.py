"""Shared pytest fixtures for playlink tests."""

import heapq
import itertools
import os
import sys

import pytest

# Add src/ to path so tests run without installing the package
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

from playlink.core.clock import Clock  # noqa: E402
from playlink.playback.media import SimulatedMedia  # noqa: E402
from playlink.session.controller import ControllerSession  # noqa: E402
from playlink.session.display import DisplaySession  # noqa: E402
from playlink.transport.memory import MemoryHub, MemoryTransport  # noqa: E402


CONTROLLER_EPOCH = 1_700_000_000.0  # seconds
DISPLAY_SKEW_MS = 40.0
VIDEO = "https://media.example.com/video.mp4"
AUDIO = "https://media.example.com/audio.mp3"


# ── Virtual-time event loop ────────────────────────────────────────

class ManualHandle:
    def __init__(self, when: float, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualLoop:
    """The subset of asyncio's loop API the protocol uses, on virtual time.

    Nothing runs until run_pending() or advance() is called.
    """

    def __init__(self):
        self._now = 0.0
        self._seq = itertools.count()
        self._queue: list = []

    def time(self) -> float:
        return self._now

    def call_at(self, when: float, callback, *args) -> ManualHandle:
        handle = ManualHandle(when, callback, args)
        heapq.heappush(self._queue, (when, next(self._seq), handle))
        return handle

    def call_soon(self, callback, *args) -> ManualHandle:
        return self.call_at(self._now, callback, *args)

    call_soon_threadsafe = call_soon

    def call_later(self, delay: float, callback, *args) -> ManualHandle:
        return self.call_at(self._now + delay, callback, *args)

    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled)

    def run_pending(self) -> None:
        """Run everything due now, including callbacks scheduled meanwhile."""
        self._run_until(self._now)

    def advance(self, seconds: float) -> None:
        self._run_until(self._now + seconds)

    def _run_until(self, target: float) -> None:
        while self._queue and self._queue[0][0] <= target + 1e-9:
            when, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = max(self._now, when)
            handle.callback(*handle.args)
        self._now = max(self._now, target)


@pytest.fixture
def loop() -> ManualLoop:
    return ManualLoop()


# ── Clocks ──────────────────────────────────────────────────────────

@pytest.fixture
def controller_clock(loop) -> Clock:
    return Clock(time_fn=lambda: CONTROLLER_EPOCH, monotonic_fn=loop.time)


@pytest.fixture
def display_clock(loop) -> Clock:
    """Display wall clock runs DISPLAY_SKEW_MS ahead of the controller's."""
    return Clock(time_fn=lambda: CONTROLLER_EPOCH + DISPLAY_SKEW_MS / 1000.0,
                 monotonic_fn=loop.time)


# ── Channel and peers ──────────────────────────────────────────────

@pytest.fixture
def hub(loop) -> MemoryHub:
    return MemoryHub(loop)


@pytest.fixture
def media(display_clock, loop) -> SimulatedMedia:
    return SimulatedMedia(display_clock, loop, durations={VIDEO: 120.0, AUDIO: 60.0})


@pytest.fixture
def display(hub, loop, display_clock, media) -> DisplaySession:
    return DisplaySession(MemoryTransport(hub), "test-channel", loop,
                          clock=display_clock, media=media)


@pytest.fixture
def controller(hub, loop, controller_clock) -> ControllerSession:
    return ControllerSession(MemoryTransport(hub), "test-channel", loop,
                             clock=controller_clock)


@pytest.fixture
def paired(loop, display, controller):
    """Display subscribed first, then the controller announced."""
    display.start()
    loop.run_pending()
    controller.start()
    loop.run_pending()
    return controller, display
