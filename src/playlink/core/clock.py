"""Local clock used by both roles.

Outbound messages are stamped with wall-clock milliseconds so the peer
can compare them with its own wall clock. Elapsed-time arithmetic on
the controller (extrapolation ticks) uses the monotonic side, which
never jumps when the system time is adjusted.
"""

import time
from typing import Callable


class Clock:
    """Millisecond clock with a fixed wall-clock origin.

    ``origin_ms`` is the wall time captured when the clock was created;
    ``now()`` counts monotonic milliseconds from that point, and
    ``wall_ms()`` is their sum.
    """

    def __init__(self, time_fn: Callable[[], float] = time.time,
                 monotonic_fn: Callable[[], float] = time.monotonic):
        self._monotonic_fn = monotonic_fn
        self._origin_monotonic = monotonic_fn()
        self.origin_ms = time_fn() * 1000.0

    def now(self) -> float:
        """Milliseconds elapsed since the clock origin."""
        return (self._monotonic_fn() - self._origin_monotonic) * 1000.0

    def wall_ms(self) -> float:
        """Current wall-clock time in milliseconds."""
        return self.origin_ms + self.now()
