"""Controller-side position extrapolation.

Between snapshots the controller advances the displayed position on a
fixed timer instead of asking the display. Each tick uses the real
elapsed time since the previous one, so timer jitter does not
accumulate.
"""

import logging
from typing import Callable

from playlink.core.clock import Clock
from playlink.core.timers import OneShotTimer
from playlink.playback.state import Baseline

log = logging.getLogger("playlink.playback.estimator")

PLAYBACK_TIMER_INTERVAL = 250  # ms


class PositionEstimator:
    """Re-anchors the baseline on every tick while playing."""

    def __init__(self, loop, clock: Clock, interval_ms: float = PLAYBACK_TIMER_INTERVAL,
                 on_tick: Callable[[Baseline], None] = None):
        self.clock = clock
        self.baseline = Baseline()
        self._on_tick = on_tick
        self.timer = OneShotTimer(loop, interval_ms, self._tick, name="extrapolation")

    @property
    def running(self) -> bool:
        return self.timer.active

    def reset(self, baseline: Baseline) -> None:
        """Replace the baseline; the timer runs only while playing."""
        self.timer.cancel()
        self.baseline = baseline
        if baseline.playing:
            self.timer.start()

    def stop(self) -> None:
        self.timer.cancel()

    def clear(self) -> None:
        self.timer.cancel()
        self.baseline = Baseline()

    def position(self) -> float:
        """Extrapolated position right now, without touching the baseline."""
        return self.baseline.position_at(self.clock.now())

    def _tick(self) -> None:
        if not self.baseline.playing:
            return
        self.timer.start()
        self.baseline = self.baseline.advanced_to(self.clock.now())
        if self._on_tick:
            self._on_tick(self.baseline)
