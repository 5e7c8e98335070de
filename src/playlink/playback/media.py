"""Media element driven by the display.

The real decoder is outside this project; ``MediaElement`` is the
contract the display talks to. ``SimulatedMedia`` implements it against
a ``Clock`` so the display can run headless and tests can drive time.

Events published on ``media.events``:
    durationchange, ratechange, seeked, play, pause, emptied, ended
"""

import logging

from playlink.core.clock import Clock
from playlink.core.event_bus import EventBus
from playlink.core.timers import OneShotTimer

log = logging.getLogger("playlink.playback.media")

MEDIA_EVENTS = ("durationchange", "ratechange", "seeked", "play", "pause",
                "emptied", "ended")


class MediaElement:
    """Interface of a playable media element."""

    src: str = ""
    paused: bool = True
    duration: float = 0.0
    playback_rate: float = 1.0
    current_time: float = 0.0

    def __init__(self):
        self.events = EventBus(MEDIA_EVENTS)

    def play(self) -> None:
        raise NotImplementedError

    def pause(self) -> None:
        raise NotImplementedError


class SimulatedMedia(MediaElement):
    """Clock-driven stand-in for a decoder.

    Position advances with the clock while playing and is clamped to
    the duration. Durations are looked up by source URI; unknown
    sources have duration 0 and are not clamped.
    """

    def __init__(self, clock: Clock, loop=None, durations: dict = None):
        super().__init__()
        self._clock = clock
        self._durations = dict(durations or {})
        self._src = ""
        self._paused = True
        self._duration = 0.0
        self._rate = 1.0
        self._anchor_position = 0.0
        self._anchor_ms = clock.now()
        self._end_timer = OneShotTimer(loop, 0, self._on_end, name="media-end") if loop else None

    # --- Source ---

    @property
    def src(self) -> str:
        return self._src

    @src.setter
    def src(self, value: str) -> None:
        self._cancel_end()
        self._src = value or ""
        self._paused = True
        self._anchor_position = 0.0
        self._anchor_ms = self._clock.now()
        self._duration = 0.0
        log.info("Source set to %r", self._src)
        self.events.publish("emptied")
        if self._src:
            self._duration = float(self._durations.get(self._src, 0.0))
            self.events.publish("durationchange")

    @property
    def duration(self) -> float:
        return self._duration

    # --- Transport ---

    @property
    def paused(self) -> bool:
        return self._paused

    def play(self) -> None:
        if not self._src or not self._paused:
            return
        if self._duration and self.current_time >= self._duration:
            self._anchor_position = 0.0
        self._anchor_ms = self._clock.now()
        self._paused = False
        self._schedule_end()
        self.events.publish("play")

    def pause(self) -> None:
        if self._paused:
            return
        self._freeze()
        self._paused = True
        self._cancel_end()
        self.events.publish("pause")

    @property
    def current_time(self) -> float:
        position = self._anchor_position
        if not self._paused:
            position += (self._clock.now() - self._anchor_ms) * self._rate / 1000.0
        if self._duration:
            position = min(position, self._duration)
        return max(0.0, position)

    @current_time.setter
    def current_time(self, value: float) -> None:
        if not self._src:
            return
        value = max(0.0, float(value))
        if self._duration:
            value = min(value, self._duration)
        self._anchor_position = value
        self._anchor_ms = self._clock.now()
        self._schedule_end()
        self.events.publish("seeked")

    @property
    def playback_rate(self) -> float:
        return self._rate

    @playback_rate.setter
    def playback_rate(self, value: float) -> None:
        if value == self._rate:
            return
        self._freeze()
        self._rate = float(value)
        self._schedule_end()
        self.events.publish("ratechange")

    # --- Internals ---

    def _freeze(self) -> None:
        self._anchor_position = self.current_time
        self._anchor_ms = self._clock.now()

    def _schedule_end(self) -> None:
        if self._end_timer is None or self._paused or not self._duration or self._rate <= 0:
            return
        remaining = (self._duration - self.current_time) * 1000.0 / self._rate
        self._end_timer.start(max(0.0, remaining))

    def _cancel_end(self) -> None:
        if self._end_timer:
            self._end_timer.cancel()

    def _on_end(self) -> None:
        if self._paused:
            return
        self._anchor_position = self._duration
        self._anchor_ms = self._clock.now()
        self._paused = True
        log.info("Reached end of %r", self._src)
        self.events.publish("pause")
        self.events.publish("ended")
