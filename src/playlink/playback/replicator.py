"""Playback state replication between display and controller.

Display side: one snapshot per state-affecting media event, never on a
timer. Commands only touch the media element; the snapshot that
follows comes from the resulting media event.

Controller side: each snapshot becomes the new extrapolation baseline,
anchored to the local clock using the current offset estimate.
"""

import logging
import math
from typing import Callable

from playlink.core.clock import Clock
from playlink.playback.estimator import PositionEstimator
from playlink.playback.media import MediaElement
from playlink.playback.state import Baseline, PlaybackState, PositionState
from playlink.protocol.messages import (
    Command,
    PlaybackStateMessage,
    SeekMessage,
    SourceMessage,
    StateMessage,
)

log = logging.getLogger("playlink.playback.replicator")

# Media events that change what the controller should show.
# "timeupdate" is not replicated; the controller extrapolates instead.
STATE_EVENTS = ("durationchange", "ratechange", "seeked", "play", "pause", "emptied")


def _finite(value: float, default: float) -> float:
    value = float(value)
    return value if math.isfinite(value) else default


class DisplayReplicator:
    """Publishes authoritative snapshots of the display's media element."""

    def __init__(self, clock: Clock, publish: Callable[[StateMessage], None],
                 can_publish: Callable[[], bool] = lambda: True):
        self.clock = clock
        self._publish = publish
        self._can_publish = can_publish
        self.media: MediaElement | None = None
        self.published = 0

    def attach(self, media: MediaElement) -> None:
        self.detach()
        self.media = media
        for event in STATE_EVENTS:
            media.events.subscribe(event, self._on_media_event)

    def detach(self) -> None:
        if self.media is None:
            return
        for event in STATE_EVENTS:
            self.media.events.unsubscribe(event, self._on_media_event)
        self.media = None

    def snapshot(self) -> StateMessage | None:
        media = self.media
        if media is None:
            return None
        if not media.src:
            playback_state = PlaybackState.NONE
        elif media.paused:
            playback_state = PlaybackState.PAUSED
        else:
            playback_state = PlaybackState.PLAYING
        return StateMessage(
            playback_state=playback_state,
            position_state=PositionState(
                duration=_finite(media.duration, 0.0),
                playback_rate=_finite(media.playback_rate, 1.0),
                position=_finite(media.current_time, 0.0),
            ),
            time_stamp=self.clock.wall_ms(),
        )

    def send_state(self) -> bool:
        if not self._can_publish():
            return False
        message = self.snapshot()
        if message is None:
            return False
        self._publish(message)
        self.published += 1
        log.debug("Snapshot %s at %.3fs", message.playback_state.value,
                  message.position_state.position)
        return True

    def _on_media_event(self, _data=None) -> None:
        self.send_state()

    def apply(self, command: Command) -> bool:
        """Apply a controller command to the media element."""
        media = self.media
        if media is None:
            log.debug("No media element, dropping %s", type(command).__name__)
            return False

        if isinstance(command, PlaybackStateMessage):
            if command.playback_state is PlaybackState.PAUSED and not media.paused:
                media.pause()
            elif command.playback_state is PlaybackState.PLAYING and media.paused:
                media.play()
            return True

        if isinstance(command, SeekMessage):
            media.current_time = command.position
            return True

        if isinstance(command, SourceMessage):
            media.src = command.source
            return True

        raise TypeError(f"Not a command: {command!r}")


class ControllerReplicator:
    """Turns snapshots into extrapolation baselines."""

    def __init__(self, clock: Clock, estimator: PositionEstimator):
        self.clock = clock
        self.estimator = estimator
        self.latency = 0.0
        self.received = 0

    @property
    def baseline(self) -> Baseline:
        return self.estimator.baseline

    def ingest(self, message: StateMessage, offset: float) -> Baseline:
        self.estimator.stop()

        one_way = self.clock.wall_ms() - message.time_stamp
        origin_ms = (message.time_stamp - self.clock.origin_ms
                     + self.latency + offset + one_way)

        baseline = Baseline(
            playback_state=message.playback_state,
            position_state=message.position_state,
            origin_ms=origin_ms,
        )
        self.estimator.reset(baseline)
        self.received += 1
        log.debug("Baseline %s at %.3fs", baseline.playback_state.value,
                  baseline.position_state.position)
        return baseline

    def clear(self) -> None:
        self.estimator.clear()
        self.latency = 0.0
