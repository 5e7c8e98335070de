"""Playback data model shared by both roles.

The display is the only source of truth for these values. The
controller keeps the last snapshot it received as an immutable
``Baseline`` and derives the rendered position from it.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace


class PlaybackState(str, enum.Enum):
    NONE = "none"
    PAUSED = "paused"
    PLAYING = "playing"


@dataclass(frozen=True)
class PositionState:
    """Duration, rate and position of the media, in seconds."""

    duration: float = 0.0
    playback_rate: float = 1.0
    position: float = 0.0


DEFAULT_POSITION_STATE = PositionState()


def extrapolate(position_state: PositionState, elapsed_ms: float) -> PositionState:
    """Advance a position by ``elapsed_ms`` of real time at its playback rate."""
    advanced = position_state.position + elapsed_ms * position_state.playback_rate / 1000.0
    return replace(position_state, position=advanced)


@dataclass(frozen=True)
class Baseline:
    """Last known playback state, anchored to a local clock reading.

    ``origin_ms`` is on the controller's monotonic ``Clock.now()`` scale.
    """

    playback_state: PlaybackState = PlaybackState.NONE
    position_state: PositionState = DEFAULT_POSITION_STATE
    origin_ms: float = 0.0

    @property
    def playing(self) -> bool:
        return self.playback_state is PlaybackState.PLAYING

    def position_at(self, now_ms: float) -> float:
        """Extrapolated position at ``now_ms``; frozen unless playing."""
        if not self.playing:
            return self.position_state.position
        return extrapolate(self.position_state, now_ms - self.origin_ms).position

    def advanced_to(self, now_ms: float) -> Baseline:
        """Return a new baseline re-anchored at ``now_ms``."""
        if not self.playing:
            return replace(self, origin_ms=now_ms)
        return replace(
            self,
            position_state=extrapolate(self.position_state, now_ms - self.origin_ms),
            origin_ms=now_ms,
        )


def format_relative_time(time: float) -> str:
    """Format seconds as ``m:ss``, or ``h:mm:ss`` past the hour."""
    seconds = int(abs(time))
    minutes = seconds // 60
    hours = minutes // 60
    if hours:
        return f"{hours}:{minutes % 60:02d}:{seconds % 60:02d}"
    return f"{minutes}:{seconds % 60:02d}"
