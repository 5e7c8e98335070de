"""Channel message types and their wire encoding.

Every payload is a JSON-compatible dict with a ``kind`` discriminant.
Field names on the wire are camelCase; the sender identity is never
part of the payload, the transport attaches it.

NOTE: parse_message() is the only place loosely typed data enters the
protocol. Everything past it works with the dataclasses below.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Any, Union

from playlink.playback.state import PlaybackState, PositionState


class MessageError(ValueError):
    """Raised when a payload is not a valid channel message."""


class Role(str, enum.Enum):
    CONTROLLER = "controller"
    DISPLAY = "display"


KIND_DISCOVERY = "discovery"
KIND_SYNC = "sync"
KIND_STATE = "state"
KIND_PLAYBACK_STATE = "playback_state"
KIND_SEEK = "seek"
KIND_SOURCE = "source"


@dataclass(frozen=True)
class DiscoveryMessage:
    role: Role
    time_stamp: float


@dataclass(frozen=True)
class SyncMessage:
    delta: float
    time_stamp: float


@dataclass(frozen=True)
class StateMessage:
    playback_state: PlaybackState
    position_state: PositionState
    time_stamp: float


@dataclass(frozen=True)
class PlaybackStateMessage:
    playback_state: PlaybackState


@dataclass(frozen=True)
class SeekMessage:
    position: float


@dataclass(frozen=True)
class SourceMessage:
    source: str


Message = Union[DiscoveryMessage, SyncMessage, StateMessage,
                PlaybackStateMessage, SeekMessage, SourceMessage]

# Controller -> display commands
Command = Union[PlaybackStateMessage, SeekMessage, SourceMessage]


def to_payload(message: Message) -> dict[str, Any]:
    """Encode a message as a wire payload."""
    if isinstance(message, DiscoveryMessage):
        return {"kind": KIND_DISCOVERY, "role": message.role.value,
                "timeStamp": message.time_stamp}
    if isinstance(message, SyncMessage):
        return {"kind": KIND_SYNC, "delta": message.delta,
                "timeStamp": message.time_stamp}
    if isinstance(message, StateMessage):
        ps = message.position_state
        return {
            "kind": KIND_STATE,
            "playbackState": message.playback_state.value,
            "positionState": {
                "duration": ps.duration,
                "playbackRate": ps.playback_rate,
                "position": ps.position,
            },
            "timeStamp": message.time_stamp,
        }
    if isinstance(message, PlaybackStateMessage):
        return {"kind": KIND_PLAYBACK_STATE,
                "playbackState": message.playback_state.value}
    if isinstance(message, SeekMessage):
        return {"kind": KIND_SEEK, "position": message.position}
    if isinstance(message, SourceMessage):
        return {"kind": KIND_SOURCE, "source": message.source}
    raise TypeError(f"Not a channel message: {message!r}")


def parse_message(payload: Any) -> Message:
    """Decode a wire payload, raising MessageError if it is not valid."""
    if not isinstance(payload, dict):
        raise MessageError(f"Payload is not an object: {type(payload).__name__}")

    kind = payload.get("kind")
    if kind == KIND_DISCOVERY:
        return DiscoveryMessage(
            role=_enum(Role, payload, "role"),
            time_stamp=_number(payload, "timeStamp"),
        )
    if kind == KIND_SYNC:
        return SyncMessage(
            delta=_number(payload, "delta"),
            time_stamp=_number(payload, "timeStamp"),
        )
    if kind == KIND_STATE:
        position = payload.get("positionState")
        if not isinstance(position, dict):
            raise MessageError("state message without positionState")
        return StateMessage(
            playback_state=_enum(PlaybackState, payload, "playbackState"),
            position_state=PositionState(
                duration=_number(position, "duration"),
                playback_rate=_number(position, "playbackRate"),
                position=_number(position, "position"),
            ),
            time_stamp=_number(payload, "timeStamp"),
        )
    if kind == KIND_PLAYBACK_STATE:
        return PlaybackStateMessage(
            playback_state=_enum(PlaybackState, payload, "playbackState"))
    if kind == KIND_SEEK:
        return SeekMessage(position=_number(payload, "position"))
    if kind == KIND_SOURCE:
        source = payload.get("source")
        if not isinstance(source, str):
            raise MessageError("source message without a source string")
        return SourceMessage(source=source)
    raise MessageError(f"Unknown message kind: {kind!r}")


def _number(payload: dict, field: str) -> float:
    value = payload.get(field)
    # bool is an int subclass, but never a valid number here
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MessageError(f"Field '{field}' is not a number: {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise MessageError(f"Field '{field}' is not finite: {value!r}")
    return value


def _enum(enum_type, payload: dict, field: str):
    try:
        return enum_type(payload.get(field))
    except ValueError:
        raise MessageError(
            f"Field '{field}' is not a valid {enum_type.__name__}: {payload.get(field)!r}"
        ) from None
