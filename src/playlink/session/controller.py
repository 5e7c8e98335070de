"""Controller role: issues commands, renders an extrapolated position."""

import logging

from playlink.core.clock import Clock
from playlink.core.event_bus import EventBus
from playlink.playback.estimator import PLAYBACK_TIMER_INTERVAL, PositionEstimator
from playlink.playback.replicator import ControllerReplicator
from playlink.playback.state import Baseline, PlaybackState, format_relative_time
from playlink.protocol.clock_sync import ControllerClockSync
from playlink.protocol.messages import (
    DiscoveryMessage,
    Message,
    PlaybackStateMessage,
    Role,
    SeekMessage,
    SourceMessage,
    StateMessage,
    SyncMessage,
)
from playlink.protocol.pairing import ControllerPairing, DiscoveryRetry, PairingState
from playlink.session.base import PeerSession
from playlink.transport.base import ConnectionInfo, Transport

log = logging.getLogger("playlink.session.controller")


class ControllerSession(PeerSession):
    """Drives a display; never changes playback state locally."""

    role = Role.CONTROLLER

    def __init__(self, transport: Transport, channel: str, loop,
                 clock: Clock = None, event_bus: EventBus = None,
                 playback_interval_ms: float = PLAYBACK_TIMER_INTERVAL,
                 discovery_retry: DiscoveryRetry = None):
        self._discovery_retry = discovery_retry
        super().__init__(transport, channel, loop, clock=clock, event_bus=event_bus)
        self.clock_sync = ControllerClockSync(self.clock, self.publish)
        self.estimator = PositionEstimator(loop, self.clock, playback_interval_ms,
                                           on_tick=self._on_tick)
        self.replicator = ControllerReplicator(self.clock, self.estimator)

    def _create_pairing(self) -> ControllerPairing:
        return ControllerPairing(
            announce=self._announce,
            on_change=self._on_pairing_changed,
            retry=self._discovery_retry,
        )

    @property
    def baseline(self) -> Baseline:
        return self.estimator.baseline

    @property
    def clock_offset(self) -> float:
        return self.clock_sync.offset

    def position(self) -> float:
        return self.estimator.position()

    # --- Lifecycle ---

    def _on_connected(self, info: ConnectionInfo) -> None:
        self.replicator.latency = info.latency
        super()._on_connected(info)

    def _announce(self) -> None:
        self.publish(DiscoveryMessage(role=Role.CONTROLLER,
                                      time_stamp=self.clock.wall_ms()))
        log.info("Announced controller on %s", self.channel)

    def _unpaired(self) -> None:
        self.estimator.stop()

    def _reset(self) -> None:
        self.clock_sync.stop()
        self.replicator.clear()

    # --- Inbound ---

    def _dispatch(self, message: Message) -> None:
        if isinstance(message, SyncMessage):
            self.clock_sync.on_sync(message)
            return
        if isinstance(message, StateMessage):
            self.replicator.ingest(message, self.clock_sync.offset)
            self.events.publish("render")
            return
        if isinstance(message, (DiscoveryMessage, PlaybackStateMessage,
                                SeekMessage, SourceMessage)):
            log.debug("Ignoring %s from display", type(message).__name__)
            return
        raise TypeError(f"Unhandled message: {message!r}")

    def _on_tick(self, _baseline: Baseline) -> None:
        self.events.publish("render")

    # --- Commands ---

    def toggle_playback(self) -> bool:
        if self.pairing.state is not PairingState.PAIRED:
            return False
        target = (PlaybackState.PAUSED if self.baseline.playing
                  else PlaybackState.PLAYING)
        log.info("→ %s", target.value)
        return self.publish(PlaybackStateMessage(playback_state=target))

    def seek_relative(self, delta: float) -> bool:
        if self.pairing.state is not PairingState.PAIRED:
            return False
        position = self.position() + delta
        log.info("→ Seek %+.0fs to %.3fs", delta, position)
        return self.publish(SeekMessage(position=position))

    def load_source(self, uri: str) -> bool:
        if self.pairing.state is not PairingState.PAIRED:
            return False
        log.info("→ Load %s", uri)
        return self.publish(SourceMessage(source=uri))

    # --- Rendering ---

    def status_line(self) -> str:
        state = self.pairing.state
        if state is PairingState.DISCONNECTED:
            return "Disconnected"
        if state is PairingState.CONNECTING:
            return "Connecting..."
        if state is PairingState.UNPAIRED:
            return "Pairing..."
        duration = self.baseline.position_state.duration
        position = min(self.position(), duration)
        return (f"Paired  {format_relative_time(position)} / "
                f"{format_relative_time(duration)}  [{self.baseline.playback_state.value}]")
