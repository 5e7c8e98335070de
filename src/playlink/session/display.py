"""Display role: owns the media element and the sync heartbeat."""

import logging

from playlink.core.clock import Clock
from playlink.core.event_bus import EventBus
from playlink.playback.media import MediaElement
from playlink.playback.replicator import DisplayReplicator
from playlink.protocol.clock_sync import SYNC_TIMER_INTERVAL, DisplayClockSync
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
from playlink.protocol.pairing import DisplayPairing
from playlink.session.base import PeerSession
from playlink.transport.base import Transport

log = logging.getLogger("playlink.session.display")


class DisplaySession(PeerSession):
    """Authoritative side of a channel."""

    role = Role.DISPLAY

    def __init__(self, transport: Transport, channel: str, loop,
                 clock: Clock = None, event_bus: EventBus = None,
                 media: MediaElement = None,
                 sync_interval_ms: float = SYNC_TIMER_INTERVAL):
        super().__init__(transport, channel, loop, clock=clock, event_bus=event_bus)
        self.clock_sync = DisplayClockSync(self.clock, self.publish, loop, sync_interval_ms)
        self.replicator = DisplayReplicator(self.clock, self.publish,
                                            can_publish=lambda: self.paired)
        if media is not None:
            self.replicator.attach(media)

    def _create_pairing(self) -> DisplayPairing:
        return DisplayPairing(on_paired=self._on_paired,
                              on_change=self._on_pairing_changed)

    @property
    def media(self) -> MediaElement | None:
        return self.replicator.media

    @property
    def clock_offset(self) -> float:
        return self.clock_sync.offset

    def attach_media(self, media: MediaElement) -> None:
        self.replicator.attach(media)
        self.replicator.send_state()

    # --- Pairing ---

    def _on_paired(self, peer_id: str, discovery: DiscoveryMessage) -> None:
        local_ms = self.clock.wall_ms()
        self.publish(DiscoveryMessage(role=Role.DISPLAY, time_stamp=local_ms))
        self.clock_sync.begin(discovery.time_stamp, local_ms)
        # Extra snapshot outside the media-event path so the controller has a baseline at once
        self.replicator.send_state()

    def _unpaired(self) -> None:
        self.clock_sync.stop()

    def _reset(self) -> None:
        self.clock_sync.stop()

    # --- Inbound ---

    def _dispatch(self, message: Message) -> None:
        if isinstance(message, SyncMessage):
            self.clock_sync.on_sync(message)
            return
        if isinstance(message, (PlaybackStateMessage, SeekMessage, SourceMessage)):
            self.replicator.apply(message)
            return
        if isinstance(message, (DiscoveryMessage, StateMessage)):
            log.debug("Ignoring %s from controller", type(message).__name__)
            return
        raise TypeError(f"Unhandled message: {message!r}")
