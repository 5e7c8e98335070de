"""Role session wiring.

A session ties one transport, one channel and the role's protocol
components together. Inbound publications are parsed, gated by the
pairing coordinator and then dispatched to the role's handlers.

UI notifications are published on ``session.events``:
    "connection_changed" -> PairingState
    "pairing_changed"    -> PairingState
    "render"             -> None
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from playlink.core.clock import Clock
from playlink.core.event_bus import EventBus
from playlink.protocol.messages import (
    Message,
    MessageError,
    Role,
    parse_message,
    to_payload,
)
from playlink.protocol.pairing import PairingCoordinator, PairingState
from playlink.transport.base import (
    ConnectionInfo,
    DisconnectionInfo,
    Publication,
    Subscription,
    SubscriptionHandlers,
    Transport,
    channel_name,
)

log = logging.getLogger("playlink.session")

SESSION_EVENTS = ("connection_changed", "pairing_changed", "render")


@dataclass(frozen=True)
class Session:
    channel: str
    role: Role


class PeerSession:
    """Connection lifecycle and inbound gate shared by both roles."""

    role: Role = None

    def __init__(self, transport: Transport, channel: str, loop,
                 clock: Clock = None, event_bus: EventBus = None):
        self.session = Session(channel=channel, role=self.role)
        self.transport = transport
        self.loop = loop
        self.clock = clock or Clock()
        self.events = event_bus or EventBus(SESSION_EVENTS)
        self.latency = 0.0
        self.subscription: Subscription | None = None
        self.pairing: PairingCoordinator = self._create_pairing()

        self._detach = (
            transport.events.subscribe("connect", self._on_connected),
            transport.events.subscribe("disconnect", self._on_disconnected),
        )

    def _create_pairing(self) -> PairingCoordinator:
        raise NotImplementedError

    @property
    def channel(self) -> str:
        return self.session.channel

    @property
    def state(self) -> PairingState:
        return self.pairing.state

    @property
    def paired(self) -> bool:
        return self.pairing.paired

    # --- Lifecycle ---

    def start(self) -> None:
        log.info("Starting %s session on channel %s", self.role.value, self.channel)
        self.pairing.connecting()
        self.events.publish("connection_changed", self.pairing.state)
        self.transport.connect()

    def stop(self) -> None:
        self.transport.disconnect()

    def close(self) -> None:
        """Stop and detach from the transport."""
        self.stop()
        for detach in self._detach:
            detach()

    def _on_connected(self, info: ConnectionInfo) -> None:
        self.latency = info.latency
        self.pairing.connected(info.client)
        self.events.publish("connection_changed", self.pairing.state)
        self.subscription = self.transport.subscribe(
            channel_name(self.channel),
            SubscriptionHandlers(
                publish=self._on_receive,
                subscribe=self._on_subscribe,
                unsubscribe=self._on_unsubscribe,
                error=self._on_unsubscribe,
            ),
        )

    def _on_subscribe(self) -> None:
        self.pairing.subscribed()

    def _on_unsubscribe(self, _error=None) -> None:
        self.subscription = None
        if self.pairing.state is not PairingState.DISCONNECTED:
            self.transport.disconnect()

    def _on_disconnected(self, info: DisconnectionInfo) -> None:
        log.info("%s disconnected (%s, reconnect=%s)",
                 self.role.value, info.reason, info.reconnect)
        self.subscription = None
        self.latency = 0.0
        self.pairing.disconnected()
        self._reset()
        self.events.publish("connection_changed", self.pairing.state)
        self.events.publish("render")

    def _reset(self) -> None:
        """Drop role state: timers, clock estimate, cached playback."""

    def _on_pairing_changed(self, state: PairingState) -> None:
        if state is not PairingState.PAIRED:
            self._unpaired()
        self.events.publish("pairing_changed", state)
        self.events.publish("render")

    def _unpaired(self) -> None:
        """Called whenever pairing is lost or not yet established."""

    # --- Messaging ---

    def publish(self, message: Message) -> bool:
        if self.subscription is None or not self.subscription.active:
            log.debug("No active subscription, dropping %s", type(message).__name__)
            return False
        self.subscription.publish(to_payload(message))
        return True

    def _on_receive(self, publication: Publication) -> None:
        try:
            message = parse_message(publication.data)
        except MessageError as e:
            log.debug("Discarding malformed message from %s: %s", publication.client, e)
            return
        if not self.pairing.admit(publication.client, message):
            return
        self._dispatch(message)

    def _dispatch(self, message: Message) -> None:
        raise NotImplementedError
