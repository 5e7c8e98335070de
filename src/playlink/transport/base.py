"""Publish/subscribe transport contract.

The protocol only needs:
  - a connect/disconnect lifecycle reporting our client id and latency,
  - named channels with subscribe/unsubscribe,
  - deliveries tagged with the sender's client id,
  - fire-and-forget publish.

Lifecycle events go out on ``transport.events``:
    "connect"    -> ConnectionInfo
    "disconnect" -> DisconnectionInfo
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from playlink.core.event_bus import EventBus

CHANNEL_PREFIX = "playback_"
TRANSPORT_EVENTS = ("connect", "disconnect")


def channel_name(channel: str) -> str:
    """Channel name derived from the shared session id."""
    return f"{CHANNEL_PREFIX}{channel}"


class TransportError(RuntimeError):
    """Raised on misuse of a transport (e.g. publishing while disconnected)."""


@dataclass(frozen=True)
class ConnectionInfo:
    client: str
    latency: float = 0.0  # ms
    transport: str = ""


@dataclass(frozen=True)
class DisconnectionInfo:
    reason: str = ""
    reconnect: bool = False


@dataclass(frozen=True)
class Publication:
    data: Any
    client: str | None = None


@dataclass
class SubscriptionHandlers:
    publish: Callable[[Publication], None] = None
    subscribe: Callable[[], None] = None
    unsubscribe: Callable[[], None] = None
    error: Callable[[Any], None] = None


class Subscription:
    """A subscription to one channel."""

    def __init__(self, channel: str, handlers: SubscriptionHandlers):
        self.channel = channel
        self.handlers = handlers
        self.active = False

    def publish(self, data: dict) -> None:
        raise NotImplementedError

    def unsubscribe(self) -> None:
        raise NotImplementedError

    # --- Delivery helpers for implementations ---

    def _deliver(self, publication: Publication) -> None:
        if self.active and self.handlers.publish:
            self.handlers.publish(publication)

    def _subscribed(self) -> None:
        self.active = True
        if self.handlers.subscribe:
            self.handlers.subscribe()

    def _unsubscribed(self) -> None:
        was_active = self.active
        self.active = False
        if was_active and self.handlers.unsubscribe:
            self.handlers.unsubscribe()

    def _failed(self, error: Any) -> None:
        self.active = False
        if self.handlers.error:
            self.handlers.error(error)


class Transport:
    """Base class for pub/sub transports."""

    name = "base"

    def __init__(self):
        self.events = EventBus(TRANSPORT_EVENTS)
        self.client_id: str | None = None
        self.connected = False

    def connect(self) -> None:
        raise NotImplementedError

    def disconnect(self) -> None:
        raise NotImplementedError

    def subscribe(self, channel: str, handlers: SubscriptionHandlers) -> Subscription:
        raise NotImplementedError

    def _emit_connect(self, info: ConnectionInfo) -> None:
        self.client_id = info.client
        self.connected = True
        self.events.publish("connect", info)

    def _emit_disconnect(self, info: DisconnectionInfo) -> None:
        self.client_id = None
        self.connected = False
        self.events.publish("disconnect", info)
