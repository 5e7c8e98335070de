"""In-process transport.

``MemoryHub`` plays the part of the pub/sub server for transports that
share one event loop. Every callback is scheduled with
``loop.call_soon`` so deliveries run one at a time, in publish order,
and never re-enter the publisher. Payloads are copied through JSON so
peers never share objects.
"""

import json
import logging
import uuid

from playlink.transport.base import (
    ConnectionInfo,
    DisconnectionInfo,
    Publication,
    Subscription,
    SubscriptionHandlers,
    Transport,
    TransportError,
)

log = logging.getLogger("playlink.transport.memory")


class MemoryHub:
    """Channel registry and fan-out for MemoryTransport clients."""

    def __init__(self, loop):
        self.loop = loop
        self._channels: dict[str, list["MemorySubscription"]] = {}
        self._clients: dict[str, "MemoryTransport"] = {}

    def register(self, transport: "MemoryTransport") -> str:
        client_id = str(uuid.uuid4())
        self._clients[client_id] = transport
        log.debug("Client %s registered", client_id)
        return client_id

    def unregister(self, client_id: str) -> None:
        self._clients.pop(client_id, None)
        for channel, subs in list(self._channels.items()):
            self._channels[channel] = [s for s in subs if s.client_id != client_id]

    def add(self, sub: "MemorySubscription") -> None:
        self._channels.setdefault(sub.channel, []).append(sub)

    def remove(self, sub: "MemorySubscription") -> None:
        subs = self._channels.get(sub.channel, [])
        if sub in subs:
            subs.remove(sub)

    def subscribers(self, channel: str) -> list["MemorySubscription"]:
        return list(self._channels.get(channel, []))

    def broadcast(self, channel: str, sender_id: str, data: dict) -> None:
        wire = json.dumps(data)
        for sub in self.subscribers(channel):
            publication = Publication(data=json.loads(wire), client=sender_id)
            self.loop.call_soon(sub._deliver, publication)

    def drop(self, client_id: str, reason: str = "server", reconnect: bool = False) -> None:
        """Force-disconnect a client, as a server would on transport loss."""
        transport = self._clients.get(client_id)
        if transport is not None:
            transport._lost(DisconnectionInfo(reason=reason, reconnect=reconnect))


class MemorySubscription(Subscription):

    def __init__(self, transport: "MemoryTransport", channel: str,
                 handlers: SubscriptionHandlers):
        super().__init__(channel, handlers)
        self._transport = transport
        self.client_id = transport.client_id

    def publish(self, data: dict) -> None:
        if not self.active:
            raise TransportError(f"Subscription to {self.channel} is not active")
        self._transport.hub.broadcast(self.channel, self.client_id, data)

    def unsubscribe(self) -> None:
        self._transport.hub.remove(self)
        self._transport._subscriptions.discard(self)
        self._transport.hub.loop.call_soon(self._unsubscribed)


class MemoryTransport(Transport):
    """Transport client attached to a MemoryHub."""

    name = "memory"

    def __init__(self, hub: MemoryHub, latency: float = 0.0):
        super().__init__()
        self.hub = hub
        self.latency = latency
        self._subscriptions: set[MemorySubscription] = set()
        self._pending = None

    def connect(self) -> None:
        if self.connected or self._pending is not None:
            return
        self._pending = self.hub.loop.call_soon(self._on_connected)

    def _on_connected(self) -> None:
        self._pending = None
        client_id = self.hub.register(self)
        log.info("Connected as %s", client_id)
        self._emit_connect(ConnectionInfo(client=client_id, latency=self.latency,
                                          transport=self.name))

    def subscribe(self, channel: str, handlers: SubscriptionHandlers) -> MemorySubscription:
        if not self.connected:
            raise TransportError("Cannot subscribe while disconnected")
        sub = MemorySubscription(self, channel, handlers)
        self._subscriptions.add(sub)
        self.hub.add(sub)
        self.hub.loop.call_soon(self._confirm, sub)
        return sub

    def _confirm(self, sub: MemorySubscription) -> None:
        if sub in self._subscriptions:
            sub._subscribed()

    def disconnect(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        elif not self.connected:
            return
        self._lost(DisconnectionInfo(reason="client", reconnect=False))

    def _lost(self, info: DisconnectionInfo) -> None:
        client_id = self.client_id
        for sub in list(self._subscriptions):
            sub.active = False
        self._subscriptions.clear()
        if client_id:
            self.hub.unregister(client_id)
        log.info("Disconnected %s (%s)", client_id, info.reason)
        self._emit_disconnect(info)
