"""OSC relay transport over UDP.

``OSCHub`` is a small relay server: clients connect, subscribe to
named channels and publish JSON payloads, which the hub fans out to
every subscriber of the channel tagged with the publisher's client id.
``OSCTransport`` is the client side.

Addresses (client -> hub):
    /connect      <listen_port> <nonce>
    /subscribe    <client_id> <channel>
    /unsubscribe  <client_id> <channel>
    /publish      <client_id> <channel> <json>
    /disconnect   <client_id>

Addresses (hub -> client):
    /connected    <client_id> <nonce>
    /subscribed   <channel>
    /unsubscribed <channel>
    /publication  <channel> <sender_id> <json>
    /disconnected <reason>

Payloads travel as JSON strings: OSC floats are 32-bit, which cannot
carry millisecond epoch timestamps.

NOTE: python-osc handlers run on the server thread. The hub guards its
tables with a lock; the client hands every frame to the asyncio loop
with call_soon_threadsafe so the protocol stays single-threaded.
"""

import json
import logging
import threading
import time
import uuid

from pythonosc.dispatcher import Dispatcher
from pythonosc.osc_server import BlockingOSCUDPServer
from pythonosc.udp_client import SimpleUDPClient

from playlink.core.timers import OneShotTimer
from playlink.transport.base import (
    ConnectionInfo,
    DisconnectionInfo,
    Publication,
    Subscription,
    SubscriptionHandlers,
    Transport,
    TransportError,
)

log = logging.getLogger("playlink.transport.osc")

CONNECT_TIMEOUT = 5000  # ms


def _close_server(server: BlockingOSCUDPServer) -> None:
    server.shutdown()
    server.server_close()


class OSCHub:
    """Relays channel publications between OSC clients."""

    def __init__(self, ip: str = "0.0.0.0", port: int = 9100):
        self.ip = ip
        self.port = port
        self._server: BlockingOSCUDPServer | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._clients: dict[str, tuple[str, int]] = {}
        self._channels: dict[str, set[str]] = {}
        self._senders: dict[tuple[str, int], SimpleUDPClient] = {}

    def start(self) -> None:
        """Start relaying in a background thread."""
        dispatcher = Dispatcher()
        self._setup_handlers(dispatcher)

        self._server = BlockingOSCUDPServer((self.ip, self.port), dispatcher)
        self.port = self._server.server_address[1]
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="osc-hub",
            daemon=True,
        )
        self._thread.start()
        log.info("OSC hub listening on %s:%d", self.ip, self.port)

    def stop(self) -> None:
        with self._lock:
            addresses = list(self._clients.values())
            self._clients.clear()
            self._channels.clear()
        for addr in addresses:
            self._send(addr, "/disconnected", "shutdown")
        if self._server:
            _close_server(self._server)
            self._server = None
            log.info("OSC hub stopped")

    def _setup_handlers(self, d: Dispatcher) -> None:
        d.map("/connect", self._on_connect, needs_reply_address=True)
        d.map("/subscribe", self._on_subscribe, needs_reply_address=True)
        d.map("/unsubscribe", self._on_unsubscribe, needs_reply_address=True)
        d.map("/publish", self._on_publish, needs_reply_address=True)
        d.map("/disconnect", self._on_disconnect, needs_reply_address=True)
        d.set_default_handler(self._on_unknown)

    # --- Handlers ---
    # python-osc callback signature with needs_reply_address:
    #   callback(client_address, address, *osc_values)

    def _on_connect(self, client_address, address: str, *args):
        if len(args) < 2:
            return
        try:
            listen_port = int(args[0])
        except (ValueError, TypeError):
            return
        nonce = str(args[1])
        reply_addr = (client_address[0], listen_port)
        client_id = str(uuid.uuid4())
        with self._lock:
            self._clients[client_id] = reply_addr
        log.info("Client %s connected from %s:%d", client_id, *reply_addr)
        self._send(reply_addr, "/connected", client_id, nonce)

    def _on_subscribe(self, client_address, address: str, *args):
        client_id, channel = self._client_and_channel(args)
        if channel is None:
            return
        with self._lock:
            reply_addr = self._clients.get(client_id)
            if reply_addr is not None:
                self._channels.setdefault(channel, set()).add(client_id)
        if reply_addr is None:
            self._reject(client_address, client_id)
            return
        log.debug("Client %s subscribed to %s", client_id, channel)
        self._send(reply_addr, "/subscribed", channel)

    def _on_unsubscribe(self, client_address, address: str, *args):
        client_id, channel = self._client_and_channel(args)
        if channel is None:
            return
        with self._lock:
            reply_addr = self._clients.get(client_id)
            self._channels.get(channel, set()).discard(client_id)
        if reply_addr is not None:
            self._send(reply_addr, "/unsubscribed", channel)

    def _on_publish(self, client_address, address: str, *args):
        if len(args) < 3:
            return
        client_id, channel, payload = str(args[0]), str(args[1]), str(args[2])
        with self._lock:
            if client_id not in self._clients:
                targets = None
            else:
                targets = [self._clients[c] for c in self._channels.get(channel, ())
                           if c in self._clients]
        if targets is None:
            self._reject(client_address, client_id)
            return
        for addr in targets:
            self._send(addr, "/publication", channel, client_id, payload)

    def _on_disconnect(self, client_address, address: str, *args):
        if not args:
            return
        client_id = str(args[0])
        with self._lock:
            self._clients.pop(client_id, None)
            for members in self._channels.values():
                members.discard(client_id)
        log.info("Client %s disconnected", client_id)

    def _on_unknown(self, address: str, *args):
        log.debug("Unknown OSC: %s %s", address, args)

    # --- Helpers ---

    @staticmethod
    def _client_and_channel(args):
        if len(args) < 2:
            return None, None
        return str(args[0]), str(args[1])

    def _reject(self, client_address, client_id: str) -> None:
        log.debug("Rejecting unknown client %s from %s", client_id, client_address)

    def _send(self, addr: tuple[str, int], address: str, *args) -> None:
        sender = self._senders.get(addr)
        if sender is None:
            sender = self._senders[addr] = SimpleUDPClient(*addr)
        sender.send_message(address, list(args))


class OSCSubscription(Subscription):

    def __init__(self, transport: "OSCTransport", channel: str,
                 handlers: SubscriptionHandlers):
        super().__init__(channel, handlers)
        self._transport = transport

    def publish(self, data: dict) -> None:
        if not self.active:
            raise TransportError(f"Subscription to {self.channel} is not active")
        self._transport._send("/publish", self._transport.client_id, self.channel,
                              json.dumps(data))

    def unsubscribe(self) -> None:
        self._transport._send("/unsubscribe", self._transport.client_id, self.channel)


class OSCTransport(Transport):
    """Client of an OSCHub."""

    name = "osc"

    def __init__(self, loop, hub_ip: str = "127.0.0.1", hub_port: int = 9100,
                 listen_ip: str = "0.0.0.0", listen_port: int = 0,
                 connect_timeout_ms: float = CONNECT_TIMEOUT):
        super().__init__()
        self.loop = loop
        self.hub_ip = hub_ip
        self.hub_port = hub_port
        self.listen_ip = listen_ip
        self.listen_port = listen_port
        self._client: SimpleUDPClient | None = None
        self._server: BlockingOSCUDPServer | None = None
        self._thread: threading.Thread | None = None
        self._subscriptions: dict[str, OSCSubscription] = {}
        self._nonce: str | None = None
        self._connect_sent = 0.0
        self._connect_timer = OneShotTimer(loop, connect_timeout_ms,
                                           self._on_connect_timeout, name="osc-connect")

    # --- Lifecycle ---

    def connect(self) -> None:
        if self.connected or self._nonce is not None:
            return
        dispatcher = Dispatcher()
        self._setup_handlers(dispatcher)
        self._server = BlockingOSCUDPServer((self.listen_ip, self.listen_port), dispatcher)
        self.listen_port = self._server.server_address[1]
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="osc-client",
            daemon=True,
        )
        self._thread.start()

        self._client = SimpleUDPClient(self.hub_ip, self.hub_port)
        self._nonce = uuid.uuid4().hex
        self._connect_sent = time.monotonic()
        self._connect_timer.start()
        log.info("Connecting to hub %s:%d (listening on :%d)",
                 self.hub_ip, self.hub_port, self.listen_port)
        self._send("/connect", self.listen_port, self._nonce)

    def disconnect(self) -> None:
        if self._nonce is None and not self.connected:
            return
        if self.connected:
            self._send("/disconnect", self.client_id)
        self._lost(DisconnectionInfo(reason="client", reconnect=False))

    def subscribe(self, channel: str, handlers: SubscriptionHandlers) -> OSCSubscription:
        if not self.connected:
            raise TransportError("Cannot subscribe while disconnected")
        sub = OSCSubscription(self, channel, handlers)
        self._subscriptions[channel] = sub
        self._send("/subscribe", self.client_id, channel)
        return sub

    def _send(self, address: str, *args) -> None:
        if self._client is None:
            log.warning("OSC client not connected, ignoring: %s", address)
            return
        log.debug("OSC SEND: %s %s", address, args)
        self._client.send_message(address, list(args))

    def _lost(self, info: DisconnectionInfo) -> None:
        pending = self._nonce is not None
        self._connect_timer.cancel()
        self._nonce = None
        for sub in self._subscriptions.values():
            sub.active = False
        self._subscriptions.clear()
        server, self._server = self._server, None
        if server:
            # shutdown() waits for serve_forever to notice; keep it off the loop thread
            threading.Thread(target=_close_server, args=(server,),
                             name="osc-client-stop", daemon=True).start()
        self._client = None
        log.info("Disconnected (%s)", info.reason)
        if self.connected or pending:
            self._emit_disconnect(info)

    # --- Server thread -> loop ---

    def _setup_handlers(self, d: Dispatcher) -> None:
        d.map("/connected", self._threadsafe(self._on_connected))
        d.map("/subscribed", self._threadsafe(self._on_subscribed))
        d.map("/unsubscribed", self._threadsafe(self._on_unsubscribed))
        d.map("/publication", self._threadsafe(self._on_publication))
        d.map("/disconnected", self._threadsafe(self._on_disconnected))

    def _threadsafe(self, handler):
        def forward(address: str, *args):
            self.loop.call_soon_threadsafe(handler, *args)
        forward.__name__ = handler.__name__
        return forward

    # --- Frame handlers (run on the loop) ---

    def _on_connected(self, client_id=None, nonce=None, *_):
        if client_id is None or str(nonce) != self._nonce or self.connected:
            return
        self._connect_timer.cancel()
        latency = (time.monotonic() - self._connect_sent) * 1000.0
        log.info("Connected as %s (%.1f ms)", client_id, latency)
        self._emit_connect(ConnectionInfo(client=str(client_id), latency=latency,
                                          transport=self.name))

    def _on_subscribed(self, channel=None, *_):
        sub = self._subscriptions.get(str(channel))
        if sub is not None:
            sub._subscribed()

    def _on_unsubscribed(self, channel=None, *_):
        sub = self._subscriptions.pop(str(channel), None)
        if sub is not None:
            sub._unsubscribed()

    def _on_publication(self, channel=None, sender=None, payload=None, *_):
        sub = self._subscriptions.get(str(channel))
        if sub is None or payload is None:
            return
        try:
            data = json.loads(payload)
        except (TypeError, ValueError):
            log.debug("Dropping non-JSON publication on %s", channel)
            return
        sub._deliver(Publication(data=data, client=str(sender) if sender else None))

    def _on_disconnected(self, reason="server", *_):
        if not self.connected:
            return
        self._lost(DisconnectionInfo(reason=str(reason), reconnect=True))

    def _on_connect_timeout(self) -> None:
        log.warning("No answer from hub %s:%d", self.hub_ip, self.hub_port)
        self._lost(DisconnectionInfo(reason="timeout", reconnect=True))
