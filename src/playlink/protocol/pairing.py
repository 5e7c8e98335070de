"""Two-role pairing handshake.

Both roles walk the same states:

    DISCONNECTED -> CONNECTING -> UNPAIRED -> PAIRED

and fall back to DISCONNECTED on transport loss from any state. The
controller announces itself once on entering UNPAIRED; the display
waits for that announcement, answers it and binds the sender. The
controller binds whoever answers with ``role=display``.

Once PAIRED, only messages from the bound peer get through admit().
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable

from playlink.core.timers import OneShotTimer
from playlink.protocol.messages import DiscoveryMessage, Message, Role

log = logging.getLogger("playlink.protocol.pairing")


class PairingState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    UNPAIRED = "unpaired"
    PAIRED = "paired"


@dataclass
class PeerBinding:
    self_id: str = ""
    peer_id: str = ""

    @property
    def bound(self) -> bool:
        return bool(self.peer_id)


class PairingCoordinator:
    """Pairing state machine; role behavior lives in the subclasses."""

    role: Role = None

    def __init__(self, on_change: Callable[[PairingState], None] = None):
        self.state = PairingState.DISCONNECTED
        self.binding = PeerBinding()
        self._on_change = on_change

    @property
    def paired(self) -> bool:
        return self.state is PairingState.PAIRED

    @property
    def peer_id(self) -> str:
        return self.binding.peer_id

    def _set_state(self, state: PairingState) -> None:
        if state is self.state:
            return
        log.info("%s pairing %s -> %s", self.role.value, self.state.value, state.value)
        self.state = state
        if self._on_change:
            self._on_change(state)

    # --- Lifecycle ---

    def connecting(self) -> None:
        self._set_state(PairingState.CONNECTING)

    def connected(self, client_id: str) -> None:
        self.binding = PeerBinding(self_id=client_id)
        self._set_state(PairingState.CONNECTING)

    def subscribed(self) -> None:
        if self.state is not PairingState.CONNECTING:
            log.debug("Subscribed while %s, ignoring", self.state.value)
            return
        self._set_state(PairingState.UNPAIRED)
        self._entered_unpaired()

    def disconnected(self) -> None:
        self.binding = PeerBinding()
        self._set_state(PairingState.DISCONNECTED)

    def unbind(self) -> None:
        """Drop the current peer and wait for a new one."""
        if self.state is not PairingState.PAIRED:
            return
        log.info("Unbinding peer %s", self.binding.peer_id)
        self.binding.peer_id = ""
        self._set_state(PairingState.UNPAIRED)
        self._entered_unpaired()

    def _bind(self, peer_id: str) -> None:
        self.binding.peer_id = peer_id
        log.info("%s bound to peer %s", self.role.value, peer_id)
        self._set_state(PairingState.PAIRED)

    # --- Inbound gate ---

    def admit(self, sender_id: str | None, message: Message) -> bool:
        """Return True if the message should be processed by the session.

        While UNPAIRED the handshake consumes discovery messages here and
        nothing is admitted. While PAIRED only the bound peer is admitted.
        """
        if self.state is PairingState.UNPAIRED:
            if sender_id and isinstance(message, DiscoveryMessage):
                self._on_discovery(sender_id, message)
            return False
        if self.state is PairingState.PAIRED:
            return bool(sender_id) and sender_id == self.binding.peer_id
        return False

    def _entered_unpaired(self) -> None:
        pass

    def _on_discovery(self, sender_id: str, message: DiscoveryMessage) -> None:
        raise NotImplementedError


class ControllerPairing(PairingCoordinator):
    """Announces once, then binds the first display that answers."""

    role = Role.CONTROLLER

    def __init__(self, announce: Callable[[], None],
                 on_change: Callable[[PairingState], None] = None,
                 retry: DiscoveryRetry = None):
        super().__init__(on_change)
        self._announce = announce
        self.retry = retry

    def _set_state(self, state: PairingState) -> None:
        if state is not PairingState.UNPAIRED and self.retry:
            self.retry.cancel()
        super()._set_state(state)

    def _entered_unpaired(self) -> None:
        self._announce()
        if self.retry:
            self.retry.start(self._reannounce)

    def _reannounce(self) -> None:
        if self.state is PairingState.UNPAIRED:
            self._announce()

    def _on_discovery(self, sender_id: str, message: DiscoveryMessage) -> None:
        if message.role is not Role.DISPLAY:
            return
        self._bind(sender_id)


class DisplayPairing(PairingCoordinator):
    """Waits for a controller announcement, answers and binds it."""

    role = Role.DISPLAY

    def __init__(self, on_paired: Callable[[str, DiscoveryMessage], None],
                 on_change: Callable[[PairingState], None] = None):
        super().__init__(on_change)
        self._on_paired = on_paired

    def _on_discovery(self, sender_id: str, message: DiscoveryMessage) -> None:
        if message.role is not Role.CONTROLLER:
            return
        self._bind(sender_id)
        self._on_paired(sender_id, message)


class DiscoveryRetry:
    """Bounded re-announce schedule for the controller.

    With ``retries=0`` the controller announces exactly once, which
    leaves a display that subscribes late unpaired. A positive value
    re-announces up to that many times, doubling the delay each time.
    """

    def __init__(self, loop, retries: int = 0, interval_ms: float = 1000.0,
                 backoff: float = 2.0):
        self.retries = retries
        self.interval_ms = interval_ms
        self.backoff = backoff
        self.attempts = 0
        self._action: Callable[[], None] | None = None
        self._timer = OneShotTimer(loop, interval_ms, self._fire, name="discovery-retry")

    def __bool__(self) -> bool:
        return self.retries > 0

    def start(self, action: Callable[[], None]) -> None:
        self.cancel()
        self._action = action
        self.attempts = 0
        self._timer.start(self.interval_ms)

    def cancel(self) -> None:
        self._timer.cancel()

    def _fire(self) -> None:
        self.attempts += 1
        log.info("Re-announcing discovery (attempt %d/%d)", self.attempts, self.retries)
        if self.attempts < self.retries:
            self._timer.start(self.interval_ms * self.backoff ** self.attempts)
        if self._action:
            self._action()
