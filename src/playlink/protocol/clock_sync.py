"""Clock offset estimation between the two peers.

Both roles apply the same update rule to every Sync message:

    one_way  = local_now - message.time_stamp
    estimate = (message.delta + one_way) / 2

The roles differ only in who drives the exchange. The display owns a
resync heartbeat; the controller answers every Sync immediately and
never starts a round on its own.
"""

import logging
from typing import Callable

from playlink.core.clock import Clock
from playlink.core.timers import OneShotTimer
from playlink.protocol.messages import SyncMessage

log = logging.getLogger("playlink.protocol.clock_sync")

SYNC_TIMER_INTERVAL = 250  # ms


def averaged_offset(peer_delta: float, local_ms: float, peer_time_stamp: float) -> float:
    """Average the peer-reported delta with a freshly measured one-way delta."""
    return (peer_delta + (local_ms - peer_time_stamp)) / 2


class ClockOffsetEstimate:
    """The single offset value both roles use to translate peer timestamps."""

    def __init__(self):
        self.value = 0.0
        self.samples = 0

    def update(self, message: SyncMessage, local_ms: float) -> float:
        self.value = averaged_offset(message.delta, local_ms, message.time_stamp)
        self.samples += 1
        return self.value

    def reset(self) -> None:
        self.value = 0.0
        self.samples = 0


class ClockSync:
    """Shared state of the two role strategies."""

    def __init__(self, clock: Clock, publish: Callable[[SyncMessage], None]):
        self.clock = clock
        self._publish = publish
        self.estimate = ClockOffsetEstimate()

    @property
    def offset(self) -> float:
        return self.estimate.value

    def on_sync(self, message: SyncMessage) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        """Drop the estimate; called on disconnect or lost pairing."""
        self.estimate.reset()


class DisplayClockSync(ClockSync):
    """Heartbeat owner: republishes the estimate every interval."""

    def __init__(self, clock: Clock, publish: Callable[[SyncMessage], None],
                 loop, interval_ms: float = SYNC_TIMER_INTERVAL):
        super().__init__(clock, publish)
        self.timer = OneShotTimer(loop, interval_ms, self._on_timer, name="resync")

    def begin(self, peer_time_stamp: float, local_ms: float = None) -> SyncMessage:
        """Send the first Sync of a pairing cycle and arm the heartbeat."""
        if local_ms is None:
            local_ms = self.clock.wall_ms()
        message = SyncMessage(delta=local_ms - peer_time_stamp, time_stamp=local_ms)
        self._publish(message)
        self.timer.start()
        return message

    def on_sync(self, message: SyncMessage) -> None:
        self.timer.cancel()
        value = self.estimate.update(message, self.clock.wall_ms())
        log.debug("Clock offset %.1f ms (sample %d)", value, self.estimate.samples)
        self.timer.start()

    def _on_timer(self) -> None:
        self.timer.start()
        self._publish(SyncMessage(delta=self.estimate.value,
                                  time_stamp=self.clock.wall_ms()))

    def stop(self) -> None:
        self.timer.cancel()
        super().stop()


class ControllerClockSync(ClockSync):
    """Pure responder: answers each Sync with the recomputed estimate."""

    def on_sync(self, message: SyncMessage) -> None:
        local_ms = self.clock.wall_ms()
        value = self.estimate.update(message, local_ms)
        log.debug("Clock offset %.1f ms (sample %d)", value, self.estimate.samples)
        self._publish(SyncMessage(delta=value, time_stamp=local_ms))
