"""Cancelable one-shot timers on the event loop.

Repeating behavior is built by re-arming from inside the callback,
so a timer never has more than one pending handle.
"""

import logging
from typing import Callable

log = logging.getLogger("playlink.timers")


class OneShotTimer:
    """A single ``loop.call_later`` handle that can be re-armed."""

    def __init__(self, loop, interval_ms: float, callback: Callable[[], None],
                 name: str = "timer"):
        self._loop = loop
        self.interval_ms = interval_ms
        self._callback = callback
        self.name = name
        self._handle = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self, interval_ms: float = None) -> None:
        """Arm the timer, replacing any outstanding handle."""
        self.cancel()
        delay = self.interval_ms if interval_ms is None else interval_ms
        self._handle = self._loop.call_later(delay / 1000.0, self._fire)

    def cancel(self) -> None:
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None

    def _fire(self) -> None:
        self._handle = None
        log.debug("%s fired", self.name)
        self._callback()
