#!/usr/bin/env python3
"""playlink: main entry point.

Runs an asyncio event loop in one of four roles:
  hub         relay server for the OSC transport
  display     owns the media element, answers a controller
  controller  console remote for a display on the same channel
  demo        display and controller in one process, in-memory channel
"""

import argparse
import asyncio
import logging
import signal
import sys
import uuid

from playlink.config import load_config, source_durations
from playlink.core.clock import Clock
from playlink.core.logging_config import setup_logging
from playlink.playback.media import SimulatedMedia
from playlink.protocol.pairing import DiscoveryRetry
from playlink.session.controller import ControllerSession
from playlink.session.display import DisplaySession
from playlink.transport.memory import MemoryHub, MemoryTransport
from playlink.transport.osc import OSCHub, OSCTransport

log = logging.getLogger("playlink.main")

ROLES = ("hub", "display", "controller", "demo")

HELP = "commands: p=play/pause  f=forward  b=back  v=video  m=music  q=quit"


class PlaylinkDaemon:
    """Main application daemon."""

    def __init__(self, config: dict, role: str, channel: str = ""):
        self.config = config
        self.role = role
        self.channel = channel or config["session"]["channel"] or str(uuid.uuid4())
        self._running = False
        self._stopped: asyncio.Event | None = None
        self.hub: OSCHub | None = None
        self.display: DisplaySession | None = None
        self.controller: ControllerSession | None = None

    # --- Wiring ---

    def _osc_transport(self, loop) -> OSCTransport:
        hub_cfg = self.config["hub"]
        return OSCTransport(loop, hub_ip=hub_cfg["ip"], hub_port=hub_cfg["port"],
                            listen_port=hub_cfg["listen_port"])

    def _make_display(self, loop, transport) -> DisplaySession:
        clock = Clock()
        media = SimulatedMedia(clock, loop, durations=source_durations(self.config))
        return DisplaySession(transport, self.channel, loop, clock=clock, media=media,
                              sync_interval_ms=self.config["sync"]["interval_ms"])

    def _make_controller(self, loop, transport) -> ControllerSession:
        pairing_cfg = self.config["pairing"]
        retry = DiscoveryRetry(loop, retries=pairing_cfg["discovery_retries"],
                               interval_ms=pairing_cfg["discovery_retry_interval_ms"])
        session = ControllerSession(
            transport, self.channel, loop,
            playback_interval_ms=self.config["playback"]["interval_ms"],
            discovery_retry=retry,
        )
        session.events.subscribe("render", self._render)
        return session

    # --- Console ---

    def _render(self, _data=None) -> None:
        if self.controller is None:
            return
        sys.stdout.write("\r\033[K" + self.controller.status_line())
        sys.stdout.flush()

    def _on_stdin(self) -> None:
        line = sys.stdin.readline()
        if not line:
            self.stop()
            return
        command = line.strip().lower()
        controller = self.controller
        step = self.config["playback"]["seek_step"]
        sources = self.config["sources"]

        if command in ("q", "quit"):
            self.stop()
        elif command in ("p", "play", "pause"):
            controller.toggle_playback()
        elif command in ("f", "forward"):
            controller.seek_relative(step)
        elif command in ("b", "back"):
            controller.seek_relative(-step)
        elif command in ("v", "video"):
            controller.load_source(sources["video"]["uri"])
        elif command in ("m", "music"):
            controller.load_source(sources["audio"]["uri"])
        elif command:
            print(HELP)

    # --- Main loop ---

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        self._stopped = asyncio.Event()
        self._running = True

        if self.role == "hub":
            hub_cfg = self.config["hub"]
            self.hub = OSCHub(port=hub_cfg["port"])
            self.hub.start()
        elif self.role == "display":
            self.display = self._make_display(loop, self._osc_transport(loop))
            self.display.start()
            log.info("Join with: playlink controller --channel %s", self.channel)
        elif self.role == "controller":
            self.controller = self._make_controller(loop, self._osc_transport(loop))
            self.controller.start()
        elif self.role == "demo":
            hub = MemoryHub(loop)
            self.display = self._make_display(loop, MemoryTransport(hub))
            self.controller = self._make_controller(loop, MemoryTransport(hub))
            self.display.start()
            self.controller.start()
        else:
            raise ValueError(f"Unknown role: {self.role}")

        if self.controller is not None:
            print(HELP)
            loop.add_reader(sys.stdin, self._on_stdin)

        try:
            await self._stopped.wait()
        except asyncio.CancelledError:
            log.info("Main loop cancelled")
        finally:
            if self.controller is not None:
                loop.remove_reader(sys.stdin)
            self.shutdown()

    def stop(self) -> None:
        self._running = False
        if self._stopped is not None:
            self._stopped.set()

    def shutdown(self) -> None:
        """Clean shutdown."""
        log.info("Shutting down...")
        if self.controller is not None:
            self.controller.close()
        if self.display is not None:
            self.display.close()
        if self.hub is not None:
            self.hub.stop()
        log.info("Shutdown complete")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="playlink",
                                     description="Remote playback control over a shared channel")
    parser.add_argument("role", choices=ROLES)
    parser.add_argument("--channel", default="", help="shared session id")
    parser.add_argument("--config", default=None, help="path to a YAML config file")
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--log-file", default=None, help="also write log records to this file")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    setup_logging(args.log_level, args.log_file)
    log.info("=== playlink %s ===", args.role)

    config = load_config(args.config)
    daemon = PlaylinkDaemon(config, args.role, channel=args.channel)

    loop = asyncio.new_event_loop()

    def signal_handler():
        log.info("Signal received, stopping...")
        daemon.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        loop.run_until_complete(daemon.run())
    finally:
        loop.close()


if __name__ == "__main__":
    main()
