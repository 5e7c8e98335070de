"""Tests for playlink.core: clock, timers, event bus."""

import logging

import pytest

from playlink.core.clock import Clock
from playlink.core.event_bus import EventBus
from playlink.core.logging_config import setup_logging
from playlink.core.timers import OneShotTimer


class TestClock:
    def test_origin_and_now(self, loop) -> None:
        clock = Clock(time_fn=lambda: 100.0, monotonic_fn=loop.time)
        assert clock.origin_ms == 100_000.0
        assert clock.now() == 0.0
        loop.advance(1.5)
        assert clock.now() == pytest.approx(1500.0)
        assert clock.wall_ms() == pytest.approx(101_500.0)


class TestOneShotTimer:
    def test_fires_once(self, loop) -> None:
        fired = []
        timer = OneShotTimer(loop, 250, lambda: fired.append(loop.time()))
        timer.start()
        assert timer.active
        loop.advance(1.0)
        assert fired == [pytest.approx(0.25)]
        assert not timer.active

    def test_restart_replaces_pending_handle(self, loop) -> None:
        fired = []
        timer = OneShotTimer(loop, 250, lambda: fired.append(loop.time()))
        timer.start()
        loop.advance(0.1)
        timer.start()
        loop.advance(1.0)
        assert fired == [pytest.approx(0.35)]

    def test_cancel_is_idempotent(self, loop) -> None:
        fired = []
        timer = OneShotTimer(loop, 250, lambda: fired.append(True))
        timer.cancel()
        timer.start()
        timer.cancel()
        timer.cancel()
        loop.advance(1.0)
        assert fired == []

    def test_rearm_from_callback(self, loop) -> None:
        ticks = []

        def tick():
            ticks.append(loop.time())
            if len(ticks) < 3:
                timer.start()

        timer = OneShotTimer(loop, 100, tick)
        timer.start()
        loop.advance(1.0)
        assert ticks == [pytest.approx(0.1), pytest.approx(0.2), pytest.approx(0.3)]


class TestEventBus:
    def test_publish_to_subscribers(self) -> None:
        bus = EventBus()
        received = []
        bus.subscribe("render", received.append)
        bus.publish("render", 1)
        bus.publish("other", 2)
        assert received == [1]

    def test_handler_error_does_not_stop_delivery(self) -> None:
        bus = EventBus()
        received = []

        def broken(_data):
            raise RuntimeError("boom")

        bus.subscribe("render", broken)
        bus.subscribe("render", received.append)
        bus.publish("render", "ok")
        assert received == ["ok"]

    def test_unsubscribe_bound_method(self) -> None:
        class Listener:
            def __init__(self):
                self.calls = 0

            def on_event(self, _data):
                self.calls += 1

        bus = EventBus()
        listener = Listener()
        bus.subscribe("x", listener.on_event)
        bus.unsubscribe("x", listener.on_event)
        bus.publish("x")
        assert listener.calls == 0

    def test_subscribe_returns_remover(self) -> None:
        bus = EventBus()
        received = []
        remove = bus.subscribe("render", received.append)
        assert bus.handler_count("render") == 1
        remove()
        bus.publish("render", 1)
        assert received == []
        assert bus.handler_count("render") == 0

    def test_declared_event_types(self) -> None:
        bus = EventBus(("play", "pause"))
        bus.subscribe("play", lambda _d: None)
        with pytest.raises(ValueError):
            bus.subscribe("paly", lambda _d: None)
        with pytest.raises(ValueError):
            bus.publish("stop")


class TestLogging:
    def test_file_handler_and_level(self, tmp_path) -> None:
        path = tmp_path / "playlink.log"
        logger = setup_logging("debug", str(path))
        assert logger.level == logging.DEBUG
        logging.getLogger("playlink.test").debug("hello %s", "file")
        for handler in logger.handlers:
            handler.flush()
        assert "playlink.test: hello file" in path.read_text()

    def test_repeat_calls_replace_handlers(self) -> None:
        setup_logging("info")
        logger = setup_logging("warning")
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
