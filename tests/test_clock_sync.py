"""Tests for playlink.protocol.clock_sync: offset rule and cadence."""

import pytest

from playlink.protocol.clock_sync import (
    ClockOffsetEstimate,
    ControllerClockSync,
    DisplayClockSync,
    averaged_offset,
)
from playlink.protocol.messages import SyncMessage


class TestAveragedOffset:
    def test_literal_values(self) -> None:
        # peer delta 40, measured one-way delta 60
        assert averaged_offset(40.0, 1060.0, 1000.0) == 50.0

    def test_negative_one_way(self) -> None:
        assert averaged_offset(40.0, 960.0, 1000.0) == 0.0


class TestClockOffsetEstimate:
    def test_update_replaces_value(self) -> None:
        estimate = ClockOffsetEstimate()
        assert estimate.update(SyncMessage(delta=40.0, time_stamp=1000.0), 1060.0) == 50.0
        assert estimate.update(SyncMessage(delta=10.0, time_stamp=2000.0), 2030.0) == 20.0
        assert estimate.value == 20.0
        assert estimate.samples == 2

    def test_reset(self) -> None:
        estimate = ClockOffsetEstimate()
        estimate.update(SyncMessage(delta=40.0, time_stamp=0.0), 60.0)
        estimate.reset()
        assert estimate.value == 0.0
        assert estimate.samples == 0


class TestDisplayClockSync:
    @pytest.fixture
    def sent(self) -> list:
        return []

    @pytest.fixture
    def sync(self, display_clock, loop, sent) -> DisplayClockSync:
        return DisplayClockSync(display_clock, sent.append, loop, interval_ms=250)

    def test_begin_sends_pairing_delta_and_arms_heartbeat(self, sync, sent) -> None:
        message = sync.begin(peer_time_stamp=1000.0, local_ms=1040.0)
        assert message == SyncMessage(delta=40.0, time_stamp=1040.0)
        assert sent == [message]
        assert sync.timer.active
        # The pairing delta is not folded into the estimate
        assert sync.offset == 0.0

    def test_heartbeat_republishes_current_estimate(self, sync, sent, loop, display_clock) -> None:
        sync.on_sync(SyncMessage(delta=40.0, time_stamp=display_clock.wall_ms() - 60.0))
        assert sync.offset == pytest.approx(50.0)
        assert sent == []

        loop.advance(0.25)
        assert len(sent) == 1
        assert sent[0].delta == pytest.approx(50.0)
        assert sent[0].time_stamp == pytest.approx(display_clock.wall_ms())

        loop.advance(0.25)
        assert len(sent) == 2

    def test_receipt_rearms_timer(self, sync, sent, loop, display_clock) -> None:
        sync.begin(peer_time_stamp=display_clock.wall_ms())
        sent.clear()

        loop.advance(0.2)
        sync.on_sync(SyncMessage(delta=0.0, time_stamp=display_clock.wall_ms()))
        loop.advance(0.2)  # 0.4s since begin, only 0.2s since the reply
        assert sent == []

        loop.advance(0.05)
        assert len(sent) == 1

    def test_stop_cancels_and_clears(self, sync, sent, loop, display_clock) -> None:
        sync.on_sync(SyncMessage(delta=40.0, time_stamp=display_clock.wall_ms() - 60.0))
        sync.stop()
        loop.advance(1.0)
        assert sent == []
        assert sync.offset == 0.0
        assert not sync.timer.active


class TestControllerClockSync:
    def test_replies_immediately(self, controller_clock, loop) -> None:
        sent = []
        sync = ControllerClockSync(controller_clock, sent.append)
        now = controller_clock.wall_ms()

        sync.on_sync(SyncMessage(delta=40.0, time_stamp=now - 60.0))

        assert sync.offset == pytest.approx(50.0)
        assert sent == [SyncMessage(delta=pytest.approx(50.0), time_stamp=now)]

    def test_never_initiates(self, controller_clock, loop) -> None:
        sent = []
        ControllerClockSync(controller_clock, sent.append)
        loop.advance(5.0)
        assert sent == []
