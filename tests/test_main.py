"""Tests for the console front end."""

import io

import pytest

from playlink.main import PlaylinkDaemon, parse_args


@pytest.fixture
def config(tmp_path):
    from playlink.config import load_config
    return load_config(str(tmp_path / "absent.yaml"))


class RecordingController:
    def __init__(self):
        self.calls = []

    def toggle_playback(self):
        self.calls.append(("toggle",))

    def seek_relative(self, delta):
        self.calls.append(("seek", delta))

    def load_source(self, uri):
        self.calls.append(("load", uri))


def test_parse_args() -> None:
    args = parse_args(["controller", "--channel", "abc", "--log-level", "DEBUG"])
    assert args.role == "controller"
    assert args.channel == "abc"
    assert args.log_level == "DEBUG"
    assert args.config is None


def test_parse_args_rejects_unknown_role() -> None:
    with pytest.raises(SystemExit):
        parse_args(["projector"])


def test_channel_generated_when_unset(config) -> None:
    daemon = PlaylinkDaemon(config, "display")
    assert daemon.channel
    assert PlaylinkDaemon(config, "display", channel="abc").channel == "abc"


@pytest.mark.parametrize("line,expected", [
    ("p\n", ("toggle",)),
    ("f\n", ("seek", 10.0)),
    ("b\n", ("seek", -10.0)),
])
def test_stdin_commands(config, monkeypatch, line, expected) -> None:
    daemon = PlaylinkDaemon(config, "controller", channel="abc")
    daemon.controller = RecordingController()
    monkeypatch.setattr("sys.stdin", io.StringIO(line))
    daemon._on_stdin()
    assert daemon.controller.calls == [expected]


def test_stdin_source_commands(config, monkeypatch) -> None:
    daemon = PlaylinkDaemon(config, "controller", channel="abc")
    daemon.controller = RecordingController()
    monkeypatch.setattr("sys.stdin", io.StringIO("v\nm\n"))
    daemon._on_stdin()
    daemon._on_stdin()
    assert daemon.controller.calls == [
        ("load", config["sources"]["video"]["uri"]),
        ("load", config["sources"]["audio"]["uri"]),
    ]


def test_stdin_eof_stops(config, monkeypatch) -> None:
    daemon = PlaylinkDaemon(config, "controller", channel="abc")
    daemon.controller = RecordingController()
    daemon._running = True
    monkeypatch.setattr("sys.stdin", io.StringIO(""))
    daemon._on_stdin()
    assert not daemon._running
