"""Tests for playlink.config: YAML loading and environment overrides."""

import pytest

from playlink.config import (
    DEFAULT_AUDIO_SOURCE,
    DEFAULT_VIDEO_SOURCE,
    load_config,
    source_durations,
)

ENV_KEYS = (
    "PLAYLINK_HUB_IP", "PLAYLINK_HUB_PORT", "PLAYLINK_LISTEN_PORT",
    "PLAYLINK_CHANNEL", "PLAYLINK_SYNC_INTERVAL_MS", "PLAYLINK_PLAYBACK_INTERVAL_MS",
    "PLAYLINK_VIDEO_SOURCE", "PLAYLINK_AUDIO_SOURCE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_missing_file_uses_defaults(tmp_path) -> None:
    config = load_config(str(tmp_path / "absent.yaml"))
    assert config["hub"] == {"ip": "127.0.0.1", "port": 9100, "listen_port": 0}
    assert config["session"]["channel"] == ""
    assert config["sync"]["interval_ms"] == 250
    assert config["playback"]["interval_ms"] == 250
    assert config["pairing"]["discovery_retries"] == 0
    assert config["sources"]["video"]["uri"] == DEFAULT_VIDEO_SOURCE
    assert config["sources"]["audio"]["uri"] == DEFAULT_AUDIO_SOURCE


def test_yaml_values(tmp_path) -> None:
    path = tmp_path / "playlink.yaml"
    path.write_text(
        "hub:\n"
        "  ip: 10.0.0.2\n"
        "  port: 9200\n"
        "sync:\n"
        "  interval_ms: 100\n"
        "pairing:\n"
        "  discovery_retries: 3\n"
        "sources:\n"
        "  video:\n"
        "    uri: file:///clip.mp4\n"
        "    duration: 30\n"
    )
    config = load_config(str(path))
    assert config["hub"]["ip"] == "10.0.0.2"
    assert config["hub"]["port"] == 9200
    assert config["sync"]["interval_ms"] == 100.0
    assert config["pairing"]["discovery_retries"] == 3
    assert source_durations(config) == {
        "file:///clip.mp4": 30.0,
        DEFAULT_AUDIO_SOURCE: 0.0,
    }


def test_env_overrides_yaml(tmp_path, monkeypatch) -> None:
    path = tmp_path / "playlink.yaml"
    path.write_text("hub:\n  port: 9200\nsession:\n  channel: from-yaml\n")
    monkeypatch.setenv("PLAYLINK_HUB_PORT", "9300")
    monkeypatch.setenv("PLAYLINK_CHANNEL", "from-env")
    monkeypatch.setenv("PLAYLINK_PLAYBACK_INTERVAL_MS", "125")
    config = load_config(str(path))
    assert config["hub"]["port"] == 9300
    assert config["session"]["channel"] == "from-env"
    assert config["playback"]["interval_ms"] == 125.0


def test_empty_yaml(tmp_path) -> None:
    path = tmp_path / "playlink.yaml"
    path.write_text("")
    assert load_config(str(path))["hub"]["port"] == 9100
