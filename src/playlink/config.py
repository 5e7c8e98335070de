import os
import logging
from pathlib import Path

import yaml
from dotenv import load_dotenv

log = logging.getLogger("playlink.config")

# Project root is three levels up from src/playlink/config.py
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"

DEFAULT_VIDEO_SOURCE = "https://media.example.com/sample-video.mp4"
DEFAULT_AUDIO_SOURCE = "https://media.example.com/sample-audio.mp3"


def load_config(config_path: str = None) -> dict:
    """Load configuration from YAML file with .env overrides."""
    load_dotenv(PROJECT_ROOT / ".env")

    yaml_path = Path(config_path) if config_path else CONFIG_DIR / "playlink.yaml"
    if not yaml_path.exists():
        log.warning("Config file not found: %s, using defaults", yaml_path)
        config = {}
    else:
        with open(yaml_path) as f:
            config = yaml.safe_load(f) or {}

    # Environment variable overrides
    hub = config.setdefault("hub", {})
    hub["ip"] = os.environ.get("PLAYLINK_HUB_IP", hub.get("ip", "127.0.0.1"))
    hub["port"] = int(os.environ.get("PLAYLINK_HUB_PORT", hub.get("port", 9100)))
    hub["listen_port"] = int(os.environ.get("PLAYLINK_LISTEN_PORT", hub.get("listen_port", 0)))

    session = config.setdefault("session", {})
    session["channel"] = os.environ.get("PLAYLINK_CHANNEL", session.get("channel") or "")

    sync = config.setdefault("sync", {})
    sync["interval_ms"] = float(os.environ.get("PLAYLINK_SYNC_INTERVAL_MS",
                                               sync.get("interval_ms", 250)))

    playback = config.setdefault("playback", {})
    playback["interval_ms"] = float(os.environ.get("PLAYLINK_PLAYBACK_INTERVAL_MS",
                                                   playback.get("interval_ms", 250)))
    playback["seek_step"] = float(playback.get("seek_step", 10))

    pairing = config.setdefault("pairing", {})
    pairing["discovery_retries"] = int(pairing.get("discovery_retries", 0))
    pairing["discovery_retry_interval_ms"] = float(pairing.get("discovery_retry_interval_ms", 1000))

    sources = config.setdefault("sources", {})
    video = sources.setdefault("video", {})
    video["uri"] = os.environ.get("PLAYLINK_VIDEO_SOURCE", video.get("uri", DEFAULT_VIDEO_SOURCE))
    video["duration"] = float(video.get("duration", 0))
    audio = sources.setdefault("audio", {})
    audio["uri"] = os.environ.get("PLAYLINK_AUDIO_SOURCE", audio.get("uri", DEFAULT_AUDIO_SOURCE))
    audio["duration"] = float(audio.get("duration", 0))

    log.info(
        "Config loaded: hub %s:%d, sync every %d ms, extrapolate every %d ms",
        hub["ip"],
        hub["port"],
        sync["interval_ms"],
        playback["interval_ms"],
    )
    return config


def source_durations(config: dict) -> dict:
    """Map of source URI to duration for the simulated media element."""
    return {
        entry["uri"]: entry.get("duration", 0.0)
        for entry in config.get("sources", {}).values()
        if isinstance(entry, dict) and entry.get("uri")
    }
