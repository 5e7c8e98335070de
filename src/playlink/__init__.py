"""Remote playback control with clock-synchronized state replication."""

__version__ = "0.1.0"
