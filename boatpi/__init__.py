"""Sense HAT orientation and environment telemetry for a Raspberry Pi on a boat."""

__version__ = "0.1.0"
