"""Loopcast: looped video relay to live-streaming ingest endpoints."""

__version__ = "0.1.0"
