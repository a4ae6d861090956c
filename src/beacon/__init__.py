"""Beacon: price-signal engine for resale candidates."""

__version__ = "0.1.0"
