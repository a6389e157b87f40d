"""Incrementally trained nearest-neighbor leaf health classifier with local persistence."""

__version__ = "1.0.0"
