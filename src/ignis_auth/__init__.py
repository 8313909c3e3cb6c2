"""Ignis Patient Auth - progressive multi-channel patient authentication."""

__version__ = "0.1.0"
