"""Depot - scoped access to a private Maven-style artifact store."""

__version__ = "1.0.0"
