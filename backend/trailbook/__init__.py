"""Trailbook backend: album-driven social connections and chat."""

__version__ = "1.0.0"
