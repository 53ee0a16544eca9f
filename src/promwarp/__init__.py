"""Prometheus discovery API served from a Warp 10 store."""

__version__ = "0.1.0"
