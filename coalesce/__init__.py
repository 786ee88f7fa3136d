"""Launcher query coalescing - filesystem-coordinated cache, locks and workers."""

__version__ = "0.1.0"
