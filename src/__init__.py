# src/__init__.py — v1
"""postpilot — agent pipelines for guest-post outlines and link placement."""

from postpilot.version import __version__

__all__ = ["__version__"]
