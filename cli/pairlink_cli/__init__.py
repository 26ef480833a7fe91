"""pairlink command-line interface."""

from pairlink import __version__

__all__ = ["__version__"]
