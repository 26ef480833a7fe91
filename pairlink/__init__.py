"""pairlink: device-code account linking."""

__version__ = "0.1.0"
