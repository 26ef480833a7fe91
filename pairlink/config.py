"""
pairlink configuration: all environment variables in one place.

Read from environment at import time. Per-user state (credentials, the
client identifier) lives in the CLI config file, not here.
"""

from __future__ import annotations

import os
import platform

from pairlink import __version__


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


class Settings:
    """Application settings from environment variables."""

    # Remote link service
    SERVICE_URL: str = os.environ.get("PAIRLINK_SERVICE_URL", "https://plex.tv").rstrip("/")
    LINK_PAGE_URL: str = os.environ.get("PAIRLINK_LINK_PAGE_URL", "https://plex.tv/link")
    HTTP_TIMEOUT_SECONDS: float = _env_float("PAIRLINK_HTTP_TIMEOUT", 30.0)

    # Pairing
    PAIRING_TTL_SECONDS: int = _env_int("PAIRLINK_PAIRING_TTL", 900)  # used when the service omits expiry
    POLL_INTERVAL_SECONDS: float = _env_float("PAIRLINK_POLL_INTERVAL", 2.0)
    MAX_CONSECUTIVE_FAILURES: int = _env_int("PAIRLINK_MAX_FAILURES", 3)

    # Client identification headers
    PRODUCT_NAME: str = os.environ.get("PAIRLINK_PRODUCT", "pairlink")
    PRODUCT_VERSION: str = __version__
    PLATFORM: str = platform.system() or "Unknown"
    PLATFORM_VERSION: str = platform.release()
    DEVICE_NAME: str = os.environ.get("PAIRLINK_DEVICE_NAME", platform.node() or "pairlink")

    # Logging
    LOG_LEVEL: str = os.environ.get("PAIRLINK_LOG_LEVEL", "WARNING").upper()


# Singleton instance
settings = Settings()

if not settings.SERVICE_URL.startswith(("http://", "https://")):
    raise RuntimeError("PAIRLINK_SERVICE_URL must be an http(s) URL")
if settings.POLL_INTERVAL_SECONDS <= 0:
    raise RuntimeError("PAIRLINK_POLL_INTERVAL must be positive")
if settings.MAX_CONSECUTIVE_FAILURES < 1:
    raise RuntimeError("PAIRLINK_MAX_FAILURES must be at least 1")
if settings.PAIRING_TTL_SECONDS <= 0:
    raise RuntimeError("PAIRLINK_PAIRING_TTL must be positive")
