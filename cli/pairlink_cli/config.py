"""
Configuration management for the pairlink CLI.

Multi-service support:
  The CLI stores a separate credential per link service URL, so accounts on
  production and a local test service can be linked side by side.

  Config structure:
  {
    "client_identifier": "pairlink-7d1c...",
    "services": {
      "https://plex.tv": {
        "token": "...",
        "username": "listener",
        "linked_at": "2026-10-19T12:00:00+00:00"
      }
    }
  }

Service resolution order:
  1. PAIRLINK_SERVICE_URL environment variable
  2. --service-url command line flag
  3. Fallback: pairlink.config.settings.SERVICE_URL
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from pathlib import Path

from pairlink.config import settings

logger = logging.getLogger(__name__)


class Config:
    """Config manager for the pairlink CLI."""

    def __init__(self, service_url_override: str | None = None):
        """
        Initialize config.

        Args:
            service_url_override: Optional --service-url flag value
        """
        self.config_dir = Path.home() / ".pairlink"
        self.config_file = self.config_dir / "config.json"
        self._data: dict = {}
        self._service_url_override = service_url_override
        self._load()

    def _load(self):
        """Load config from disk."""
        if self.config_file.exists():
            try:
                with open(self.config_file) as f:
                    self._data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Ignoring unreadable config %s: %s", self.config_file, e)
                self._data = {}

        if not isinstance(self._data.get("services"), dict):
            self._data["services"] = {}

    def _save(self):
        """Save config to disk with owner-only permissions."""
        self.config_dir.mkdir(parents=True, exist_ok=True)

        with open(self.config_file, "w") as f:
            json.dump(self._data, f, indent=2)

        self.config_file.chmod(0o600)

    @property
    def service_url(self) -> str:
        """Get the link service URL in effect."""
        env_url = os.environ.get("PAIRLINK_SERVICE_URL")
        if env_url:
            return env_url.rstrip("/")

        if self._service_url_override:
            return self._service_url_override.rstrip("/")

        return settings.SERVICE_URL.rstrip("/")

    @property
    def client_identifier(self) -> str:
        """Stable identifier for this installation, created on first use."""
        existing = self._data.get("client_identifier")
        if existing:
            return existing
        identifier = f"pairlink-{uuid.uuid4()}"
        self._data["client_identifier"] = identifier
        self._save()
        return identifier

    def _get_service(self) -> dict:
        return self._data["services"].get(self.service_url, {})

    def _set_service(self, key: str, value):
        self._data["services"].setdefault(self.service_url, {})[key] = value
        self._save()

    @property
    def token(self) -> str | None:
        """Get the linked credential for the current service."""
        return self._get_service().get("token")

    @token.setter
    def token(self, value: str):
        self._set_service("token", value)

    @property
    def username(self) -> str | None:
        return self._get_service().get("username")

    @username.setter
    def username(self, value: str | None):
        self._set_service("username", value)

    @property
    def linked_at(self) -> str | None:
        return self._get_service().get("linked_at")

    @linked_at.setter
    def linked_at(self, value: str):
        self._set_service("linked_at", value)

    @property
    def is_linked(self) -> bool:
        return bool(self.token)

    def clear_service(self, url: str | None = None):
        """
        Forget the credential for one service.

        Args:
            url: Service URL to clear. If None, clears the current service.
        """
        target_url = (url or self.service_url).rstrip("/")
        if target_url in self._data["services"]:
            del self._data["services"][target_url]
            self._save()

    def clear_all(self):
        """Forget every linked credential. The client identifier is kept."""
        self._data["services"] = {}
        self._save()

    def list_services(self) -> list[dict]:
        """
        List all linked services.

        Returns:
            List of dicts with url, username, linked_at, is_current keys.
        """
        current = self.service_url
        result = []
        for url, entry in self._data["services"].items():
            if entry.get("token"):
                result.append({
                    "url": url,
                    "username": entry.get("username"),
                    "linked_at": entry.get("linked_at"),
                    "is_current": url == current,
                })
        return result
