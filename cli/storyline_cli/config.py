"""
Configuration management for Storyline CLI.

Remembers a default project per API URL, so `storyline tree` works without
repeating --project.

  Config structure (~/.storyline/config.json):
  {
    "environments": {
      "http://localhost:8000": {"default_project_id": "..."}
    },
    "default_url": "http://localhost:8000"
  }

Environment resolution order:
  1. STORYLINE_API_URL environment variable
  2. --api-url command line flag
  3. default_url from config file
  4. Fallback: http://localhost:8000
"""

from __future__ import annotations

import json
import os
from pathlib import Path

DEFAULT_API_URL = "http://localhost:8000"


class Config:
    """Config manager for Storyline CLI."""

    def __init__(self, api_url_override: str | None = None, config_dir: Path | None = None):
        self.config_dir = config_dir or Path.home() / ".storyline"
        self.config_file = self.config_dir / "config.json"
        self._data: dict = {}
        self._api_url_override = api_url_override
        self._load()

    def _load(self):
        """Load config from disk. A corrupt file is treated as empty."""
        if self.config_file.exists():
            try:
                with open(self.config_file) as f:
                    self._data = json.load(f)
            except (OSError, json.JSONDecodeError):
                self._data = {}

        if "environments" not in self._data:
            self._data["environments"] = {}

    def _save(self):
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w") as f:
            json.dump(self._data, f, indent=2)

    @property
    def api_url(self) -> str:
        env_url = os.environ.get("STORYLINE_API_URL")
        if env_url:
            return env_url.rstrip("/")
        if self._api_url_override:
            return self._api_url_override.rstrip("/")
        return self._data.get("default_url", DEFAULT_API_URL).rstrip("/")

    @property
    def default_project_id(self) -> str | None:
        return self._data["environments"].get(self.api_url, {}).get("default_project_id")

    @default_project_id.setter
    def default_project_id(self, value: str | None):
        self._data["environments"].setdefault(self.api_url, {})["default_project_id"] = value
        self._save()
