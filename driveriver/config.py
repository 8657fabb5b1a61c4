"""
Configuration management for Drive River.

A river is described by a JSON settings file:

    {
      "name": "docs",
      "folder": "Shared Docs",
      "update_rate": 900,
      "includes": ["*.pdf", "*.docx"],
      "excludes": ["~*"],
      "client_id": "...",
      "client_secret": "...",
      "refresh_token": "..."
    }

Secrets can instead come from GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET and
GOOGLE_REFRESH_TOKEN.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# Default polling interval, 15 minutes
DEFAULT_UPDATE_RATE = 15 * 60

ENV_OVERRIDES = {
    "client_id": "GOOGLE_CLIENT_ID",
    "client_secret": "GOOGLE_CLIENT_SECRET",
    "refresh_token": "GOOGLE_REFRESH_TOKEN",
}


@dataclass
class RiverSettings:
    """
    Settings of one river (one watched root folder).

    There is no `json_support` setting: how JSON files get indexed is up to
    the sink, so a `jsonSupport` key in older feed definitions is ignored.
    """
    name: str = "drive"
    folder: Optional[str] = None  # Root folder name; None watches the whole drive
    update_rate: int = DEFAULT_UPDATE_RATE  # Seconds between polls
    includes: list = field(default_factory=list)  # Title globs to index
    excludes: list = field(default_factory=list)  # Title globs to skip
    client_id: str = ""
    client_secret: str = ""
    refresh_token: str = ""
    concurrency: int = 4  # Parallel content downloads per cycle
    track_deletions: bool = False
    timeout: int = 60
    max_retries: int = 3
    output_dir: str = "river-data"
    state_path: str = ""  # Defaults to <output_dir>/<name>.state.json

    def to_dict(self) -> dict:
        d = {
            "name": self.name,
            "update_rate": self.update_rate,
            "concurrency": self.concurrency,
            "timeout": self.timeout,
            "max_retries": self.max_retries,
            "output_dir": self.output_dir,
        }
        if self.folder:
            d["folder"] = self.folder
        if self.includes:
            d["includes"] = list(self.includes)
        if self.excludes:
            d["excludes"] = list(self.excludes)
        if self.track_deletions:
            d["track_deletions"] = self.track_deletions
        if self.state_path:
            d["state_path"] = self.state_path
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "RiverSettings":
        return cls(
            name=data.get("name", "drive"),
            folder=data.get("folder") or None,
            update_rate=int(data.get("update_rate", DEFAULT_UPDATE_RATE)),
            includes=_as_list(data.get("includes")),
            excludes=_as_list(data.get("excludes")),
            client_id=data.get("client_id", ""),
            client_secret=data.get("client_secret", ""),
            refresh_token=data.get("refresh_token", ""),
            concurrency=int(data.get("concurrency", 4)),
            track_deletions=bool(data.get("track_deletions", False)),
            timeout=int(data.get("timeout", 60)),
            max_retries=int(data.get("max_retries", 3)),
            output_dir=data.get("output_dir", "river-data"),
            state_path=data.get("state_path", ""),
        )

    @classmethod
    def load(cls, path: Path, environ: Optional[dict] = None) -> "RiverSettings":
        """
        Load settings from a JSON file, then apply environment overrides.

        A missing file yields defaults (plus environment values).
        """
        data = {}
        if path.exists():
            with open(path) as f:
                data = json.load(f)

        settings = cls.from_dict(data)
        settings.apply_env(os.environ if environ is None else environ)
        return settings

    def apply_env(self, environ):
        """Fill credentials from environment variables when set."""
        for attr, var in ENV_OVERRIDES.items():
            value = environ.get(var)
            if value:
                setattr(self, attr, value)

    def get_state_path(self) -> Path:
        if self.state_path:
            return Path(self.state_path)
        return Path(self.output_dir) / f"{self.name}.state.json"


def _as_list(value) -> list:
    """Accept either a list or a comma-separated string of patterns."""
    if not value:
        return []
    if isinstance(value, str):
        return [p.strip() for p in value.split(",") if p.strip()]
    return list(value)
