"""
Resume cursor persistence for Drive River.

The state file is owned by the river runner, not by the poller:

    {"last_changes_id": 1234, "updated": "2026-01-01T00:00:00+00:00"}
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class RiverState:
    """Last processed change id of a river, stored as JSON."""

    def __init__(self, path: Path):
        self.path = path
        self.last_changes_id: Optional[int] = None
        self.updated: Optional[str] = None

    @classmethod
    def load(cls, path: Path) -> "RiverState":
        """
        Load state from file.

        A missing or unreadable file means "start from the beginning".
        """
        state = cls(path)

        if path.exists():
            try:
                with open(path) as f:
                    data = json.load(f)
                last = data.get("last_changes_id")
                state.last_changes_id = int(last) if last is not None else None
                state.updated = data.get("updated")
            except (json.JSONDecodeError, IOError, ValueError):
                pass

        return state

    def save(self):
        """Save state to file."""
        self.updated = datetime.now(timezone.utc).isoformat()
        self.path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        tmp_path.replace(self.path)

    def reset(self):
        """Forget the cursor so the next cycle replays the whole feed."""
        self.last_changes_id = None
        if self.path.exists():
            self.path.unlink()

    def to_dict(self) -> dict:
        return {
            "last_changes_id": self.last_changes_id,
            "updated": self.updated,
        }
