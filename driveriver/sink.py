"""
Index sinks for Drive River.

A sink receives one IndexedChange per accepted change. What the downstream
index does with it is up to the sink.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from .drive.models import IndexedChange

logger = logging.getLogger(__name__)


class IndexSink(ABC):
    """Destination for accepted changes."""

    @abstractmethod
    def index(self, change: IndexedChange):
        """Add or replace a document."""

    @abstractmethod
    def delete(self, file_id: str):
        """Remove a document."""

    def flush(self):
        """Called once at the end of every cycle."""

    def apply(self, change: IndexedChange):
        if change.deleted:
            self.delete(change.file_id)
        else:
            self.index(change)


class MemorySink(IndexSink):
    """Keeps documents in a dict. Useful for dry runs."""

    def __init__(self):
        self.documents: dict[str, IndexedChange] = {}
        self.deleted: list[str] = []
        self.flushes = 0

    def index(self, change: IndexedChange):
        self.documents[change.file_id] = change

    def delete(self, file_id: str):
        self.documents.pop(file_id, None)
        self.deleted.append(file_id)

    def flush(self):
        self.flushes += 1


class DirectorySink(IndexSink):
    """
    Mirrors documents into a local directory.

    Content goes to <root>/<file_id>, metadata to <root>/<file_id>.json.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _content_path(self, file_id: str) -> Path:
        return self.root / file_id

    def _meta_path(self, file_id: str) -> Path:
        return self.root / f"{file_id}.json"

    def index(self, change: IndexedChange):
        content_path = self._content_path(change.file_id)
        if change.content is not None:
            content_path.write_bytes(change.content)
        elif content_path.exists():
            content_path.unlink()

        with open(self._meta_path(change.file_id), "w") as f:
            json.dump(change.to_dict(), f, indent=2)
        logger.debug("Indexed %s (%s)", change.file_id, change.effective_mime_type)

    def delete(self, file_id: str):
        for path in (self._content_path(file_id), self._meta_path(file_id)):
            if path.exists():
                path.unlink()
        logger.debug("Deleted %s", file_id)
