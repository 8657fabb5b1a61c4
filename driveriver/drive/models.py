"""
Data types exchanged between the Drive client, the poller and the river.

Records are parsed from Drive v2 JSON with from_dict(), the same way the
manifest entries are built from plain dicts.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class FolderRecord:
    """One folder in the drive. parent_id is the first (primary) parent."""
    id: str
    parent_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "FolderRecord":
        parents = data.get("parents") or []
        parent_id = parents[0].get("id") if parents else None
        return cls(id=data.get("id", ""), parent_id=parent_id)


@dataclass
class FileRecord:
    """A file as reported by Drive (v2 resource)."""
    id: str
    mime_type: str = ""
    parents: list = field(default_factory=list)  # parent folder ids, in Drive order
    download_url: Optional[str] = None
    export_links: dict = field(default_factory=dict)  # {mime_type: url}
    title: str = ""
    trashed: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "FileRecord":
        return cls(
            id=data.get("id", ""),
            mime_type=data.get("mimeType", ""),
            parents=[p.get("id") for p in data.get("parents") or [] if p.get("id")],
            download_url=data.get("downloadUrl") or None,
            export_links=dict(data.get("exportLinks") or {}),
            title=data.get("title", ""),
            trashed=bool((data.get("labels") or {}).get("trashed", False)),
        )


@dataclass
class ChangeRecord:
    """One entry of the change feed. file is None when deleted or inaccessible."""
    change_id: int
    file_id: str
    file: Optional[FileRecord] = None

    @property
    def deleted(self) -> bool:
        return self.file is None

    @classmethod
    def from_dict(cls, data: dict) -> "ChangeRecord":
        file_data = data.get("file")
        file = None
        if file_data and not data.get("deleted", False):
            file = FileRecord.from_dict(file_data)
        return cls(
            change_id=int(data.get("id", 0)),
            file_id=data.get("fileId", ""),
            file=file,
        )


@dataclass
class ChangesPage:
    """One page of the change feed."""
    items: list  # list[ChangeRecord], ascending change_id
    largest_change_id: int
    next_page_token: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ChangesPage":
        return cls(
            items=[ChangeRecord.from_dict(item) for item in data.get("items", [])],
            largest_change_id=int(data.get("largestChangeId", -1)),
            next_page_token=data.get("nextPageToken") or None,
        )


@dataclass
class PollResult:
    """Accepted changes of one poll cycle and the cursor to resume from."""
    next_cursor: int
    changes: list = field(default_factory=list)


@dataclass
class IndexedChange:
    """What the river hands to the sink for each accepted change."""
    file_id: str
    effective_mime_type: Optional[str] = None
    content: Optional[bytes] = None
    deleted: bool = False
    title: str = ""

    def to_dict(self) -> dict:
        """Metadata only; content is stored separately by sinks."""
        return {
            "file_id": self.file_id,
            "effective_mime_type": self.effective_mime_type,
            "deleted": self.deleted,
            "title": self.title,
            "size": len(self.content) if self.content is not None else None,
        }
