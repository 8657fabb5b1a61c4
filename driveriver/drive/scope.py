"""
Folder scope resolution for Drive River.

Drive has no "all descendants of X" query, so the scope of a watched root
folder is rebuilt from the flat list of every folder and its primary parent.

A folder belongs to the scope when the furthest enumerable ancestor on its
parent chain (the folder sitting just below the drive's own root) is the
watched root. Folders with several parents only follow the first one.
"""

import logging
from typing import Iterable, Optional

from ..exceptions import IntegrityError, NotFoundError
from .models import FolderRecord

logger = logging.getLogger(__name__)


def build_parent_map(folders: Iterable[FolderRecord]) -> dict[str, Optional[str]]:
    """Map folder id -> primary parent id (None for folders directly under the drive root)."""
    return {folder.id: folder.parent_id for folder in folders}


def compute_scope(root_folder_id: str, folders: Iterable[FolderRecord]) -> frozenset[str]:
    """
    Compute the ids of the root folder and all of its descendants.

    Ancestor walks are iterative. Each folder's top-level anchor is cached so
    folders sharing a chain prefix are only walked once.

    Args:
        root_folder_id: Id of the watched top-level folder
        folders: Every folder of the drive

    Returns:
        Frozen set of folder ids, always containing root_folder_id

    Raises:
        IntegrityError: if a parent chain loops back on itself
    """
    parent_of = build_parent_map(folders)
    # The root was found under the drive root, even if the full listing missed it
    parent_of.setdefault(root_folder_id, None)
    # folder id -> furthest ancestor still present in parent_of
    anchors: dict[str, str] = {}

    for folder_id in parent_of:
        if folder_id in anchors:
            continue

        path = []
        on_path = set()
        current = folder_id
        anchor = None

        while True:
            if current in anchors:
                anchor = anchors[current]
                break
            if current in on_path or len(path) > len(parent_of):
                raise IntegrityError(f"Cyclic parent chain detected at folder {current}")
            path.append(current)
            on_path.add(current)

            parent_id = parent_of[current]
            if parent_id is None or parent_id not in parent_of:
                # current sits right below the drive root
                anchor = current
                break
            current = parent_id

        for visited in path:
            anchors[visited] = anchor

    scope = {folder_id for folder_id, anchor in anchors.items() if anchor == root_folder_id}
    scope.add(root_folder_id)
    return frozenset(scope)


class FolderScopeResolver:
    """Resolves a top-level folder name to the ids of its whole subtree."""

    def __init__(self, client):
        """
        Args:
            client: Remote store adapter (see DriveClient)
        """
        self.client = client

    def resolve_root_id(self, root_folder_name: str) -> str:
        """
        Look up the id of the single top-level folder called root_folder_name.

        Raises:
            NotFoundError: zero or several top-level folders have that name
        """
        matches = self.client.list_top_level_folders_by_name(root_folder_name)
        if len(matches) != 1:
            raise NotFoundError(root_folder_name, len(matches))
        root_id = matches[0].id
        logger.debug("Id of searched root folder is %s", root_id)
        return root_id

    def resolve_scope(self, root_folder_name: str) -> frozenset[str]:
        """
        Compute the folder scope of root_folder_name.

        Raises:
            NotFoundError: root folder name is missing or ambiguous
            TransportError/AuthError: a listing call failed
            IntegrityError: folder ancestry contains a cycle
        """
        root_id = self.resolve_root_id(root_folder_name)

        logger.info("Retrieving subfolders under folder %s, this may take a while...", root_folder_name)
        folders = self.client.list_all_folders()
        scope = compute_scope(root_id, folders)
        logger.info("Found %d folders under %s", len(scope), root_folder_name)
        return scope
