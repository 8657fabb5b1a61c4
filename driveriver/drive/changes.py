"""
Change polling for Drive River.

The Drive change feed reports every mutation in the whole drive. The poller
pages through it from a resume cursor, keeps only changes under the watched
folder scope, and computes the cursor for the next cycle.
"""

import logging
from typing import Optional

from .models import ChangeRecord, PollResult

logger = logging.getLogger(__name__)


class ChangePoller:
    """
    Pulls accepted changes from the Drive change feed.

    Without a scope every change is accepted, deletions included. With a
    scope a change is accepted only when its file is present and one of its
    parents is in scope; a deleted file's parents are unknown, so scoped
    deletions are dropped unless track_deletions is enabled and the file was
    seen in scope earlier in the session.
    """

    def __init__(self, client, scope: Optional[frozenset] = None, track_deletions: bool = False):
        """
        Args:
            client: Remote store adapter (see DriveClient)
            scope: Folder ids to watch, or None to accept the whole drive
            track_deletions: Remember in-scope files so their deletions pass the filter
        """
        self.client = client
        self.scope = scope
        self.track_deletions = track_deletions
        self._known_in_scope: set[str] = set()

    def is_in_scope(self, change: ChangeRecord) -> bool:
        """Subtree filter for a single change."""
        if self.scope is None:
            return True

        if change.file is None:
            return self.track_deletions and change.file_id in self._known_in_scope

        return any(parent_id in self.scope for parent_id in change.file.parents)

    def _remember(self, change: ChangeRecord, accepted: bool):
        """Track which files are currently known to live in scope."""
        if not self.track_deletions or self.scope is None:
            return
        if accepted and change.file is not None:
            self._known_in_scope.add(change.file_id)
        else:
            # deleted, or moved out of scope
            self._known_in_scope.discard(change.file_id)

    def poll(self, cursor: Optional[int] = None) -> PollResult:
        """
        Fetch every change after `cursor` and filter it to the scope.

        The next cursor is the largest change id reported by any page; the
        feed does not promise the last page carries it. It never drops below
        the cursor passed in.

        Raises:
            AuthError: Drive rejected our credentials (not retried here)
            TransportError: any other request failure; nothing of this cycle is kept
        """
        logger.debug("Getting drive changes since %s", cursor)
        largest_changes_id = -1
        accepted = []
        pages = 0

        for page in self.client.list_changes(cursor):
            pages += 1
            for change in page.items:
                in_scope = self.is_in_scope(change)
                if in_scope:
                    accepted.append(change)
                self._remember(change, in_scope)
            largest_changes_id = max(largest_changes_id, page.largest_change_id)

        if cursor is not None:
            largest_changes_id = max(largest_changes_id, cursor)

        logger.debug(
            "Polled %d pages, accepted %d changes, next cursor %d",
            pages, len(accepted), largest_changes_id,
        )
        return PollResult(next_cursor=largest_changes_id, changes=accepted)
