"""
Polling loop for Drive River.

One DriveRiver watches one root folder (or the whole drive). Each cycle:
poll changes since the saved cursor, resolve and download content for the
accepted files, hand everything to the sink, then persist the new cursor.
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .config import RiverSettings
from .downloader import ContentDownloader
from .drive.auth import OAuthManager
from .drive.changes import ChangePoller
from .drive.client import DriveClient, DriveClientConfig
from .drive.mime import DownloadTarget, is_folder, resolve_download
from .drive.models import ChangeRecord, IndexedChange
from .drive.scope import FolderScopeResolver
from .exceptions import AuthError, TransportError
from .filters import is_indexable
from .sink import DirectorySink, IndexSink
from .state import RiverState

logger = logging.getLogger(__name__)


@dataclass
class CycleStats:
    """Outcome of one polling cycle."""
    accepted: int = 0
    indexed: int = 0
    deleted: int = 0
    skipped: int = 0  # folders and files filtered out by name
    no_content: int = 0  # indexed without content (no download link or fetch failed)
    cursor: Optional[int] = None
    api_calls: int = 0


class DriveRiver:
    """
    Incrementally mirrors a Drive subtree into an IndexSink.

    The folder scope is computed on connect() and kept for the session;
    folders moved afterwards are only picked up after a reconnect.
    """

    def __init__(
        self,
        settings: RiverSettings,
        sink: IndexSink,
        auth: Optional[OAuthManager] = None,
        client=None,
        downloader: Optional[ContentDownloader] = None,
        state: Optional[RiverState] = None,
    ):
        """
        Args:
            settings: River settings
            sink: Where accepted changes go
            auth: Credential source; built from settings when neither auth nor client is given
            client: Pre-built remote store adapter (skips auth)
            downloader: Parallel downloader; built from settings when concurrency > 1
            state: Cursor state; loaded from settings.get_state_path() by default
        """
        self.settings = settings
        self.sink = sink
        self.client = client
        self.auth = auth
        if self.auth is None and self.client is None:
            self.auth = OAuthManager(
                client_id=settings.client_id,
                client_secret=settings.client_secret,
                refresh_token=settings.refresh_token,
            )
        self.downloader = downloader
        self.state = state or RiverState.load(settings.get_state_path())
        self.poller: Optional[ChangePoller] = None
        self.scope: Optional[frozenset] = None
        self._connected = False

    def _token_source(self) -> Optional[Callable[[], str]]:
        return self.auth.get_token if self.auth is not None else None

    def connect(self):
        """
        Establish the session: credentials, client and folder scope.

        Raises:
            AuthError: credentials rejected
            NotFoundError: root folder name is missing or ambiguous
            TransportError: listing folders failed
            IntegrityError: folder ancestry is cyclic
        """
        logger.info("Establishing connection to Google Drive")
        if self.auth is not None:
            self.auth.get_credentials()
            if self.client is None:
                config = DriveClientConfig(
                    timeout=self.settings.timeout,
                    max_retries=self.settings.max_retries,
                )
                self.client = DriveClient(config, auth_token=self.auth.get_token)
        logger.info("Connection established.")

        self.scope = None
        if self.settings.folder:
            self.scope = FolderScopeResolver(self.client).resolve_scope(self.settings.folder)

        if self.poller is None:
            self.poller = ChangePoller(
                self.client, self.scope, track_deletions=self.settings.track_deletions
            )
        else:
            self.poller.scope = self.scope

        self._connected = True

    def disconnect(self):
        """Drop the session; the next cycle reconnects and recomputes the scope."""
        if self.auth is not None:
            self.auth.invalidate()
        self._connected = False

    def _get_downloader(self) -> ContentDownloader:
        if self.downloader is None:
            self.downloader = ContentDownloader(
                max_workers=self.settings.concurrency,
                max_retries=self.settings.max_retries,
                # same limit the client applies to connect and read
                timeout=(self.settings.timeout, self.settings.timeout),
                auth_token=self._token_source(),
            )
        return self.downloader

    def _fetch_contents(self, targets: dict) -> dict:
        """Download {file_id: DownloadTarget}, in parallel when configured."""
        if not targets:
            return {}
        if self.settings.concurrency > 1 and len(targets) > 1:
            urls = {file_id: target.url for file_id, target in targets.items()}
            return self._get_downloader().fetch_all(urls)
        return {file_id: self.client.fetch_bytes(target.url) for file_id, target in targets.items()}

    def _plan(self, changes: list, stats: CycleStats) -> tuple:
        """
        Split accepted changes into sink records and download targets.

        Returns:
            (list of (ChangeRecord, DownloadTarget or None), {file_id: DownloadTarget})
        """
        planned = []
        targets = {}
        for change in changes:
            file = change.file
            if file is None or file.trashed:
                planned.append((change, None))
                continue
            if is_folder(file.mime_type) or not is_indexable(
                file.title, self.settings.includes, self.settings.excludes
            ):
                stats.skipped += 1
                continue
            target = resolve_download(file)
            if target is not None:
                targets[file.id] = target
            planned.append((change, target))
        return planned, targets

    @staticmethod
    def _to_indexed(change: ChangeRecord, target: Optional[DownloadTarget], contents: dict) -> IndexedChange:
        file = change.file
        if file is None or file.trashed:
            return IndexedChange(
                file_id=change.file_id,
                deleted=True,
                title=file.title if file else "",
            )
        return IndexedChange(
            file_id=file.id,
            effective_mime_type=target.effective_mime_type if target else file.mime_type,
            content=contents.get(file.id) if target else None,
            title=file.title,
        )

    def run_cycle(self) -> CycleStats:
        """
        Run one polling cycle.

        The cursor is saved only after every accepted change reached the sink,
        so a failed cycle is replayed in full next time.
        """
        if not self._connected:
            self.connect()

        start_calls = getattr(self.client, "api_calls", 0)
        result = self.poller.poll(self.state.last_changes_id)
        stats = CycleStats(accepted=len(result.changes))

        planned, targets = self._plan(result.changes, stats)
        contents = self._fetch_contents(targets)

        for change, target in planned:
            indexed = self._to_indexed(change, target, contents)
            self.sink.apply(indexed)
            if indexed.deleted:
                stats.deleted += 1
            else:
                stats.indexed += 1
                if indexed.content is None:
                    stats.no_content += 1
        self.sink.flush()

        if result.next_cursor >= 0:
            self.state.last_changes_id = result.next_cursor
            self.state.save()
        stats.cursor = self.state.last_changes_id
        stats.api_calls = getattr(self.client, "api_calls", 0) - start_calls

        logger.info(
            "Cycle done: %d accepted, %d indexed, %d deleted, %d skipped, cursor %s",
            stats.accepted, stats.indexed, stats.deleted, stats.skipped, stats.cursor,
        )
        return stats

    def run_forever(
        self,
        stop_event: Optional[threading.Event] = None,
        on_cycle: Optional[Callable[[CycleStats], None]] = None,
    ):
        """
        Poll every settings.update_rate seconds until stop_event is set.

        Auth failures drop the session so the next cycle reconnects with fresh
        credentials. Transport failures keep the cursor and retry next cycle.
        NotFoundError and IntegrityError are fatal and propagate.
        """
        stop_event = stop_event or threading.Event()
        while not stop_event.is_set():
            try:
                stats = self.run_cycle()
                if on_cycle:
                    on_cycle(stats)
            except AuthError as e:
                logger.error("Authorization failed, reconnecting next cycle: %s", e)
                self.disconnect()
            except TransportError as e:
                logger.warning("Polling failed, retrying next cycle: %s", e)
            stop_event.wait(self.settings.update_rate)


def build_river(settings: RiverSettings, sink: Optional[IndexSink] = None) -> DriveRiver:
    """Create a river writing to a DirectorySink under settings.output_dir."""
    if sink is None:
        sink = DirectorySink(Path(settings.output_dir) / settings.name)
    return DriveRiver(settings, sink)
