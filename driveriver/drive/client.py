"""
Google Drive API client for Drive River.

Handles all HTTP interactions with the Google Drive v2 API: folder listing,
the numeric-id change feed, and raw content downloads.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Union

import requests

from ..exceptions import AuthError, DriveRiverError, TransportError
from .mime import GOOGLE_FOLDER
from .models import ChangesPage, FolderRecord

logger = logging.getLogger(__name__)

# Statuses worth another attempt; everything else fails fast
RETRYABLE_STATUS = {429, 500, 502, 503, 504}


@dataclass
class DriveClientConfig:
    """Configuration for DriveClient."""
    timeout: int = 60
    max_retries: int = 3
    page_size: int = 1000
    retry_backoff: float = 1.0  # seconds, doubled after each attempt
    chunk_size: int = 32768


def escape_query_value(value: str) -> str:
    """Escape a string for use inside a single-quoted Drive query literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DriveClient:
    """
    Google Drive API client.

    Implements the four remote primitives the river relies on: top-level
    folder lookup by name, listing every folder, paging through the change
    feed, and fetching bytes from a resolved download URL.
    """

    API_BASE = "https://www.googleapis.com/drive/v2"
    API_FILES = f"{API_BASE}/files"
    API_CHANGES = f"{API_BASE}/changes"

    def __init__(
        self,
        config: Optional[DriveClientConfig] = None,
        auth_token: Optional[Union[str, Callable[[], Optional[str]]]] = None,
    ):
        """
        Initialize the Drive client.

        Args:
            config: Client configuration
            auth_token: OAuth access token, or a callable returning the current one
        """
        self.config = config or DriveClientConfig()
        self._auth_token = auth_token
        self._api_calls = 0

    @property
    def api_calls(self) -> int:
        """Total API calls made by this client."""
        return self._api_calls

    def reset_api_calls(self):
        """Reset the API call counter."""
        self._api_calls = 0

    def _get_auth_token(self) -> Optional[str]:
        if callable(self._auth_token):
            return self._auth_token()
        return self._auth_token

    def _get_headers(self) -> dict:
        """Get request headers."""
        token = self._get_auth_token()
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    def _request_with_retry(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Make a request with retry logic.

        Timeouts, connection errors, 429 and 5xx are retried with exponential
        backoff. 401 raises AuthError immediately, other failures TransportError.
        """
        timeout = kwargs.pop("timeout", self.config.timeout)
        retries = max(1, self.config.max_retries)

        for attempt in range(retries):
            last_attempt = attempt == retries - 1
            try:
                response = requests.request(
                    method, url, timeout=timeout, headers=self._get_headers(), **kwargs
                )
                self._api_calls += 1
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                if not last_attempt:
                    time.sleep(self.config.retry_backoff * 2 ** attempt)
                    continue
                raise TransportError(f"{method} {url} failed: {e}") from e
            except requests.exceptions.RequestException as e:
                raise TransportError(f"{method} {url} failed: {e}") from e

            if response.status_code == 401:
                logger.error("Authorization exception while accessing Google Drive")
                response.close()
                raise AuthError(f"{method} {url} was rejected (HTTP 401)")

            if response.status_code in RETRYABLE_STATUS and not last_attempt:
                response.close()
                time.sleep(self.config.retry_backoff * 2 ** attempt)
                continue

            try:
                response.raise_for_status()
            except requests.exceptions.HTTPError as e:
                response.close()
                raise TransportError(
                    f"{method} {url} failed with HTTP {response.status_code}",
                    status_code=response.status_code,
                ) from e
            return response

        raise TransportError(f"Request failed after {retries} attempts")

    def _get_json(self, url: str, params: dict) -> dict:
        response = self._request_with_retry("GET", url, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON from {url}: {e}") from e

    def _list_files(self, query: str, fields: str, max_results: Optional[int] = None) -> list:
        """
        List files matching a Drive query.

        With max_results set only the first page is requested; otherwise every
        page is followed.
        """
        all_items = []
        page_token = None

        while True:
            params = {
                "q": query,
                "fields": f"nextPageToken, items({fields})",
                "maxResults": max_results or self.config.page_size,
            }
            if page_token:
                params["pageToken"] = page_token

            data = self._get_json(self.API_FILES, params)
            all_items.extend(data.get("items", []))
            page_token = data.get("nextPageToken")

            if max_results is not None or not page_token:
                break

        return all_items

    def list_top_level_folders_by_name(self, name: str) -> list[FolderRecord]:
        """
        Find folders named `name` directly under the drive root.

        At most two results are requested: enough to tell one match from many.
        """
        query = (
            f"title='{escape_query_value(name)}' and mimeType='{GOOGLE_FOLDER}'"
            " and 'root' in parents and trashed=false"
        )
        items = self._list_files(query, "id, title, parents(id)", max_results=2)
        logger.debug("Found %d folders corresponding to searched root folder %s", len(items), name)
        return [FolderRecord.from_dict(item) for item in items]

    def list_all_folders(self) -> list[FolderRecord]:
        """List every folder in the drive (all pages)."""
        query = f"mimeType='{GOOGLE_FOLDER}' and trashed=false"
        items = self._list_files(query, "id, parents(id)")
        logger.debug("Listed %d folders", len(items))
        return [FolderRecord.from_dict(item) for item in items]

    def list_changes(self, since_id: Optional[int] = None) -> Iterator[ChangesPage]:
        """
        Page through the change feed.

        Args:
            since_id: Only changes with an id strictly greater than this are
                requested. None replays the feed from the beginning.

        Yields:
            ChangesPage objects in delivery order
        """
        params = {
            "maxResults": self.config.page_size,
            "includeDeleted": "true",
        }
        if since_id is not None:
            params["startChangeId"] = since_id + 1

        while True:
            data = self._get_json(self.API_CHANGES, params)
            page = ChangesPage.from_dict(data)
            logger.debug(
                "Found %d items in this changes page, largest changes id is %d",
                len(page.items), page.largest_change_id,
            )
            yield page

            if not page.next_page_token:
                break
            params["pageToken"] = page.next_page_token

    def fetch_bytes(self, url: str) -> Optional[bytes]:
        """
        Download the body behind a resolved download/export URL.

        Returns:
            The content, or None if anything goes wrong (the reason is logged)
        """
        logger.debug("Downloading file content from %s", url)
        try:
            with self._request_with_retry("GET", url, stream=True) as response:
                return b"".join(response.iter_content(chunk_size=self.config.chunk_size))
        except (DriveRiverError, requests.exceptions.RequestException) as e:
            logger.warning("Could not download %s: %s", url, e)
            return None
