"""
Parallel content downloads for Drive River.

Fetches the content of every accepted change of a cycle concurrently.
Uses asyncio + aiohttp; a failed file yields None instead of aborting
the batch.
"""

import asyncio
import logging
import ssl
from typing import Callable, Optional, Tuple, Union

import aiohttp
import certifi

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class ContentDownloader:
    """
    Async content downloader.

    Keeps every body in memory; the river hands the bytes to the sink.
    """

    def __init__(
        self,
        max_workers: int = 4,
        max_retries: int = 3,
        timeout: Tuple[int, int] = (10, 120),
        chunk_size: int = 32768,
        auth_token: Optional[Union[str, Callable[[], Optional[str]]]] = None,
        retry_backoff: float = 0.5,
    ):
        self.max_workers = max(1, max_workers)
        self.max_retries = max(1, max_retries)
        self.timeout = aiohttp.ClientTimeout(connect=timeout[0], sock_read=timeout[1])
        self.chunk_size = chunk_size
        self._auth_token = auth_token
        self.retry_backoff = retry_backoff

    def _get_auth_token(self) -> Optional[str]:
        """Get current auth token, calling getter if it's a callable."""
        if callable(self._auth_token):
            return self._auth_token()
        return self._auth_token

    def _get_headers(self) -> dict:
        token = self._get_auth_token()
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    async def _fetch_one(
        self,
        session: aiohttp.ClientSession,
        file_id: str,
        url: str,
        semaphore: asyncio.Semaphore,
    ) -> Optional[bytes]:
        """Download a single body with retries. Returns None on failure."""
        async with semaphore:
            for attempt in range(self.max_retries):
                last_attempt = attempt == self.max_retries - 1
                try:
                    async with session.get(url, headers=self._get_headers()) as response:
                        if response.status in RETRYABLE_STATUS and not last_attempt:
                            await asyncio.sleep(self.retry_backoff * (attempt + 1))
                            continue
                        response.raise_for_status()

                        chunks = []
                        async for chunk in response.content.iter_chunked(self.chunk_size):
                            chunks.append(chunk)
                        return b"".join(chunks)

                except asyncio.TimeoutError:
                    if not last_attempt:
                        await asyncio.sleep(self.retry_backoff * (attempt + 1))
                        continue
                    logger.warning("Timed out downloading %s", file_id)
                    return None

                except aiohttp.ClientResponseError as e:
                    logger.warning("Could not download %s: HTTP %s", file_id, e.status)
                    return None

                except aiohttp.ClientError as e:
                    if not last_attempt:
                        await asyncio.sleep(self.retry_backoff * (attempt + 1))
                        continue
                    logger.warning("Could not download %s: %s", file_id, e)
                    return None

        return None

    async def fetch_all_async(self, targets: dict) -> dict:
        """
        Download every target concurrently.

        Args:
            targets: {file_id: url}

        Returns:
            {file_id: bytes or None}
        """
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context, limit=self.max_workers)
        semaphore = asyncio.Semaphore(self.max_workers)

        async with aiohttp.ClientSession(connector=connector, timeout=self.timeout) as session:
            results = await asyncio.gather(*(
                self._fetch_one(session, file_id, url, semaphore)
                for file_id, url in targets.items()
            ))

        return dict(zip(targets.keys(), results))

    def fetch_all(self, targets: dict) -> dict:
        """Blocking wrapper around fetch_all_async()."""
        if not targets:
            return {}
        return asyncio.run(self.fetch_all_async(targets))
