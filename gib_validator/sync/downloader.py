# Path: gib_validator/sync/downloader.py
"""
Package Downloader

Streams GIB package archives to disk.

Architecture:
- aiohttp session with separate connect and read timeouts
- Automatic retry with exponential backoff on transport errors and 5xx/429
- Chunked streaming to disk via aiofiles with a hard size cap
- ZIP signature check on the written file
- Optional base URL override (scheme and host replaced, path and query kept)
"""

import asyncio
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import aiofiles
import aiohttp
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)

from gib_validator.core.logger import get_logger
from gib_validator.exceptions import DownloadError
from gib_validator.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONNECT_TIMEOUT_MS,
    DEFAULT_MAX_DOWNLOAD_MB,
    DEFAULT_READ_TIMEOUT_MS,
    DEFAULT_RETRY_ATTEMPTS,
    HTTP_OK,
    LOG_INPUT,
    LOG_OUTPUT,
    LOG_PROCESS,
    RETRYABLE_STATUS_CODES,
    ZIP_MAGIC,
)

logger = get_logger(__name__, 'sync')


def apply_base_url_override(url: str, base_url: Optional[str]) -> str:
    """
    Replace scheme and host of url with those of base_url.

    'https://ebelge.gib.gov.tr/dosyalar/x.zip' + 'http://mirror:8080'
    -> 'http://mirror:8080/dosyalar/x.zip'
    """
    if not base_url:
        return url
    original = urlsplit(url)
    override = urlsplit(base_url)
    if not override.scheme or not override.netloc:
        logger.warning(f"Ignoring invalid base URL override: {base_url}")
        return url
    return urlunsplit((override.scheme, override.netloc, original.path, original.query, original.fragment))


class PackageDownloader:
    """
    Example:
        async with PackageDownloader(max_download_mb=200) as downloader:
            size = await downloader.download(url, Path('/tmp/efatura.zip'))
    """

    def __init__(
        self,
        connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS,
        read_timeout_ms: int = DEFAULT_READ_TIMEOUT_MS,
        max_download_mb: int = DEFAULT_MAX_DOWNLOAD_MB,
        base_url_override: Optional[str] = None,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        chunk_size: int = DEFAULT_CHUNK_SIZE
    ):
        self.connect_timeout = connect_timeout_ms / 1000
        self.read_timeout = read_timeout_ms / 1000
        self.max_bytes = max_download_mb * 1024 * 1024
        self.base_url_override = base_url_override
        self.retry_attempts = max(1, retry_attempts)
        self.chunk_size = chunk_size
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> 'PackageDownloader':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(
                    total=None,
                    connect=self.connect_timeout,
                    sock_read=self.read_timeout
                )
            )
        return self._session

    async def download(self, url: str, output_path: Path) -> int:
        """
        Download a package archive.

        Returns:
            Bytes written

        Raises:
            DownloadError: HTTP error, size cap exceeded, transport failure
                           after retries, or not a ZIP archive
        """
        effective_url = apply_base_url_override(url, self.base_url_override)
        logger.info(f"{LOG_INPUT} Downloading {effective_url}")
        fetch = retry(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=1, min=2, max=10),
            retry=retry_if_exception_type((aiohttp.ClientError, asyncio.TimeoutError)),
            reraise=True
        )(self._fetch)

        try:
            written = await fetch(effective_url, output_path)
        except asyncio.TimeoutError as e:
            raise DownloadError(f"Download timed out: {effective_url}") from e
        except aiohttp.ClientError as e:
            raise DownloadError(f"Download failed: {effective_url}: {e}") from e

        await self._check_zip_signature(output_path)
        logger.info(f"{LOG_OUTPUT} Downloaded {written} bytes to {output_path.name}")
        return written

    async def _fetch(self, url: str, output_path: Path) -> int:
        session = await self._get_session()
        async with session.get(url) as response:
            if response.status in RETRYABLE_STATUS_CODES:
                logger.warning(f"Server returned {response.status} for {url} - will retry")
                raise aiohttp.ClientError(f"Server error: {response.status}")
            if response.status != HTTP_OK:
                raise DownloadError(f"HTTP {response.status} for {url}")

            content_length = response.content_length
            if content_length is not None and content_length > self.max_bytes:
                raise DownloadError(
                    f"Package too large: {content_length} bytes (limit {self.max_bytes} bytes)"
                )

            output_path.parent.mkdir(parents=True, exist_ok=True)
            written = 0
            async with aiofiles.open(output_path, 'wb') as handle:
                async for chunk in response.content.iter_chunked(self.chunk_size):
                    written += len(chunk)
                    if written > self.max_bytes:
                        raise DownloadError(f"Package exceeds download limit of {self.max_bytes} bytes")
                    await handle.write(chunk)
            logger.debug(f"{LOG_PROCESS} Stream complete: {written} bytes")
            return written

    @staticmethod
    async def _check_zip_signature(path: Path) -> None:
        async with aiofiles.open(path, 'rb') as handle:
            head = await handle.read(len(ZIP_MAGIC))
        if head != ZIP_MAGIC:
            raise DownloadError(f"Downloaded file is not a ZIP archive: {path.name}")


__all__ = ['PackageDownloader', 'apply_base_url_override']
