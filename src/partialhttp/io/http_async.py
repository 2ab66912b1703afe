"""Asynchronous HTTP range reader using httpx."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import httpx

from ..core.blocks import format_range_header
from ..core.cache import BlockCache
from ..core.model import ByteRange, FetchError, ProbeError, ResourceNotFoundError
from .base import BLOCK_SIZE, GET_TIMEOUT, HEAD_TIMEOUT
from .fetch import copy_blocks, plan, store_response

logger = logging.getLogger("partialhttp")

# Global async client
_client: Optional[httpx.AsyncClient] = None

_IDENTITY = {"Accept-Encoding": "identity"}


@asynccontextmanager
async def _get_client():
    """Get or create the global httpx AsyncClient."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=GET_TIMEOUT, follow_redirects=True)

    try:
        yield _client
    finally:
        # Don't close the client here - it's shared
        pass


class AsyncHTTPRangeReader:
    """Asynchronous random-access reader with the same block cache as the sync one."""

    def __init__(
        self,
        url: str,
        *,
        block_size: int = BLOCK_SIZE,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = GET_TIMEOUT,
    ):
        self.url = url
        self.block_size = block_size
        self.timeout = timeout
        self.bytes_fetched = 0
        self.requests_made = 0
        self.size: Optional[int] = None
        self._client = client
        self._cache: Optional[BlockCache] = None
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @asynccontextmanager
    async def _client_ctx(self):
        if self._client is not None:
            yield self._client
        else:
            async with _get_client() as client:
                yield client

    async def _ensure_initialized(self):
        """Perform HEAD request to learn the size if not already done."""
        if self._initialized:
            return

        async with self._init_lock:
            # another task may have finished the HEAD while we waited
            if not self._initialized:
                await self._head()

    async def _head(self):
        async with self._client_ctx() as client:
            self.requests_made += 1
            try:
                response = await client.head(self.url, headers=_IDENTITY, timeout=HEAD_TIMEOUT)
            except httpx.HTTPError as e:
                raise ProbeError(f"HEAD request failed: {e}") from e

        if response.status_code == 404:
            raise ResourceNotFoundError(f"Resource not found: {self.url}")
        if not response.is_success:
            raise ProbeError(f"HEAD request failed with status {response.status_code}")

        content_length = response.headers.get("content-length")
        try:
            size = int(content_length)
        except (TypeError, ValueError):
            raise ProbeError(f"HEAD response has no usable Content-Length: {content_length!r}")
        if size < 0:
            raise ProbeError(f"HEAD response has negative Content-Length: {size}")

        logger.debug("Probed %s: %d bytes", self.url, size)
        self.size = size
        self._cache = BlockCache(self.block_size, size)
        self._initialized = True

    @property
    def cached_blocks(self) -> int:
        return len(self._cache) if self._cache is not None else 0

    async def _fetch_ranges(self, ranges: List[ByteRange]) -> None:
        if not ranges:
            return

        headers = dict(_IDENTITY, Range=format_range_header(ranges))
        logger.debug("GET %s %s", self.url, headers["Range"])

        async with self._client_ctx() as client:
            self.requests_made += 1
            try:
                response = await client.get(self.url, headers=headers, timeout=self.timeout)
            except httpx.HTTPError as e:
                raise FetchError(f"Range request failed: {e}") from e

        body = response.content
        self.bytes_fetched += len(body)
        store_response(self._cache, ranges, response.status_code, response.headers, body)

    async def read_at(self, buffer, offset: int) -> int:
        """Copy the bytes at ``offset`` into ``buffer`` and return how many were copied."""
        await self._ensure_initialized()

        length = memoryview(buffer).nbytes
        n, missing = plan(self._cache, offset, length)
        if n == 0:
            return 0
        if missing:
            await self._fetch_ranges(missing)
        else:
            logger.debug("Cache hit for %d bytes at offset %d", n, offset)
        return copy_blocks(self._cache, buffer, offset, n)

    async def fetch(self, start: int, length: int) -> bytes:
        """Return exactly `length` bytes starting at absolute offset `start`."""
        await self._ensure_initialized()

        if start < 0:
            raise IOError("Start offset cannot be negative")

        if length <= 0:
            raise IOError("Length must be positive")

        if start + length > self.size:
            raise IOError(f"Not enough data: requested {length} bytes at offset {start}, "
                          f"but resource only has {self.size} bytes")

        buf = bytearray(length)
        await self.read_at(buf, start)
        return bytes(buf)

    async def __aenter__(self):
        await self._ensure_initialized()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        # Client is shared or owned by the caller, don't close it here
        pass


async def open_http_reader_async(url: str, **kwargs) -> AsyncHTTPRangeReader:
    """Create an asynchronous HTTP range reader."""
    reader = AsyncHTTPRangeReader(url, **kwargs)
    await reader._ensure_initialized()
    return reader


async def close_global_client():
    """Close the global httpx client. Call this at application shutdown."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
