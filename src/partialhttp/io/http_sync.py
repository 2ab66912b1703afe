"""Synchronous HTTP range reader using requests."""

import logging
import threading
from typing import List, Optional

import requests

from ..core.blocks import format_range_header
from ..core.cache import BlockCache
from ..core.model import ByteRange, FetchError, ProbeError, ResourceNotFoundError
from .base import BLOCK_SIZE, GET_TIMEOUT, HEAD_TIMEOUT
from .fetch import copy_blocks, plan, store_response

logger = logging.getLogger("partialhttp")

# Module-level session for connection pooling
_session = None

# Compressed bodies would not line up with byte offsets
_IDENTITY = {"Accept-Encoding": "identity"}


def _get_session():
    """Get or create the global requests session."""
    global _session
    if _session is None:
        _session = requests.Session()
    return _session


class HTTPRangeReader:
    """Random-access reader over a remote resource, backed by a block cache.

    Safe to share between threads: each ``read_at`` fetches the blocks it is
    missing with a single GET and copies the window out of the cache.
    """

    def __init__(
        self,
        url: str,
        *,
        block_size: int = BLOCK_SIZE,
        session: Optional[requests.Session] = None,
        timeout: float = GET_TIMEOUT,
    ):
        self.url = url
        self.block_size = block_size
        self.timeout = timeout
        self.bytes_fetched = 0
        self.requests_made = 0
        self._stats_lock = threading.Lock()
        self._session = session or _get_session()

        # Perform HEAD request immediately
        self.size = self._probe()
        self._cache = BlockCache(block_size, self.size)

    def _count(self, requests_made: int = 0, bytes_fetched: int = 0) -> None:
        with self._stats_lock:
            self.requests_made += requests_made
            self.bytes_fetched += bytes_fetched

    def _probe(self) -> int:
        """Perform HEAD request and return the resource size."""
        try:
            response = self._session.head(
                self.url, headers=_IDENTITY, timeout=HEAD_TIMEOUT, allow_redirects=True
            )
        except requests.RequestException as e:
            raise ProbeError(f"HEAD request failed: {e}") from e
        finally:
            self._count(requests_made=1)

        if response.status_code == 404:
            raise ResourceNotFoundError(f"Resource not found: {self.url}")
        if not 200 <= response.status_code < 300:
            raise ProbeError(f"HEAD request failed with status {response.status_code}")

        content_length = response.headers.get("content-length")
        try:
            size = int(content_length)
        except (TypeError, ValueError):
            raise ProbeError(f"HEAD response has no usable Content-Length: {content_length!r}")
        if size < 0:
            raise ProbeError(f"HEAD response has negative Content-Length: {size}")

        logger.debug("Probed %s: %d bytes", self.url, size)
        return size

    @property
    def cached_blocks(self) -> int:
        return len(self._cache)

    def _fetch_ranges(self, ranges: List[ByteRange]) -> None:
        """Fetch every range with one GET and store the blocks."""
        if not ranges:
            return

        headers = dict(_IDENTITY, Range=format_range_header(ranges))
        logger.debug("GET %s %s", self.url, headers["Range"])

        try:
            response = self._session.get(self.url, headers=headers, timeout=self.timeout)
            body = response.content
        except requests.RequestException as e:
            raise FetchError(f"Range request failed: {e}") from e
        finally:
            self._count(requests_made=1)

        self._count(bytes_fetched=len(body))
        store_response(self._cache, ranges, response.status_code, response.headers, body)

    def read_at(self, buffer, offset: int) -> int:
        """Copy the bytes at ``offset`` into ``buffer`` and return how many were copied."""
        length = memoryview(buffer).nbytes
        n, missing = plan(self._cache, offset, length)
        if n == 0:
            return 0
        if missing:
            self._fetch_ranges(missing)
        else:
            logger.debug("Cache hit for %d bytes at offset %d", n, offset)
        return copy_blocks(self._cache, buffer, offset, n)

    def fetch(self, start: int, length: int) -> bytes:
        """Return exactly `length` bytes starting at absolute offset `start`."""
        if start < 0:
            raise IOError("Start offset cannot be negative")

        if length <= 0:
            raise IOError("Length must be positive")

        if start + length > self.size:
            raise IOError(f"Not enough data: requested {length} bytes at offset {start}, "
                          f"but resource only has {self.size} bytes")

        buf = bytearray(length)
        self.read_at(buf, start)
        return bytes(buf)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Session is shared, don't close it here
        pass


def open_http_reader(url: str, **kwargs) -> HTTPRangeReader:
    """Create a synchronous HTTP range reader."""
    return HTTPRangeReader(url, **kwargs)
