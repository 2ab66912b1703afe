"""partialhttp - random-access reads over HTTP Range requests with a block cache."""

import logging
from importlib.metadata import PackageNotFoundError, version

from .core.model import (                                             # re-export
    ByteRange, PartialHTTPError, ProbeError, ResourceNotFoundError,
    FetchError, IncompleteFetchError, ParseError, MissingBlockError,
)
from .io import (
    BLOCK_SIZE, HTTPRangeReader, AsyncHTTPRangeReader,
    LoggingReaderAt, AsyncLoggingReaderAt, RangeFile,
    open_http_reader, open_http_reader_async,
)

try:
    __version__ = version("partialhttp")
except PackageNotFoundError:
    __version__ = "0.0.0"

logging.getLogger("partialhttp").addHandler(logging.NullHandler())
logging.getLogger("httpx").setLevel(logging.WARNING)


def open_reader(url: str, *, block_size: int = BLOCK_SIZE, **kwargs) -> HTTPRangeReader:
    """Probe ``url`` and return a synchronous random-access reader for it."""
    if not str(url).startswith(("http://", "https://")):
        raise ValueError(f"Not an HTTP(S) URL: {url}")
    return open_http_reader(str(url), block_size=block_size, **kwargs)


async def open_reader_async(url: str, *, block_size: int = BLOCK_SIZE, **kwargs) -> AsyncHTTPRangeReader:
    """Probe ``url`` and return an asynchronous random-access reader for it."""
    if not str(url).startswith(("http://", "https://")):
        raise ValueError(f"Not an HTTP(S) URL: {url}")
    return await open_http_reader_async(str(url), block_size=block_size, **kwargs)


__all__ = [
    "open_reader", "open_reader_async",
    "HTTPRangeReader", "AsyncHTTPRangeReader",
    "LoggingReaderAt", "AsyncLoggingReaderAt", "RangeFile",
    "ByteRange", "BLOCK_SIZE",
    "PartialHTTPError", "ProbeError", "ResourceNotFoundError",
    "FetchError", "IncompleteFetchError", "ParseError", "MissingBlockError",
]
