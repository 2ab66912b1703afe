"""I/O layer for partialhttp - random-access reads over HTTP Range requests."""

# Re-export these for import convenience
from .base import ReaderAt, AsyncReaderAt, BLOCK_SIZE
from .http_sync import HTTPRangeReader, open_http_reader
from .http_async import AsyncHTTPRangeReader, open_http_reader_async, close_global_client
from .logging_reader import LoggingReaderAt, AsyncLoggingReaderAt
from .rawio import RangeFile
