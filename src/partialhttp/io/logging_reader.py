"""Pass-through wrappers that log every read and otherwise change nothing."""

import logging

logger = logging.getLogger("partialhttp")


class LoggingReaderAt:
    """Forward every call to ``reader`` unchanged, logging it at DEBUG."""

    def __init__(self, reader):
        self.reader = reader

    @property
    def size(self) -> int:
        return self.reader.size

    @property
    def bytes_fetched(self) -> int:
        return self.reader.bytes_fetched

    @property
    def requests_made(self) -> int:
        return self.reader.requests_made

    def read_at(self, buffer, offset: int) -> int:
        logger.debug("read_at offset=%d length=%d", offset, memoryview(buffer).nbytes)
        return self.reader.read_at(buffer, offset)

    def fetch(self, start: int, length: int) -> bytes:
        logger.debug("fetch start=%d length=%d", start, length)
        return self.reader.fetch(start, length)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return self.reader.__exit__(exc_type, exc_val, exc_tb)


class AsyncLoggingReaderAt:
    """Async counterpart of LoggingReaderAt."""

    def __init__(self, reader):
        self.reader = reader

    @property
    def size(self):
        return self.reader.size

    @property
    def bytes_fetched(self) -> int:
        return self.reader.bytes_fetched

    @property
    def requests_made(self) -> int:
        return self.reader.requests_made

    async def read_at(self, buffer, offset: int) -> int:
        logger.debug("read_at offset=%d length=%d", offset, memoryview(buffer).nbytes)
        return await self.reader.read_at(buffer, offset)

    async def fetch(self, start: int, length: int) -> bytes:
        logger.debug("fetch start=%d length=%d", start, length)
        return await self.reader.fetch(start, length)

    async def __aenter__(self):
        await self.reader.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return await self.reader.__aexit__(exc_type, exc_val, exc_tb)
