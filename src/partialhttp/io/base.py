"""Base protocols and shared constants for the I/O layer."""

from typing import Protocol, runtime_checkable


BLOCK_SIZE = 128 * 1024        # 128 KiB
HEAD_TIMEOUT = 30.0            # seconds
GET_TIMEOUT = 60.0


@runtime_checkable
class ReaderAt(Protocol):
    """Protocol for synchronous random-access readers."""

    size: int
    bytes_fetched: int  # running total

    def read_at(self, buffer, offset: int) -> int:
        """Fill ``buffer`` with the bytes at ``offset`` and return how many were copied.
        Fewer than ``len(buffer)`` only at end of resource; errors fill nothing.
        """
        ...

    def fetch(self, start: int, length: int) -> bytes:
        """Return exactly `length` bytes starting at absolute offset `start`.
        If not enough data can be fetched → raise IOError.
        """
        ...


@runtime_checkable
class AsyncReaderAt(Protocol):
    """Protocol for asynchronous random-access readers."""

    size: int
    bytes_fetched: int  # running total

    async def read_at(self, buffer, offset: int) -> int:
        ...

    async def fetch(self, start: int, length: int) -> bytes:
        """Return exactly `length` bytes starting at absolute offset `start`.
        If not enough data can be fetched → raise IOError.
        """
        ...
