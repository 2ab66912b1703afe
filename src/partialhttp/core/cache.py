"""Write-once block cache shared by every reader of one resource."""

from __future__ import annotations
import threading
from contextlib import contextmanager
from typing import Dict, FrozenSet, Iterable, Iterator, List, Tuple

from .model import MissingBlockError


class ReadWriteLock:
    """Many concurrent readers or a single writer.

    Waiting writers block new readers so a steady stream of reads cannot
    starve a store.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_lock(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_lock(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class BlockCache:
    """Block index -> block bytes for a single resource.

    Blocks are never removed and never replaced: storing an index that is
    already present is a no-op as long as the content is identical.
    """

    def __init__(self, block_size: int, size: int):
        if block_size <= 0:
            raise ValueError("block_size must be positive")
        if size < 0:
            raise ValueError("size cannot be negative")
        self.block_size = block_size
        self.size = size
        self._blocks: Dict[int, bytes] = {}
        self._lock = ReadWriteLock()

    def expected_length(self, block: int) -> int:
        """Length every stored copy of ``block`` must have."""
        return min(self.block_size, self.size - block * self.block_size)

    def __len__(self) -> int:
        with self._lock.read_lock():
            return len(self._blocks)

    def __contains__(self, block: int) -> bool:
        with self._lock.read_lock():
            return block in self._blocks

    def snapshot(self) -> FrozenSet[int]:
        """Indices present right now; may be stale as soon as it returns."""
        with self._lock.read_lock():
            return frozenset(self._blocks)

    def get(self, block: int) -> bytes | None:
        with self._lock.read_lock():
            return self._blocks.get(block)

    def gather(self, blocks: Iterable[int]) -> List[bytes]:
        """Return the bytes of every block in ``blocks`` or raise MissingBlockError."""
        with self._lock.read_lock():
            out = []
            for b in blocks:
                data = self._blocks.get(b)
                if data is None:
                    raise MissingBlockError(f"Block {b} is not cached")
                out.append(data)
            return out

    def store(self, block: int, data: bytes) -> None:
        self.store_many([(block, data)])

    def store_many(self, items: Iterable[Tuple[int, bytes]]) -> None:
        """Insert a batch of blocks under one exclusive lock."""
        checked = []
        for block, data in items:
            if block < 0 or block * self.block_size >= self.size:
                raise ValueError(f"Block {block} lies outside the resource")
            if len(data) != self.expected_length(block):
                raise ValueError(
                    f"Block {block} must be {self.expected_length(block)} bytes, got {len(data)}"
                )
            checked.append((block, bytes(data)))

        with self._lock.write_lock():
            for block, data in checked:
                # first copy wins
                self._blocks.setdefault(block, data)
