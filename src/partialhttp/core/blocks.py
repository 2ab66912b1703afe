from __future__ import annotations
from typing import Iterable, List, Sequence

from .model import ByteRange


def covering_blocks(offset: int, length: int, block_size: int) -> range:
    """Return the block indices that fully cover ``[offset, offset+length)``."""
    if length <= 0:
        return range(0)
    start = offset // block_size
    end, rem = divmod(offset + length, block_size)
    if rem:
        end += 1
    return range(start, end)


def block_range(block: int, block_size: int, size: int) -> ByteRange:
    """Byte interval of ``block``, with the end clipped to the last byte of the resource."""
    start = block * block_size
    end = min((block + 1) * block_size - 1, size - 1)
    return ByteRange(block, start, end)


def compute_missing_ranges(blocks: Iterable[int], cache, block_size: int, size: int) -> List[ByteRange]:
    """Ranges for every block in ``blocks`` that ``cache`` does not hold yet.

    Order follows ``blocks`` (ascending) and must not be changed afterwards:
    multipart responses are matched to requests by position.
    """
    present = cache.snapshot()
    return [
        block_range(b, block_size, size)
        for b in blocks
        if b not in present and b * block_size < size
    ]


def format_range_header(ranges: Sequence[ByteRange]) -> str:
    return "bytes=" + ",".join(str(r) for r in ranges)
