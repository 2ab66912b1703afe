"""Transport-independent half of a range fetch: demultiplexing responses into the cache."""

from __future__ import annotations
import logging
from typing import List, Mapping, Sequence, Tuple

from ..core.blocks import compute_missing_ranges, covering_blocks
from ..core.cache import BlockCache
from ..core.model import (
    ByteRange, FetchError, IncompleteFetchError, ParseError,
)
from ..core.multipart import (
    MULTIPART_BYTERANGES, boundary_from, iter_parts, parse_content_range, parse_media_type,
)

logger = logging.getLogger("partialhttp")


def clamp_length(offset: int, length: int, size: int) -> int:
    """Number of bytes a read of ``length`` at ``offset`` can return."""
    if offset < 0:
        raise ValueError("Start offset cannot be negative")
    if length <= 0 or offset >= size:
        return 0
    return min(length, size - offset)


def _check_content_range(value: str | None, rng: ByteRange) -> None:
    if value is None:
        return
    start, end, _ = parse_content_range(value)
    if (start, end) != (rng.start, rng.end):
        raise ParseError(f"Content-Range {value!r} does not match requested range {rng}")


def _check_length(content: bytes, rng: ByteRange) -> None:
    if len(content) != len(rng):
        kind = "Short" if len(content) < len(rng) else "Overlong"
        raise FetchError(
            f"{kind} read for range {rng}: expected {len(rng)} bytes, got {len(content)}"
        )


def _store_leading(cache: BlockCache, rng: ByteRange, content_range: str | None, content: bytes) -> int:
    """Store the first ``len(rng)`` bytes of a body that begins at ``rng.start``.

    Servers may answer adjacent ranges with one merged span; only the range
    the span starts with is taken from it.
    """
    if len(content) < len(rng):
        _check_length(content, rng)
    if content_range is not None:
        start, _, _ = parse_content_range(content_range)
        if start != rng.start:
            raise ParseError(
                f"Content-Range {content_range!r} does not start at requested range {rng}"
            )
    cache.store(rng.block, content[:len(rng)])
    return len(rng)


def _unfetched(reason: str, missing: Sequence[ByteRange]) -> IncompleteFetchError:
    return IncompleteFetchError(
        f"{reason}; unfetched: {','.join(str(r) for r in missing)}", missing
    )


def store_response(
    cache: BlockCache,
    ranges: Sequence[ByteRange],
    status: int,
    headers: Mapping[str, str],
    body: bytes,
) -> int:
    """Write the blocks carried by one range response into ``cache``.

    Returns the number of body bytes stored. Ranges the response does not
    satisfy are reported with IncompleteFetchError after the satisfied ones
    are stored.
    """
    if not 200 <= status < 300:
        raise FetchError(f"Range request failed with status {status}")

    content_type = headers.get("content-type")
    typ, _ = parse_media_type(content_type)

    if typ == MULTIPART_BYTERANGES:
        boundary = boundary_from(content_type)
        received = 0
        stored = 0
        for part in iter_parts(body, boundary):
            if received >= len(ranges):
                raise ParseError(
                    f"Response has more parts than the {len(ranges)} ranges requested"
                )
            rng = ranges[received]
            content_range = part.headers.get("content-range")
            received += 1
            if len(part.content) > len(rng) and received < len(ranges):
                # merged span: later parts no longer line up with the ranges
                stored += _store_leading(cache, rng, content_range, part.content)
                raise _unfetched(f"Part for range {rng} spans merged ranges", ranges[received:])
            _check_length(part.content, rng)
            _check_content_range(content_range, rng)
            cache.store(rng.block, part.content)
            stored += len(part.content)
        logger.debug("Stored %d multipart parts (%d bytes)", received, stored)
        if received < len(ranges):
            raise _unfetched(
                f"Server returned {received} parts for {len(ranges)} ranges", ranges[received:]
            )
        return stored

    # Server ignored Range and sent the whole resource
    if status == 200 and len(body) == cache.size and len(body) > len(ranges[0]):
        cache.store_many((r.block, body[r.start:r.end + 1]) for r in ranges)
        return sum(len(r) for r in ranges)

    first = ranges[0]
    if len(ranges) > 1:
        # collapsed to the first range, or merged into one span
        _store_leading(cache, first, headers.get("content-range"), body)
        raise _unfetched(f"Single-part response to a {len(ranges)}-range request", ranges[1:])
    _check_length(body, first)
    _check_content_range(headers.get("content-range"), first)
    cache.store(first.block, body)
    return len(body)


def copy_blocks(cache: BlockCache, buffer, offset: int, n: int) -> int:
    """Copy ``n`` cached bytes starting at ``offset`` into ``buffer``.

    Every block is looked up before the first byte is written, so a missing
    block leaves ``buffer`` untouched.
    """
    if n <= 0:
        return 0
    bs = cache.block_size
    blocks = covering_blocks(offset, n, bs)
    data = cache.gather(blocks)

    view = memoryview(buffer).cast("B")
    pos = 0
    skip = offset - blocks.start * bs
    for block in data:
        chunk = block[skip:skip + (n - pos)]
        view[pos:pos + len(chunk)] = chunk
        pos += len(chunk)
        skip = 0
    return pos


def plan(cache: BlockCache, offset: int, length: int) -> Tuple[int, List[ByteRange]]:
    """Clamp a read to the resource and list the block ranges still missing."""
    n = clamp_length(offset, length, cache.size)
    if n == 0:
        return 0, []
    blocks = covering_blocks(offset, n, cache.block_size)
    return n, compute_missing_ranges(blocks, cache, cache.block_size, cache.size)
