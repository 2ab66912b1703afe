"""Tests for response demultiplexing and copy-back."""

import pytest
from requests.structures import CaseInsensitiveDict

from partialhttp.core.blocks import compute_missing_ranges
from partialhttp.core.cache import BlockCache
from partialhttp.core.model import (
    ByteRange, FetchError, IncompleteFetchError, MissingBlockError, ParseError,
)
from partialhttp.io.fetch import clamp_length, copy_blocks, plan, store_response

from range_handler import BOUNDARY, build_multipart, respond


DATA = bytes(range(256)) * 4          # 1024 bytes
BS = 100


def _ranges(cache, blocks):
    return compute_missing_ranges(blocks, cache, cache.block_size, cache.size)


def _store(cache, ranges, mode="normal"):
    header = "bytes=" + ",".join(str(r) for r in ranges)
    status, headers, body = respond(DATA, header, mode=mode)
    return store_response(cache, ranges, status, CaseInsensitiveDict(headers), body)


class TestStoreResponse:
    """Test how responses land in the cache."""

    def test_multipart_fills_every_block(self):
        cache = BlockCache(BS, len(DATA))
        ranges = _ranges(cache, [0, 3, 10])
        stored = _store(cache, ranges)
        assert stored == 100 + 100 + 24
        assert cache.get(0) == DATA[0:100]
        assert cache.get(3) == DATA[300:400]
        assert cache.get(10) == DATA[1000:1024]

    def test_single_range(self):
        cache = BlockCache(BS, len(DATA))
        ranges = _ranges(cache, [5])
        assert _store(cache, ranges) == 100
        assert cache.get(5) == DATA[500:600]

    def test_fewer_parts_than_ranges(self):
        cache = BlockCache(BS, len(DATA))
        ranges = _ranges(cache, [0, 1, 2])
        with pytest.raises(IncompleteFetchError) as exc_info:
            _store(cache, ranges, mode="drop-last")
        assert exc_info.value.missing == (ByteRange(2, 200, 299),)
        assert cache.snapshot() == frozenset({0, 1})

    def test_collapsed_single_part_satisfies_only_first(self):
        cache = BlockCache(BS, len(DATA))
        ranges = _ranges(cache, [0, 1])
        with pytest.raises(IncompleteFetchError, match="Single-part response"):
            _store(cache, ranges, mode="collapse")
        assert cache.get(0) == DATA[0:100]
        assert 1 not in cache

    def test_merged_single_part_satisfies_only_first(self):
        cache = BlockCache(BS, len(DATA))
        ranges = _ranges(cache, [0, 1, 2])
        with pytest.raises(IncompleteFetchError) as exc_info:
            _store(cache, ranges, mode="merge")
        assert exc_info.value.missing == tuple(ranges[1:])
        assert cache.get(0) == DATA[0:100]
        assert cache.snapshot() == frozenset({0})

    def test_merged_span_with_wrong_start(self):
        cache = BlockCache(BS, len(DATA))
        ranges = _ranges(cache, [0, 1])
        headers = CaseInsensitiveDict({"content-range": "bytes 50-199/1024"})
        with pytest.raises(ParseError, match="does not start at"):
            store_response(cache, ranges, 206, headers, DATA[50:200])
        assert len(cache) == 0

    def test_merged_span_too_short_for_first(self):
        cache = BlockCache(BS, len(DATA))
        ranges = _ranges(cache, [0, 1])
        with pytest.raises(FetchError, match="Short read"):
            store_response(cache, ranges, 206, CaseInsensitiveDict(), DATA[0:60])
        assert len(cache) == 0

    def test_multipart_part_spanning_merged_ranges(self):
        cache = BlockCache(BS, len(DATA))
        ranges = _ranges(cache, [0, 1, 2])
        body = build_multipart(DATA, [(0, 199), (200, 299)])
        headers = {"content-type": f"multipart/byteranges; boundary={BOUNDARY}"}
        with pytest.raises(IncompleteFetchError, match="merged") as exc_info:
            store_response(cache, ranges, 206, headers, body)
        assert exc_info.value.missing == tuple(ranges[1:])
        assert cache.get(0) == DATA[0:100]
        assert cache.snapshot() == frozenset({0})

    def test_overlong_last_part(self):
        cache = BlockCache(BS, len(DATA))
        ranges = _ranges(cache, [0, 1])
        body = build_multipart(DATA, [(0, 99), (100, 249)])
        headers = {"content-type": f"multipart/byteranges; boundary={BOUNDARY}"}
        with pytest.raises(FetchError, match="Overlong read"):
            store_response(cache, ranges, 206, headers, body)

    def test_server_ignoring_range(self):
        cache = BlockCache(BS, len(DATA))
        ranges = _ranges(cache, [2, 7])
        _store(cache, ranges, mode="ignore")
        assert cache.get(2) == DATA[200:300]
        assert cache.get(7) == DATA[700:800]

    def test_short_body(self):
        cache = BlockCache(BS, len(DATA))
        with pytest.raises(FetchError, match="Short read"):
            _store(cache, _ranges(cache, [1]), mode="short")
        assert len(cache) == 0

    def test_short_multipart_part(self):
        cache = BlockCache(BS, len(DATA))
        ranges = _ranges(cache, [0, 1])
        body = build_multipart(DATA, [(0, 99), (100, 150)])
        headers = {"content-type": f"multipart/byteranges; boundary={BOUNDARY}"}
        with pytest.raises(FetchError, match="Short read"):
            store_response(cache, ranges, 206, headers, body)
        assert cache.snapshot() == frozenset({0})

    def test_more_parts_than_ranges(self):
        cache = BlockCache(BS, len(DATA))
        ranges = _ranges(cache, [0])
        body = build_multipart(DATA, [(0, 99), (100, 199)])
        headers = {"content-type": f"multipart/byteranges; boundary={BOUNDARY}"}
        with pytest.raises(ParseError, match="more parts"):
            store_response(cache, ranges, 206, headers, body)

    def test_missing_boundary(self):
        cache = BlockCache(BS, len(DATA))
        with pytest.raises(ParseError, match="no boundary"):
            store_response(cache, _ranges(cache, [0, 1]), 206,
                           {"content-type": "multipart/byteranges"}, b"")

    def test_content_range_mismatch(self):
        cache = BlockCache(BS, len(DATA))
        headers = {"content-range": "bytes 100-199/1024"}
        with pytest.raises(ParseError, match="does not match"):
            store_response(cache, _ranges(cache, [0]), 206, headers, DATA[100:200])

    @pytest.mark.parametrize("status", [404, 416, 500])
    def test_error_status(self, status):
        cache = BlockCache(BS, len(DATA))
        with pytest.raises(FetchError, match=str(status)):
            store_response(cache, _ranges(cache, [0]), status, {}, b"")


class TestCopyBlocks:
    """Test copy-back from cache into the caller's buffer."""

    def _full_cache(self):
        cache = BlockCache(BS, len(DATA))
        for b in range(11):
            cache.store(b, DATA[b * BS:(b + 1) * BS])
        return cache

    def test_unaligned_window(self):
        cache = self._full_cache()
        buf = bytearray(250)
        assert copy_blocks(cache, buf, 75, 250) == 250
        assert bytes(buf) == DATA[75:325]

    def test_partial_buffer(self):
        cache = self._full_cache()
        buf = bytearray(b"\xff" * 30)
        assert copy_blocks(cache, buf, 1010, 14) == 14
        assert bytes(buf[:14]) == DATA[1010:1024]
        assert bytes(buf[14:]) == b"\xff" * 16

    def test_memoryview_target(self):
        cache = self._full_cache()
        buf = bytearray(10)
        copy_blocks(cache, memoryview(buf), 95, 10)
        assert bytes(buf) == DATA[95:105]

    def test_missing_block_leaves_buffer_untouched(self):
        cache = BlockCache(BS, len(DATA))
        cache.store(0, DATA[0:100])
        cache.store(2, DATA[200:300])
        buf = bytearray(b"\x00" * 300)
        with pytest.raises(MissingBlockError):
            copy_blocks(cache, buf, 0, 300)
        assert buf == bytearray(300)


class TestPlan:
    """Test read clamping and planning."""

    def test_clamp(self):
        assert clamp_length(0, 10, 100) == 10
        assert clamp_length(95, 10, 100) == 5
        assert clamp_length(100, 10, 100) == 0
        assert clamp_length(5, 0, 100) == 0
        with pytest.raises(ValueError):
            clamp_length(-1, 10, 100)

    def test_plan_lists_missing(self):
        cache = BlockCache(BS, len(DATA))
        cache.store(1, DATA[100:200])
        n, missing = plan(cache, 50, 200)
        assert n == 200
        assert [str(r) for r in missing] == ["0-99", "200-299"]

    def test_plan_past_end(self):
        cache = BlockCache(BS, len(DATA))
        assert plan(cache, 2000, 10) == (0, [])
