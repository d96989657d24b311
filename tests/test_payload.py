"""Tests for recovering payloads from PNG containers."""

from __future__ import annotations

import io
import os

import pytest

from bdex.exceptions import InsufficientDataError, PayloadDecodeError, StreamStalled
from bdex.media.payload import PayloadExtractor
from tests.conftest import make_png


class _StallingStream:
    """Raises StreamStalled on selected read calls, then serves data normally."""

    def __init__(self, data: bytes, stall_on: set[int]):
        self._inner = io.BytesIO(data)
        self._stall_on = stall_on
        self.read_calls = 0

    def read(self, size: int = -1) -> bytes:
        self.read_calls += 1
        if self.read_calls in self._stall_on:
            raise StreamStalled("not yet")
        # Hand out at most a few bytes at a time, like a slow socket
        return self._inner.read(min(size, 7) if size > 0 else 7)


def _extract(data: bytes, **kwargs) -> bytes:
    return PayloadExtractor(**kwargs).extract_bytes(io.BytesIO(data))


@pytest.mark.parametrize(
    "payload",
    [
        b"",
        b"x",
        b"hello, hidden world",
        bytes(range(256)) * 9,
        os.urandom(5000),
    ],
)
def test_extract_recovers_payload(payload):
    assert _extract(make_png(payload)) == payload


@pytest.mark.parametrize(
    "planes,bitdepth",
    [(1, 8), (2, 8), (4, 8), (3, 16), (1, 16)],
)
def test_extract_handles_colour_types_and_bit_depths(planes, bitdepth):
    payload = os.urandom(777)
    data = make_png(payload, width=9, planes=planes, bitdepth=bitdepth)
    assert _extract(data) == payload


def test_length_prefix_may_span_several_rows():
    # One greyscale pixel per row: the prefix alone covers four rows
    payload = b"abcdefghij"
    assert _extract(make_png(payload, width=1, planes=1)) == payload


def test_zero_length_payload_stops_after_prefix():
    sink = io.BytesIO()
    written = PayloadExtractor().extract(io.BytesIO(make_png(b"", extra_rows=5)), sink)
    assert written == 0
    assert sink.getvalue() == b""


def test_trailing_image_data_is_ignored():
    payload = b"payload"
    data = make_png(payload + b"NOT-PART-OF-IT", declared_length=len(payload))
    assert _extract(data) == payload


def test_declared_length_beyond_image_raises_insufficient_data():
    data = make_png(b"short", declared_length=10_000)
    with pytest.raises(InsufficientDataError, match="insufficient data"):
        _extract(data)


def test_truncated_stream_is_a_decode_error():
    data = make_png(os.urandom(4000))
    with pytest.raises(PayloadDecodeError):
        _extract(data[: len(data) // 2])


def test_not_a_png_is_a_decode_error():
    with pytest.raises(PayloadDecodeError):
        _extract(b"definitely not an image" * 4)


def test_transient_stalls_are_retried_with_backoff():
    payload = os.urandom(300)
    sleeps: list[float] = []
    stream = _StallingStream(make_png(payload), stall_on={1, 3, 4, 10})
    extractor = PayloadExtractor(sleep=sleeps.append)

    assert extractor.extract_bytes(stream) == payload
    assert sleeps == [1.0, 1.0, 1.0, 1.0]


def test_backoff_interval_is_configurable():
    sleeps: list[float] = []
    stream = _StallingStream(make_png(b"abc"), stall_on={2})
    PayloadExtractor(backoff=0.25, sleep=sleeps.append).extract_bytes(stream)
    assert sleeps == [0.25]


def test_extract_writes_into_sink_and_returns_length():
    payload = os.urandom(1234)
    sink = io.BytesIO()
    written = PayloadExtractor().extract(io.BytesIO(make_png(payload)), sink)
    assert written == len(payload)
    assert sink.getvalue() == payload
