"""Shared fixtures: in-memory PNG containers and a fake HTTP transport."""

from __future__ import annotations

import asyncio
import hashlib
import io
import json
from contextlib import asynccontextmanager

import aiohttp
import png
import pytest

from bdex.media import PayloadExtractor


def sha1_hex(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def make_png(
    payload: bytes,
    width: int = 16,
    planes: int = 3,
    bitdepth: int = 8,
    declared_length: int | None = None,
    extra_rows: int = 0,
) -> bytes:
    """
    Hides ``payload`` in a PNG the way the uploader does: a 4-byte little-endian
    length, the payload, then zero padding up to a whole number of rows.
    """
    length = len(payload) if declared_length is None else declared_length
    stream = length.to_bytes(4, "little") + payload

    sample_bytes = bitdepth // 8
    row_len = width * planes * sample_bytes
    height = max(1, -(-len(stream) // row_len)) + extra_rows
    stream = stream.ljust(height * row_len, b"\x00")

    rows = []
    for y in range(height):
        raw = stream[y * row_len : (y + 1) * row_len]
        if bitdepth == 16:
            rows.append(
                [int.from_bytes(raw[i : i + 2], "big") for i in range(0, len(raw), 2)]
            )
        else:
            rows.append(list(raw))

    writer = png.Writer(
        width,
        height,
        greyscale=planes in (1, 2),
        alpha=planes in (2, 4),
        bitdepth=bitdepth,
    )
    out = io.BytesIO()
    writer.write(out, rows)
    return out.getvalue()


def make_manifest_png(
    filename: str, blocks: list[tuple[str, bytes]], whole: bytes | None = None
) -> bytes:
    """Builds a manifest image for the given (url, content) blocks."""
    whole = b"".join(content for _, content in blocks) if whole is None else whole
    document = {
        "time": 1700000000,
        "filename": filename,
        "size": len(whole),
        "sha1": sha1_hex(whole),
        "block": [
            {"url": url, "size": len(content), "sha1": sha1_hex(content)}
            for url, content in blocks
        ],
    }
    return make_png(json.dumps(document).encode("utf-8"))


class FakeTransport:
    """
    Stands in for HttpTransport. Each URL maps to PNG bytes, an exception
    instance, or a list of those consumed one per request.
    """

    def __init__(self, responses: dict | None = None, delay: float = 0.0):
        self.responses = dict(responses or {})
        self.delay = delay
        self.calls: list[str] = []
        self.active = 0
        self.max_active = 0
        self.closed = False

    @asynccontextmanager
    async def open(self, url: str):
        self.calls.append(url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            response = self.responses.get(url)
            if isinstance(response, list):
                response = response.pop(0) if response else None
            if response is None:
                raise aiohttp.ClientConnectionError(f"no route to {url}")
            if isinstance(response, BaseException):
                raise response
            yield io.BytesIO(response)
        finally:
            self.active -= 1

    async def close(self) -> None:
        self.closed = True


class BrokenExtractor(PayloadExtractor):
    """Writes part of a block to disk, then fails with an unmapped error."""

    def extract(self, stream, sink):
        if isinstance(sink, io.BytesIO):
            return super().extract(stream, sink)
        sink.write(b"partial")
        raise RuntimeError("decoder bug")


@pytest.fixture
def fake_transport():
    return FakeTransport()
