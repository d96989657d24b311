"""
Recovers an opaque payload hidden in the pixel data of a PNG image.

The image rows, taken as raw bytes, form one continuous byte stream. Its first
four bytes are the payload length (little-endian, unsigned), and the payload
follows immediately, crossing row boundaries as needed. Whatever comes after
the payload is padding and is never read.
"""

import io
import logging
import sys
import time
import zlib
from array import array
from collections.abc import Callable, Iterable, Iterator
from typing import BinaryIO, Protocol

import png

from bdex.exceptions import InsufficientDataError, PayloadDecodeError, StreamStalled

log = logging.getLogger(__name__)

LENGTH_PREFIX_SIZE = 4


class Readable(Protocol):
    def read(self, size: int = -1) -> bytes: ...


class _StallTolerantReader:
    """
    File-like adapter that hides transient stalls from the PNG decoder.

    pypng gives up on a short read, so every read here is filled completely
    unless the underlying stream reaches its end. When the stream reports a
    stall, we sleep and ask again; the decoder state is never disturbed.
    """

    def __init__(
        self, stream: Readable, backoff: float, sleep: Callable[[float], None]
    ):
        self._stream = stream
        self._backoff = backoff
        self._sleep = sleep
        self.stalls = 0

    def read(self, size: int = -1) -> bytes:
        buffer = bytearray()
        while size < 0 or len(buffer) < size:
            want = -1 if size < 0 else size - len(buffer)
            try:
                data = self._stream.read(want)
            except StreamStalled:
                self.stalls += 1
                log.debug(f"Stream stalled, retrying in {self._backoff:.0f}s...")
                self._sleep(self._backoff)
                continue
            if not data:
                break
            buffer += data
        return bytes(buffer)


class PayloadExtractor:
    """Decodes PNG images progressively and writes out the hidden payload."""

    def __init__(
        self,
        backoff: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.backoff = backoff
        self._sleep = sleep

    def extract(self, stream: Readable, sink: BinaryIO) -> int:
        """
        Streams the payload of a PNG image into a writable sink.

        Args:
            stream: A blocking, readable byte stream positioned at the PNG signature.
            sink: Where the payload bytes are written. Nothing past the declared
                length is ever written.

        Returns:
            The number of payload bytes written.

        Raises:
            InsufficientDataError: If the image ends before the declared length.
            PayloadDecodeError: If the PNG container is malformed or unsupported.
        """
        reader = png.Reader(
            file=_StallTolerantReader(stream, self.backoff, self._sleep)
        )
        try:
            _, _, rows, info = reader.read()
            return self._copy_payload(self._iter_row_bytes(rows, info), sink)
        except EOFError as e:
            raise InsufficientDataError("insufficient data: image ended early") from e
        except png.Error as e:
            raise PayloadDecodeError(f"Malformed PNG container: {e}") from e
        except zlib.error as e:
            raise PayloadDecodeError(f"Corrupt PNG image data: {e}") from e

    def extract_bytes(self, stream: Readable) -> bytes:
        """Extracts a payload small enough to keep in memory, like the manifest."""
        sink = io.BytesIO()
        self.extract(stream, sink)
        return sink.getvalue()

    @staticmethod
    def _iter_row_bytes(rows: Iterable, info: dict) -> Iterator[bytes]:
        """Turns pypng row values back into the raw bytes of each scanline."""
        bitdepth = info["bitdepth"]
        if bitdepth == 8:
            yield from rows
        elif bitdepth == 16:
            for row in rows:
                samples = array("H", row)
                if sys.byteorder == "little":
                    samples.byteswap()
                yield samples.tobytes()
        else:
            raise PayloadDecodeError(f"Unsupported PNG bit depth: {bitdepth}")

    @staticmethod
    def _copy_payload(row_bytes: Iterator[bytes], sink: BinaryIO) -> int:
        prefix = bytearray()
        remaining: int | None = None
        written = 0

        for raw in row_bytes:
            view = memoryview(raw)
            if remaining is None:
                # The length prefix may straddle rows
                needed = LENGTH_PREFIX_SIZE - len(prefix)
                prefix += view[:needed]
                view = view[needed:]
                if len(prefix) < LENGTH_PREFIX_SIZE:
                    continue
                remaining = int.from_bytes(prefix, "little")
                log.debug(f"Payload declares {remaining} bytes.")

            if remaining == 0:
                return written

            take = min(len(view), remaining)
            if take:
                sink.write(view[:take])
                written += take
                remaining -= take
            if remaining == 0:
                return written

        if remaining is None:
            raise InsufficientDataError(
                "insufficient data: image ended before the length prefix"
            )
        raise InsufficientDataError(
            f"insufficient data: image ended {remaining} bytes short of the payload"
        )
