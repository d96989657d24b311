"""
HTTP transport for fetching PNG containers.

Responses are exposed as blocking file-like streams so the PNG decoder can run
in a worker thread while the bytes are still being pulled by the event loop.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiohttp

from bdex.exceptions import StreamStalled

log = logging.getLogger(__name__)

READ_CHUNK_SIZE = 65536

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


async def get_connection_pool(max_workers: int = 8) -> aiohttp.ClientSession:
    """
    Gets or creates a shared aiohttp ClientSession for downloads.

    This function ensures that only one connection pool is created for the
    lifetime of the application run.

    Args:
        max_workers: Maximum concurrent connections (should match config.max_workers).
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=max_workers * 2,  # Total connections
            limit_per_host=max_workers,  # Per CDN edge host
            ttl_dns_cache=600,  # 10 minutes
            keepalive_timeout=30,
            enable_cleanup_closed=True,
            force_close=False,
        )
        # No socket read timeout: an idle body is handled by ResponseStream, which
        # keeps waiting for as long as the connection stays open.
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=None)
        _connection_pool = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            headers={
                "Accept-Encoding": "gzip, deflate",
            },
        )
        log.debug(f"Created download pool with limit_per_host={max_workers}")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared downloader connection pool closed.")


class ResponseStream:
    """
    Blocking reader over an aiohttp response body.

    Must be read from a thread other than the one running the event loop.
    When nothing arrives for ``stall_timeout`` seconds the pending read is
    abandoned (no data is lost) and StreamStalled is raised. Connection
    errors from aiohttp, including connect timeouts, stay fatal.
    """

    def __init__(
        self,
        content: aiohttp.StreamReader,
        loop: asyncio.AbstractEventLoop,
        stall_timeout: float,
    ):
        self._content = content
        self._loop = loop
        self._stall_timeout = stall_timeout

    def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = READ_CHUNK_SIZE
        future = asyncio.run_coroutine_threadsafe(self._read(size), self._loop)
        return future.result()

    async def _read(self, size: int) -> bytes:
        try:
            return await asyncio.wait_for(
                self._content.read(size), timeout=self._stall_timeout
            )
        except aiohttp.ServerTimeoutError:
            raise
        except asyncio.TimeoutError as e:
            raise StreamStalled(
                f"No data received for {self._stall_timeout:.0f}s"
            ) from e


class HttpTransport:
    """Issues GET requests over the shared connection pool."""

    def __init__(self, max_workers: int = 8, stall_timeout: float = 10.0):
        self.max_workers = max_workers
        self.stall_timeout = stall_timeout

    @asynccontextmanager
    async def open(self, url: str) -> AsyncIterator[ResponseStream]:
        """
        Opens ``url`` and yields its body as a blocking stream.

        Raises:
            aiohttp.ClientResponseError: On a non-2xx status.
            aiohttp.ClientError: On connection problems.
        """
        session = await get_connection_pool(self.max_workers)
        async with session.get(url, allow_redirects=True) as response:
            response.raise_for_status()
            log.debug(
                f"GET {url} -> {response.status} "
                f"({response.headers.get('Content-Length', '?')} bytes)"
            )
            yield ResponseStream(
                response.content, asyncio.get_running_loop(), self.stall_timeout
            )

    async def close(self) -> None:
        await close_connection_pool()
