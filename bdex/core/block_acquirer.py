"""
Handles the acquisition of a single block, from existence check to verified file.
"""

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import aiohttp

from bdex.exceptions import BdexError, BlockIntegrityError
from bdex.media import FileIntegrityChecker, MirrorPolicy, PayloadExtractor
from bdex.models.manifest import BlockDescriptor
from bdex.models.outcome import BlockOutcome, BlockResult
from bdex.utils.formatting import block_prefix

if TYPE_CHECKING:
    from bdex.cli.progress_manager import ProgressManager
    from bdex.media.transport import HttpTransport

log = logging.getLogger(__name__)

# Everything a single fetch attempt may reasonably fail with. They all cost one
# attempt; the kind of failure never changes how many attempts are left.
RETRYABLE_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError, BdexError)


class BlockAcquirer:
    """
    Drives one block through check, fetch, extract and retry-with-next-mirror.

    Each call to ``acquire`` owns its attempt counter; nothing here is shared
    between blocks except the read-only transport and extractor.
    """

    def __init__(
        self,
        transport: "HttpTransport",
        extractor: PayloadExtractor,
        mirror_policy: MirrorPolicy,
        progress_manager: "ProgressManager | None" = None,
        verify_blocks: bool = False,
    ):
        self.transport = transport
        self.extractor = extractor
        self.mirror_policy = mirror_policy
        self.progress_manager = progress_manager
        self.verify_blocks = verify_blocks

    def _log(self, message: str, level: str = "info"):
        if self.progress_manager:
            self.progress_manager.log_message(message, level=level)
        else:
            getattr(log, level, log.info)(message)

    async def acquire(
        self,
        block: BlockDescriptor,
        destination: Path,
        attempt_budget: int,
        skip_hash: bool,
        index: int = 1,
        total: int = 1,
    ) -> BlockResult:
        """
        Brings ``destination`` to a state that holds the block, or gives up.

        Args:
            block: The block descriptor from the manifest.
            destination: Temp file for this block, named by its hash.
            attempt_budget: How many fetch attempts may be made in total.
            skip_hash: Trust any existing file without hashing it.
            index: 1-based manifest position, for progress lines.
            total: Number of blocks in the manifest, for progress lines.

        Returns:
            A BlockResult whose outcome is never an exception; exhausted blocks
            carry their last error instead.
        """
        prefix = block_prefix(index, total)
        attempt = 0
        last_error: BaseException | None = None

        while attempt < attempt_budget:
            try:
                outcome, written = await self._attempt(
                    block, destination, attempt, skip_hash, prefix
                )
            except RETRYABLE_ERRORS as e:
                last_error = e
                attempt += 1
                self._log(
                    f"[yellow]{prefix} Attempt {attempt}/{attempt_budget} for "
                    f"{block.content_hash} failed: {type(e).__name__}: {e}[/yellow]",
                    level="warning",
                )
                await asyncio.to_thread(_remove_partial, destination)
                continue
            except Exception:
                # A truncated file must never stay behind under the block's hash
                await asyncio.to_thread(_remove_partial, destination)
                raise

            fetched = 1 if outcome is BlockOutcome.VERIFIED else 0
            return BlockResult(
                block=block,
                index=index,
                outcome=outcome,
                attempts=attempt + fetched,
                bytes_written=written,
            )

        self._log(
            f"[red]{prefix} ✗ Failed {block.content_hash} after "
            f"{attempt} attempt(s).[/red]",
            level="error",
        )
        return BlockResult(
            block=block,
            index=index,
            outcome=BlockOutcome.FAILED_EXHAUSTED,
            attempts=attempt,
            error=last_error,
        )

    async def _attempt(
        self,
        block: BlockDescriptor,
        destination: Path,
        attempt: int,
        skip_hash: bool,
        prefix: str,
    ) -> tuple[BlockOutcome, int]:
        if await asyncio.to_thread(destination.exists):
            if skip_hash:
                self._log(f"{prefix} Skip {block.content_hash}...")
                return BlockOutcome.SKIPPED_EXISTING, 0
            if await FileIntegrityChecker.matches(destination, block.content_hash):
                self._log(f"{prefix} Match {block.content_hash}...")
                return BlockOutcome.SKIPPED_HASH_MATCH, 0
            log.debug(f"{prefix} Existing file for {block.content_hash} is stale.")

        url = self.mirror_policy.next_candidate_url(block.source_url, attempt)
        if attempt:
            self._log(
                f"{prefix} Downloading {block.content_hash} "
                f"(attempt {attempt + 1}) [dim]{url}[/dim]..."
            )
        else:
            self._log(f"{prefix} Downloading {block.content_hash}...")

        written = await self._fetch(url, destination)

        if self.verify_blocks and not await FileIntegrityChecker.matches(
            destination, block.content_hash
        ):
            raise BlockIntegrityError(
                f"Extracted block does not match its declared hash {block.content_hash}"
            )

        self._log(f"[green]{prefix} ✓ Done {block.content_hash}[/green]")
        return BlockOutcome.VERIFIED, written

    async def _fetch(self, url: str, destination: Path) -> int:
        async with self.transport.open(url) as stream:
            return await asyncio.to_thread(
                self._extract_to_file, stream, destination
            )

    def _extract_to_file(self, stream, destination: Path) -> int:
        with open(destination, "wb") as f:
            return self.extractor.extract(stream, f)


def _remove_partial(destination: Path) -> None:
    try:
        destination.unlink(missing_ok=True)
    except OSError as e:
        log.warning(f"Could not remove partial block file '{destination}': {e}")
