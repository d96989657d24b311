"""
The main orchestrator: fetches the manifest, runs every block over a bounded
pool of workers, and merges the result once all blocks are in place.
"""

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import aiohttp

from bdex.exceptions import (
    FileIntegrityError,
    IncompleteDownloadError,
    ManifestError,
    OutputExistsError,
    PayloadDecodeError,
)
from bdex.media import MirrorPolicy, PayloadExtractor
from bdex.models.config import RunConfig
from bdex.models.manifest import BlockDescriptor, Manifest
from bdex.models.outcome import BlockOutcome, BlockResult
from bdex.models.stats import DownloadStats
from bdex.utils.formatting import format_size
from bdex.utils.path import block_dir_for, block_path, create_dir, output_path_for

from .block_acquirer import BlockAcquirer
from .merger import merge_blocks, remove_block_dir, verify_output

if TYPE_CHECKING:
    from bdex.cli.progress_manager import ProgressManager
    from bdex.media.transport import HttpTransport

log = logging.getLogger(__name__)


class DownloadManager:
    """Orchestrates the entire download process for one manifest."""

    def __init__(
        self,
        config: RunConfig,
        transport: "HttpTransport",
        progress_manager: "ProgressManager | None" = None,
        extractor: PayloadExtractor | None = None,
    ):
        self.config = config
        self.transport = transport
        self.progress_manager = progress_manager
        self.extractor = extractor or PayloadExtractor()
        self.stats = DownloadStats()
        self.acquirer = BlockAcquirer(
            transport,
            self.extractor,
            MirrorPolicy(config.mirror_hosts),
            progress_manager,
            verify_blocks=config.verify_blocks,
        )
        self.semaphore = asyncio.Semaphore(config.max_workers)
        self._failed = False
        self._failed_lock = asyncio.Lock()  # Guards the pool-wide failure flag

    @property
    def failed(self) -> bool:
        return self._failed

    async def fetch_manifest(self) -> Manifest:
        """
        Downloads the manifest image and decodes the manifest hidden in it.

        Raises:
            ManifestError: On any network, decoding or parsing failure.
        """
        url = self.config.manifest_url
        log.info(f"Fetching manifest [dim]{url}[/dim]")
        try:
            async with self.transport.open(url) as stream:
                payload = await asyncio.to_thread(self.extractor.extract_bytes, stream)
        except PayloadDecodeError as e:
            raise ManifestError(f"Could not decode manifest image: {e}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ManifestError(f"Could not download manifest: {e}") from e
        return Manifest.from_payload(payload)

    async def run(self) -> Path:
        """
        Runs a full invocation and returns the path of the merged file.

        Raises:
            ManifestError: If the manifest cannot be obtained.
            OutputExistsError: If the output file is already there.
            IncompleteDownloadError: If any block exhausted its retry budget.
        """
        manifest = await self.fetch_manifest()
        log.info(
            f"[bold cyan]▶ File:[/] {manifest.filename} "
            f"({format_size(manifest.total_size)}, {manifest.block_count} blocks)"
        )
        log.debug(f"Manifest hash: {manifest.content_hash}")

        block_dir = block_dir_for(self.config.destination, self.config.identifier)
        output_path = output_path_for(block_dir, manifest.filename)
        if await asyncio.to_thread(output_path.exists):
            raise OutputExistsError(
                f"'{output_path}' already exists. Remove it or choose another "
                "destination."
            )
        await asyncio.to_thread(create_dir, block_dir)

        if self.progress_manager:
            self.progress_manager.initialize_session(manifest.block_count)

        results = await self.acquire_all(manifest, block_dir)

        if self.failed:
            for result in results:
                if result.outcome.is_failure:
                    log.error(
                        f"[red]  ✗ Block {result.index} ({result.block.content_hash}) "
                        f"unresolved: {result.error}[/red]"
                    )
            raise IncompleteDownloadError(
                list(
                    dict.fromkeys(
                        r.block.content_hash for r in results if r.outcome.is_failure
                    )
                )
            )

        keep_blocks = self.config.keep_files or self.config.verify_output
        self.stats.merged_size = await merge_blocks(
            manifest, block_dir, output_path, keep_files=keep_blocks
        )

        if self.config.verify_output:
            try:
                await verify_output(manifest, output_path)
            except FileIntegrityError:
                await asyncio.to_thread(output_path.unlink, True)
                raise
            if not self.config.keep_files:
                await remove_block_dir(block_dir)

        return output_path

    async def acquire_all(
        self, manifest: Manifest, block_dir: Path
    ) -> list[BlockResult]:
        """
        Runs every block to a terminal state and returns results in manifest order.

        There is no early exit: a failed block never stops its siblings, so one
        run makes as much progress as possible and a rerun only repairs what
        actually failed. Blocks listed more than once are fetched once.
        """
        total = manifest.block_count
        first_seen: dict[str, int] = {}
        tasks = []
        for index, block in enumerate(manifest.blocks, 1):
            if block.content_hash in first_seen:
                continue
            first_seen[block.content_hash] = len(tasks)
            tasks.append(self._acquire_block(block, index, total, block_dir))

        unique_results = await asyncio.gather(*tasks)

        results = []
        for index, block in enumerate(manifest.blocks, 1):
            result = unique_results[first_seen[block.content_hash]]
            if result.index != index:
                result = BlockResult(
                    block=block,
                    index=index,
                    outcome=result.outcome,
                    error=result.error,
                )
            results.append(result)
        return results

    async def _acquire_block(
        self, block: BlockDescriptor, index: int, total: int, block_dir: Path
    ) -> BlockResult:
        async with self.semaphore:
            try:
                result = await self.acquirer.acquire(
                    block,
                    block_path(block_dir, block.content_hash),
                    self.config.retry_times,
                    self.config.skip_hash,
                    index=index,
                    total=total,
                )
            except Exception as e:
                log.error(
                    f"[red]  ✗ An unexpected error occurred for block {index} "
                    f"({block.content_hash}): {e}[/red]",
                    exc_info=log.getEffectiveLevel() == logging.DEBUG,
                )
                result = BlockResult(
                    block=block,
                    index=index,
                    outcome=BlockOutcome.FAILED_EXHAUSTED,
                    error=e,
                )

        self.stats.record(result)
        if self.progress_manager:
            self.progress_manager.advance(result.outcome)
        if result.outcome.is_failure:
            async with self._failed_lock:
                self._failed = True
        return result
