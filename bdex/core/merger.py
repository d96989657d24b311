"""
Reassembles the original file from its block files, in manifest order.
"""

import asyncio
import logging
import shutil
from pathlib import Path

import aiofiles

from bdex.exceptions import FileIntegrityError, MissingBlockError
from bdex.media import FileIntegrityChecker
from bdex.models.manifest import Manifest
from bdex.utils.formatting import block_prefix, format_size
from bdex.utils.path import block_path

log = logging.getLogger(__name__)

MERGE_CHUNK_SIZE = 1048576  # 1 MB


async def merge_blocks(
    manifest: Manifest,
    block_dir: Path,
    output_path: Path,
    keep_files: bool = False,
) -> int:
    """
    Concatenates every block file, byte for byte, into ``output_path``.

    The order comes from the manifest only; directory listing order is never
    consulted. Every block file must be present before anything is written.

    Args:
        manifest: The decoded manifest.
        block_dir: Directory with one file per block, named by hash.
        output_path: Where the merged file is written.
        keep_files: Leave the block directory in place after merging.

    Returns:
        The number of bytes written.

    Raises:
        MissingBlockError: If any expected block file is absent.
    """
    paths = [block_path(block_dir, block.content_hash) for block in manifest.blocks]
    missing = await asyncio.to_thread(_missing_blocks, paths)
    if missing:
        raise MissingBlockError(
            f"{len(missing)} block file(s) missing from '{block_dir}': "
            f"{', '.join(missing[:5])}{' ...' if len(missing) > 5 else ''}"
        )

    total = len(paths)
    written = 0
    try:
        async with aiofiles.open(output_path, "wb") as out:
            for index, path in enumerate(paths, 1):
                log.info(f"{block_prefix(index, total)} Merging {path.name}...")
                async with aiofiles.open(path, "rb") as f:
                    while chunk := await f.read(MERGE_CHUNK_SIZE):
                        await out.write(chunk)
                        written += len(chunk)
    except OSError:
        output_path.unlink(missing_ok=True)
        raise

    log.info(f"[green]✓ Wrote {output_path} ({format_size(written)})[/green]")

    if not keep_files:
        await remove_block_dir(block_dir)
    return written


def _missing_blocks(paths: list[Path]) -> list[str]:
    return [path.name for path in paths if not path.is_file()]


async def remove_block_dir(block_dir: Path) -> None:
    """Deletes the temporary block directory and everything in it."""
    await asyncio.to_thread(shutil.rmtree, block_dir)
    log.debug(f"Removed block directory '{block_dir}'.")


async def verify_output(manifest: Manifest, output_path: Path) -> None:
    """
    Checks the merged file against the size and hash declared in the manifest.

    Raises:
        FileIntegrityError: On any mismatch.
    """
    size = (await asyncio.to_thread(output_path.stat)).st_size
    if size != manifest.total_size:
        raise FileIntegrityError(
            f"'{output_path.name}' is {size} bytes, manifest declares "
            f"{manifest.total_size}."
        )
    if not await FileIntegrityChecker.matches(output_path, manifest.content_hash):
        raise FileIntegrityError(
            f"'{output_path.name}' does not match the manifest hash "
            f"{manifest.content_hash}."
        )
    log.info("[green]✓ Output matches the manifest size and hash.[/green]")
