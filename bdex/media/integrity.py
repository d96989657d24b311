"""
Provides methods for checking the integrity of block and output files.
"""

import hashlib
import logging
from pathlib import Path

import aiofiles

log = logging.getLogger(__name__)

HASH_CHUNK_SIZE = 1048576  # 1 MB


class FileIntegrityChecker:
    """A collection of static methods for content-addressed file validation."""

    @staticmethod
    async def sha1_file(filepath: Path) -> str:
        """
        Computes the SHA-1 hex digest of a file without loading it whole.

        Args:
            filepath: Path to the file.

        Returns:
            The lowercase hex digest.

        Raises:
            OSError: If the file cannot be read.
        """
        hasher = hashlib.sha1()  # noqa: S324
        async with aiofiles.open(filepath, "rb") as f:
            while chunk := await f.read(HASH_CHUNK_SIZE):
                hasher.update(chunk)
        return hasher.hexdigest()

    @classmethod
    async def matches(cls, filepath: Path, expected_sha1: str) -> bool:
        """
        Checks whether a file's content hashes to the expected digest.

        Read errors are not swallowed; an unreadable file is the caller's problem.
        """
        actual = await cls.sha1_file(filepath)
        if actual == expected_sha1.lower():
            return True
        log.debug(
            f"Hash mismatch for '{filepath.name}': expected {expected_sha1}, got {actual}"
        )
        return False
