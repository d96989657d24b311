"""
Dataclass for tracking per-run block statistics.
"""

import time
from dataclasses import dataclass, field

from bdex.models.outcome import BlockOutcome, BlockResult


@dataclass
class DownloadStats:
    """Tracks statistics for a single run, fed with block results."""

    blocks_downloaded: int = 0
    blocks_skipped_exists: int = 0
    blocks_skipped_match: int = 0
    blocks_failed: int = 0
    total_attempts: int = 0
    total_size_downloaded: int = 0
    merged_size: int = 0
    failed_hashes: list[str] = field(default_factory=list)
    start_time: float = field(default_factory=time.monotonic, repr=False)

    def record(self, result: BlockResult) -> None:
        """Adds one block result to the counters."""
        self.total_attempts += result.attempts
        if result.outcome is BlockOutcome.VERIFIED:
            self.blocks_downloaded += 1
            self.total_size_downloaded += result.bytes_written
        elif result.outcome is BlockOutcome.SKIPPED_EXISTING:
            self.blocks_skipped_exists += 1
        elif result.outcome is BlockOutcome.SKIPPED_HASH_MATCH:
            self.blocks_skipped_match += 1
        else:
            self.blocks_failed += 1
            self.failed_hashes.append(result.block.content_hash)

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.start_time
