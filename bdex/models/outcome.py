"""
Terminal states of a single block and the result record passed to the orchestrator.
"""

from dataclasses import dataclass
from enum import Enum

from bdex.models.manifest import BlockDescriptor


class BlockOutcome(Enum):
    """Terminal states of a block acquisition."""

    VERIFIED = "verified"  # Fetched and extracted in this run
    SKIPPED_EXISTING = "skipped_existing"  # Existing file trusted (skip-hash mode)
    SKIPPED_HASH_MATCH = "skipped_hash_match"  # Existing file matched its hash
    FAILED_EXHAUSTED = "failed_exhausted"  # Retry budget used up

    @property
    def is_failure(self) -> bool:
        return self is BlockOutcome.FAILED_EXHAUSTED


@dataclass(frozen=True)
class BlockResult:
    """What happened to one block during a run."""

    block: BlockDescriptor
    index: int
    outcome: BlockOutcome
    attempts: int = 0
    bytes_written: int = 0
    error: BaseException | None = None
