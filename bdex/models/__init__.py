"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures used throughout the application, such as the manifest,
configuration, block outcomes and run statistics.
"""

from .config import RunConfig
from .manifest import BlockDescriptor, Manifest
from .outcome import BlockOutcome, BlockResult
from .stats import DownloadStats

__all__ = [
    "BlockDescriptor",
    "BlockOutcome",
    "BlockResult",
    "DownloadStats",
    "Manifest",
    "RunConfig",
]
