"""
Manages a Rich progress display for concurrent block downloads.
Shows an overall bar across all blocks while per-block lines scroll above it.
"""

import asyncio
import logging

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from bdex.models.outcome import BlockOutcome

log = logging.getLogger("bdex")


class ProgressManager:
    """Tracks block completion and renders a single overall progress bar."""

    def __init__(self, console: Console, show_progress: bool = True):
        self.console = console
        self.show_progress = show_progress

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            "•",
            TimeElapsedColumn(),
            console=console,
            transient=True,
        )
        self._overall_task_id: TaskID | None = None
        self._started = False

        self._stats = {
            "total_blocks": 0,
            "completed": 0,
            "skipped": 0,
            "failed": 0,
        }

    def log_message(self, message: str, level: str = "info"):
        """Routes a line through the application logger, above the live bar."""
        getattr(log, level, log.info)(message)

    def initialize_session(self, total_blocks: int):
        self._stats["total_blocks"] = total_blocks
        if self.show_progress:
            self._overall_task_id = self.progress.add_task(
                "Blocks", total=total_blocks, start=True
            )

    def advance(self, outcome: BlockOutcome):
        """Counts one block as finished, whatever its outcome."""
        if outcome is BlockOutcome.VERIFIED:
            self._stats["completed"] += 1
        elif outcome.is_failure:
            self._stats["failed"] += 1
        else:
            self._stats["skipped"] += 1

        if self._overall_task_id is not None:
            self.progress.update(
                self._overall_task_id,
                completed=(
                    self._stats["completed"]
                    + self._stats["skipped"]
                    + self._stats["failed"]
                ),
            )

    async def __aenter__(self):
        if self.show_progress:
            self.progress.start()
            self._started = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._started:
            await asyncio.sleep(0.1)
            self.progress.stop()
            self._started = False
