"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from bdex.models.manifest import Manifest
from bdex.models.stats import DownloadStats
from bdex.utils.formatting import format_duration, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "IncompleteDownloadError": [
            "• Run the same command again. Finished blocks are kept and skipped.",
            "• Raise `--retry-times` to try more mirrors per block.",
            "• Lower `--workers` if the CDN is throttling you.",
        ],
        "ManifestError": [
            "• Check that the identifier was copied completely.",
            "• The manifest image may still be processing on the CDN; retry later.",
        ],
        "OutputExistsError": [
            "• The file was already reassembled by an earlier run.",
            "• Move or delete it, or pick another destination directory.",
        ],
        "FileIntegrityError": [
            "• The merged file does not match the manifest.",
            "• Re-run with `--verify-blocks` to re-check every block.",
        ],
        "ConfigurationError": [
            "• Check the values in your config file with `bdex --show-config`.",
        ],
        "ClientResponseError": [
            "• A network connection issue occurred.",
            "• The CDN might be temporarily unavailable.",
            "• Please try again in a few minutes.",
        ],
        "TimeoutError": [
            "• A download timed out, which may indicate network throttling.",
            "• Try reducing the number of `--workers`.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -v for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the effective configuration defaults."""
    console = Console()
    content = ""
    for key, value in sorted(config_data.items()):
        if isinstance(value, (list, tuple)):
            value = ", ".join(map(str, value))
        content += f"{key} = {value}\n"

    source = str(config_path) if config_path.is_file() else "built-in defaults"
    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{source}[/dim])",
            border_style="cyan",
        )
    )


def print_manifest_panel(manifest: Manifest):
    """Displays what a manifest describes."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column()

    table.add_row("File:", manifest.filename)
    table.add_row("Size:", f"{format_size(manifest.total_size)} ({manifest.total_size} B)")
    table.add_row("Block count:", str(manifest.block_count))
    table.add_row("Hash:", f"[dim]{manifest.content_hash}[/dim]")

    console.print(
        Panel(table, title="[bold]📦 Manifest[/bold]", border_style="cyan")
    )


def print_summary_panel(stats: DownloadStats, output_path: Path | None = None):
    """Displays the final summary of a run."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "✓ Downloaded:", f"[bold green]{stats.blocks_downloaded}[/bold green]"
    )

    skip_sections = []
    if stats.blocks_skipped_match > 0:
        skip_sections.append(f"[yellow]{stats.blocks_skipped_match} (hash match)[/yellow]")
    if stats.blocks_skipped_exists > 0:
        skip_sections.append(f"[yellow]{stats.blocks_skipped_exists} (exists)[/yellow]")
    if skip_sections:
        stats_table.add_row("○ Skipped:", " + ".join(skip_sections))

    if stats.blocks_failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.blocks_failed}[/bold red]")
        for content_hash in stats.failed_hashes[:10]:
            stats_table.add_row("", f"[dim red]{content_hash}[/dim red]")
        if len(stats.failed_hashes) > 10:
            stats_table.add_row("", f"[dim]... {len(stats.failed_hashes) - 10} more[/dim]")

    stats_table.add_row("", "")  # Spacer

    stats_table.add_row("Attempts:", f"[cyan]{stats.total_attempts}[/cyan]")
    stats_table.add_row(
        "Downloaded Size:", f"[cyan]{format_size(stats.total_size_downloaded)}[/cyan]"
    )
    if stats.merged_size:
        stats_table.add_row("Output Size:", f"[cyan]{format_size(stats.merged_size)}[/cyan]")
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(stats.elapsed)}[/blue]")
    if output_path is not None:
        stats_table.add_row("Output:", f"[green]{output_path}[/green]")

    success = stats.blocks_failed == 0 and output_path is not None
    console.print(
        Panel(
            stats_table,
            title=(
                "[bold green]✓ Download Complete[/bold green]"
                if success
                else "[bold red]✗ Download Incomplete[/bold red]"
            ),
            border_style="green" if success else "red",
            expand=False,
        )
    )
