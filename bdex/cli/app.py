"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from bdex import __version__
from bdex.core.download_manager import DownloadManager
from bdex.exceptions import BdexError, ConfigurationError
from bdex.media.transport import HttpTransport
from bdex.models.config import RunConfig
from bdex.storage.config_manager import ConfigManager

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_manifest_panel,
    print_summary_panel,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("bdex")

app = typer.Typer(
    name="bdex",
    help=(
        "Fetch a file that was split into blocks and hidden inside PNG images."
        " Use 'bdex <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "bdex"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _load_config(cli_options: dict) -> RunConfig:
    try:
        return ConfigManager(CONFIG_FILE).load_config(cli_options)
    except ConfigurationError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the effective default settings."
    ),
):
    """bdex: block downloader for PNG-hosted files"""
    if version:
        console.print(f"[bold]bdex[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    if show_config:
        try:
            file_settings = ConfigManager(CONFIG_FILE).read_file_settings()
        except ConfigurationError as e:
            console.print(f"[red]✗ {e}[/red]")
            raise typer.Exit(code=1) from e
        defaults = {
            key: RunConfig.model_fields[key].default for key in RunConfig.get_ini_keys()
        }
        defaults.update(file_settings)
        print_config(CONFIG_FILE, defaults)
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command(name="download")
def download_command(
    identifier: str = typer.Argument(
        ...,
        help="Manifest identifier, optionally prefixed with 'scheme://'.",
        metavar="<IDENTIFIER>",
    ),
    destination: Path = typer.Argument(  # noqa: B008
        Path("."),
        help="Directory that receives the block folder and the final file.",
        metavar="<DESTINATION>",
    ),
    skip_hash: bool = typer.Option(
        False,
        "--skip-hash",
        "-S",
        help="Trust existing block files without re-hashing them.",
    ),
    workers: int | None = typer.Option(
        None,
        "-w",
        "--workers",
        help="Number of blocks downloaded simultaneously (default 8).",
    ),
    retry_times: int | None = typer.Option(
        None,
        "-R",
        "--retry-times",
        help="Attempts per block, rotating through CDN mirrors (default 8).",
    ),
    keep_files: bool = typer.Option(
        False,
        "--keep-files",
        "-k",
        help="Keep the block folder after a successful merge.",
    ),
    verify_blocks: bool = typer.Option(
        False,
        "--verify-blocks",
        help="Hash every freshly downloaded block and retry on mismatch.",
    ),
    verify_output: bool = typer.Option(
        False,
        "--verify-output",
        help="Check the merged file against the manifest size and hash.",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug output."
    ),
):
    """Download and reassemble the file described by a manifest."""
    if verbose:
        logging.getLogger("bdex").setLevel("DEBUG")

    cli_options = {
        key: value
        for key, value in {
            "identifier": identifier,
            "destination": destination,
            "max_workers": workers,
            "retry_times": retry_times,
            # Flags only override the config file when they are given
            "skip_hash": skip_hash or None,
            "keep_files": keep_files or None,
            "verify_blocks": verify_blocks or None,
            "verify_output": verify_output or None,
        }.items()
        if value is not None
    }
    config = _load_config(cli_options)

    progress_manager = ProgressManager(console=console, show_progress=not verbose)
    transport = HttpTransport(config.max_workers, config.stall_timeout)
    manager = DownloadManager(config, transport, progress_manager)

    async def _download_async() -> Path:
        async with progress_manager:
            try:
                return await manager.run()
            finally:
                await transport.close()

    try:
        output_path = asyncio.run(_download_async())
    except BdexError as e:
        if manager.stats.total_attempts or manager.stats.blocks_failed:
            print_summary_panel(manager.stats)
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    print_summary_panel(manager.stats, output_path)


@app.command()
def inspect(
    identifier: str = typer.Argument(
        ...,
        help="Manifest identifier, optionally prefixed with 'scheme://'.",
        metavar="<IDENTIFIER>",
    ),
):
    """Show what a manifest describes without downloading any block."""
    config = _load_config({"identifier": identifier})
    transport = HttpTransport(config.max_workers, config.stall_timeout)
    manager = DownloadManager(config, transport)

    async def _inspect_async():
        try:
            return await manager.fetch_manifest()
        finally:
            await transport.close()

    try:
        manifest = asyncio.run(_inspect_async())
    except BdexError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    print_manifest_panel(manifest)
