"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import signal
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from mingw_dl import __version__
from mingw_dl.api.client import ReleasesClient
from mingw_dl.core.events import OutcomeStatus
from mingw_dl.core.pipeline import PipelineOrchestrator
from mingw_dl.exceptions import MingwDlError
from mingw_dl.models.attributes import (
    Arch,
    CRuntime,
    ExceptionModel,
    RuntimeVersion,
    ThreadModel,
)
from mingw_dl.models.config import AppConfig
from mingw_dl.models.release import Asset, Release
from mingw_dl.models.state import AppState
from mingw_dl.storage.config_manager import ConfigManager
from mingw_dl.transfer.downloader import TransferController
from mingw_dl.utils.formatting import format_size, release_label
from mingw_dl.utils.path import create_dir

from .formatters import (
    format_error_with_suggestions,
    print_assets_table,
    print_config,
    print_outcome,
    print_releases_table,
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
log = logging.getLogger("mingw_dl")

app = typer.Typer(
    name="mingw-dl",
    help=(
        "Browse, download and extract MinGW-w64 toolchain builds from GitHub"
        " releases. Use 'mingw-dl <command> --help' for more info."
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
    return base_dir.expanduser() / "mingw-dl"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


# --- Shared options ---

ArchOption = typer.Option(
    None, "--arch", case_sensitive=False, help="Only show this architecture."
)
ThreadsOption = typer.Option(
    None, "--threads", case_sensitive=False, help="Only show this thread model."
)
ExceptionsOption = typer.Option(
    None, "--exceptions", case_sensitive=False, help="Only show this exception model."
)
CrtOption = typer.Option(
    None, "--crt", case_sensitive=False, help="Only show this C runtime."
)
RuntimeOption = typer.Option(
    None, "--runtime", case_sensitive=False, help="Only show this runtime version."
)
ReleaseOption = typer.Option(
    None, "--release", "-r", help="Release tag to use (default: the newest)."
)


def _filter_options(**filters) -> dict:
    return {key: value for key, value in filters.items() if value is not None}


def _load_config(cli_options: dict | None = None) -> AppConfig:
    try:
        return ConfigManager(CONFIG_FILE).load_config(cli_options)
    except MingwDlError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e


def _build_orchestrator(config: AppConfig) -> PipelineOrchestrator:
    client = ReleasesClient(
        config.releases_url, config.user_agent, config.timeout_seconds
    )
    controller = TransferController(
        config.user_agent, config.chunk_size, config.timeout_seconds
    )
    return PipelineOrchestrator(
        client, controller, state=AppState(filters=config.filter_selection())
    )


def _select_release(orchestrator: PipelineOrchestrator, tag: str | None) -> Release:
    release = orchestrator.state.find_release(tag)
    if release is None:
        if tag:
            console.print(f"[red]✗ Release '{tag}' not found.[/red]")
        else:
            console.print("[red]✗ No releases available.[/red]")
        raise typer.Exit(code=1)
    return release


def _resolve_asset(
    orchestrator: PipelineOrchestrator, release: Release, selector: str
) -> Asset:
    """Resolves a row number of the filtered table or an exact asset name."""
    if selector.isdigit():
        assets = orchestrator.filtered_assets(release)
        row = int(selector)
        if 1 <= row <= len(assets):
            return assets[row - 1]
        console.print(
            f"[red]✗ Row {row} is out of range ({len(assets)} matching assets).[/red]"
        )
        raise typer.Exit(code=1)

    asset = release.find_asset(selector)
    if asset is None:
        console.print(f"[red]✗ No asset named '{selector}' in {release.tag}.[/red]")
        raise typer.Exit(code=1)
    return asset


def _install_cancel_handler(orchestrator: PipelineOrchestrator) -> bool:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.cancel)
    except (NotImplementedError, RuntimeError):
        # Not supported on Windows; Ctrl+C then surfaces as KeyboardInterrupt.
        return False
    return True


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """MinGW-w64 builds downloader"""
    if version:
        console.print(f"[bold]mingw-dl[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("mingw_dl").setLevel(log_level)

    if show_config:
        config_manager = ConfigManager(CONFIG_FILE)
        try:
            config_data = config_manager._get_config_for_display()
        except MingwDlError as e:
            console.print(format_error_with_suggestions(e))
            raise typer.Exit(code=1) from e
        if not CONFIG_FILE.is_file():
            console.print(
                "[dim]No config file yet, showing built-in defaults. "
                "Run [cyan]mingw-dl init[/cyan] to create one.[/dim]"
            )
        print_config(CONFIG_FILE, config_data)
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    output_dir: str | None = typer.Option(
        None, "--output-dir", "-o", help="Default download directory."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing file without asking."
    ),
):
    """Create a configuration file with default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {}
    if output_dir:
        settings["output_dir"] = output_dir
    try:
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except MingwDlError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Try: [cyan]mingw-dl assets --arch x86_64[/cyan]")


@app.command(name="releases")
def releases_command(
    limit: int | None = typer.Option(
        None, "--limit", "-n", min=1, help="Show at most this many releases."
    ),
):
    """List the available releases, newest first."""
    config = _load_config()

    async def _releases_async():
        orchestrator = _build_orchestrator(config)
        try:
            with console.status("[cyan]Fetching releases...[/cyan]"):
                await orchestrator.refresh()
        finally:
            await orchestrator.close()
        print_releases_table(orchestrator.state.releases, limit)

    asyncio.run(_releases_async())


@app.command(name="assets")
def assets_command(
    release_tag: str | None = ReleaseOption,
    arch: Arch | None = ArchOption,
    threads: ThreadModel | None = ThreadsOption,
    exceptions: ExceptionModel | None = ExceptionsOption,
    crt: CRuntime | None = CrtOption,
    runtime: RuntimeVersion | None = RuntimeOption,
):
    """Show the assets of a release that match the filters."""
    config = _load_config(
        _filter_options(
            arch=arch, threads=threads, exceptions=exceptions, crt=crt, runtime=runtime
        )
    )

    async def _assets_async():
        orchestrator = _build_orchestrator(config)
        try:
            with console.status("[cyan]Fetching releases...[/cyan]"):
                await orchestrator.refresh()
        finally:
            await orchestrator.close()
        release = _select_release(orchestrator, release_tag)
        print_assets_table(
            release,
            orchestrator.filtered_assets(release),
            orchestrator.filter_engine.selection,
        )

    asyncio.run(_assets_async())


@app.command(name="download")
def download_command(
    selector: str = typer.Argument(
        ..., help="Row number from the 'assets' table or an exact asset name."
    ),
    release_tag: str | None = ReleaseOption,
    output_dir: str | None = typer.Option(
        None, "--output", "-o", help="Directory to save the archive in."
    ),
    extract: bool | None = typer.Option(
        None,
        "--extract/--no-extract",
        help="Extract the archive next to it after downloading.",
    ),
    arch: Arch | None = ArchOption,
    threads: ThreadModel | None = ThreadsOption,
    exceptions: ExceptionModel | None = ExceptionsOption,
    crt: CRuntime | None = CrtOption,
    runtime: RuntimeVersion | None = RuntimeOption,
):
    """Download a toolchain archive and optionally extract it."""
    cli_options = _filter_options(
        output_dir=output_dir,
        extract=extract,
        arch=arch,
        threads=threads,
        exceptions=exceptions,
        crt=crt,
        runtime=runtime,
    )
    config = _load_config(cli_options)

    async def _download_async():
        orchestrator = _build_orchestrator(config)
        handler_installed = False
        progress_manager = ProgressManager(console)
        try:
            with console.status("[cyan]Fetching releases...[/cyan]"):
                await orchestrator.refresh()
            release = _select_release(orchestrator, release_tag)
            asset = _resolve_asset(orchestrator, release, selector)

            destination = Path(config.output_dir).expanduser()
            create_dir(destination)
            console.print(
                f"[bold cyan]⬇ {asset.name}[/bold cyan] "
                f"[dim]({format_size(asset.size)}, "
                f"{release_label(release.tag, release.published_at)})[/dim]"
            )

            # Drop the refresh events; only the pipeline is rendered.
            orchestrator.channel.drain()

            handler_installed = _install_cancel_handler(orchestrator)
            async with progress_manager:
                consumer = asyncio.create_task(
                    progress_manager.consume(orchestrator.channel)
                )
                try:
                    orchestrator.start(asset, destination, config.extract)
                    await orchestrator.join()
                finally:
                    orchestrator.channel.close()
                    await consumer
        finally:
            if handler_installed:
                asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
            await orchestrator.close()

        print_outcome(console, progress_manager.outcome)
        if progress_manager.outcome is None or (
            progress_manager.outcome.status is OutcomeStatus.FAILED
        ):
            raise typer.Exit(code=1)

    asyncio.run(_download_async())


@app.command(name="extract")
def extract_command(
    archive: Path = typer.Argument(  # noqa: B008
        ..., exists=True, dir_okay=False, help="A local .7z or .zip archive."
    ),
    output_dir: Path | None = typer.Option(  # noqa: B008
        None,
        "--output",
        "-o",
        help="Target directory (default: beside the archive, named after it).",
    ),
):
    """Extract a previously downloaded archive."""
    config = _load_config()

    async def _extract_async():
        orchestrator = _build_orchestrator(config)
        progress_manager = ProgressManager(console)
        try:
            async with progress_manager:
                consumer = asyncio.create_task(
                    progress_manager.consume(orchestrator.channel)
                )
                try:
                    await orchestrator.extract_archive(archive, output_dir)
                finally:
                    orchestrator.channel.close()
                    await consumer
        finally:
            await orchestrator.close()

        print_outcome(console, progress_manager.outcome)
        if progress_manager.outcome is None or not progress_manager.outcome.succeeded:
            raise typer.Exit(code=1)

    asyncio.run(_extract_async())
