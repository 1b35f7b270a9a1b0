"""
Functions for formatting and displaying data in the console using Rich.
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from mingw_dl.core.events import OutcomeEvent, OutcomeStatus
from mingw_dl.models.attributes import AttributeField, FilterSelection
from mingw_dl.models.release import Asset, Release
from mingw_dl.utils.formatting import (
    describe_attributes,
    format_date,
    format_size,
)

_FIELD_HEADERS = {
    AttributeField.ARCH: "Arch",
    AttributeField.THREAD_MODEL: "Threads",
    AttributeField.EXCEPTION_MODEL: "Exceptions",
    AttributeField.C_RUNTIME: "CRT",
    AttributeField.RUNTIME_VERSION: "RT",
}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "FetchError": [
            "• Check your internet connection.",
            "• GitHub may be rate-limiting anonymous API requests; wait a while.",
            "• Verify `releases_url` in the configuration file.",
        ],
        "DecodeError": [
            "• The releases endpoint did not return a GitHub release list.",
            "• Verify `releases_url` in the configuration file.",
        ],
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `mingw-dl init --force` to recreate it with defaults.",
        ],
        "PathTraversalError": [
            "• The archive contains entries pointing outside the target folder.",
            "• Do not extract this archive; it may be malicious.",
        ],
        "ArchiveOpenError": [
            "• Only 7z and zip archives can be extracted.",
            "• The file may be incomplete; download it again.",
        ],
        "OperationInProgressError": [
            "• Wait for the running download to finish or cancel it.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
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
    """Displays the effective configuration."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_releases_table(releases: Sequence[Release], limit: int | None = None):
    """Displays the loaded releases, newest first as returned by the source."""
    console = Console()
    if not releases:
        console.print("[yellow]No releases found.[/yellow]")
        return

    table = Table(box=box.SIMPLE_HEAVY, header_style="bold cyan")
    table.add_column("Tag", style="bold")
    table.add_column("Published", style="dim")
    table.add_column("Assets", justify="right")

    shown = releases[:limit] if limit else releases
    for release in shown:
        table.add_row(
            release.tag, format_date(release.published_at), str(len(release.assets))
        )

    console.print(table)
    if len(shown) < len(releases):
        console.print(f"[dim]{len(releases) - len(shown)} older releases hidden.[/dim]")


def describe_selection(selection: FilterSelection) -> str:
    parts = [
        f"{_FIELD_HEADERS[field]}={selection.get(field).value}"
        for field in AttributeField
        if selection.get(field) is not None
    ]
    return ", ".join(parts) if parts else "none"


def print_assets_table(
    release: Release, assets: Sequence[Asset], selection: FilterSelection
):
    """Displays the filtered assets of a release with their row numbers."""
    console = Console()
    title = (
        f"[bold]{release.tag}[/bold] • {len(assets)}/{len(release.assets)} assets "
        f"• filters: {describe_selection(selection)}"
    )
    if not assets:
        console.print(title)
        console.print("[yellow]No assets match the current filters.[/yellow]")
        return

    table = Table(title=title, box=box.SIMPLE_HEAVY, header_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="bold")
    for field in AttributeField:
        table.add_column(_FIELD_HEADERS[field])
    table.add_column("Size", justify="right")

    for row, asset in enumerate(assets, start=1):
        table.add_row(
            str(row),
            asset.name,
            *describe_attributes(asset.attributes),
            format_size(asset.size),
        )
    console.print(table)


def print_outcome(console: Console, outcome: OutcomeEvent | None):
    """Prints the one-line final status of an operation."""
    if outcome is None:
        console.print("[yellow]⚠️  No result was reported.[/yellow]")
        return
    if outcome.status is OutcomeStatus.SUCCEEDED:
        console.print(f"[bold green]✓ {outcome.message}[/bold green]")
    elif outcome.status is OutcomeStatus.CANCELLED:
        console.print(f"[yellow]⚠️  {outcome.message}[/yellow]")
    else:
        console.print(f"[bold red]✗ {outcome.message}[/bold red]")
