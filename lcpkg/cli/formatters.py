"""
Rich renderers for lcpkg: link and library tables, settings panels and
error panels with next-step hints.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from lcpkg.models.config import AppConfig
from lcpkg.models.link import LinkRecord, Reachability
from lcpkg.storage.library import DownloadedPackage
from lcpkg.utils.formatting import format_age, format_size

STATUS_STYLES = {
    Reachability.REACHABLE: ("●", "green", "online"),
    Reachability.UNREACHABLE: ("●", "red", "offline"),
    Reachability.UNKNOWN: ("○", "dim", "unchecked"),
}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Wraps an error and the hints registered for its type in a red panel."""
    error_type = type(error).__name__

    suggestions_map = {
        "ConfigurationError": [
            "• Run `lcpkg init` to create a configuration file.",
            "• Run `lcpkg validate` to check the current settings.",
        ],
        "InvalidURLError": [
            "• Saved links must be absolute http:// or https:// URLs.",
            "• Fix the link with `lcpkg links edit <ID> --url <URL>`.",
        ],
        "LinkNotFoundError": [
            "• Run `lcpkg links list` to see saved links and their IDs.",
            "• Use the list position or a unique prefix of the ID.",
        ],
        "DownloadError": [
            "• Run `lcpkg links refresh` to check whether the link is online.",
            "• The server may require a different URL or be temporarily down.",
        ],
        "DestinationError": [
            "• Check that the documents directory in the config is writable.",
        ],
        "MoveError": [
            "• Another program may be using the existing package file.",
        ],
        "BundleCopyError": [
            "• Check that the bundle path points to an existing .app folder.",
        ],
        "ContainerCopyError": [
            "• Check permissions of the container data folder.",
            "• Try again without --library or --documents.",
        ],
        "ArchiveCreationError": [
            "• Make sure the export directory has enough free space.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -v for detailed logs."]
    )

    rows = [
        Text.assemble((f"{error_type}: ", "bold red"), str(error)),
        Text(""),
        Text("What to try", style="bold yellow"),
        Text("\n".join(suggestions)),
    ]
    if context:
        rows += [Text(""), Text(f"Context: {context}", style="dim")]

    return Panel(
        Group(*rows),
        title="[bold red]lcpkg failed[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the raw configuration values."""
    console = Console()
    content = "\n".join(f"{key} = {value}" for key, value in config_data.items())
    console.print(
        Panel(
            content,
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: AppConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("App Group:", f"[dim]{config.app_group_dir}[/dim]")
    table.add_row("Downloads:", f"[dim]{config.downloads_dir}[/dim]")
    table.add_row("Exports:", f"[dim]{config.export_dir}[/dim]")
    table.add_row("Private Data:", f"[dim]{config.private_data_dir}[/dim]")
    table.add_row("Shared Data:", f"[dim]{config.shared_data_dir}[/dim]")
    table.add_row("Exporter:", config.exporter_name)
    table.add_row("Probe Timeout:", f"{config.probe_timeout:g}s")
    table.add_row("Concurrent Probes:", str(config.max_concurrent_probes))

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_links_table(records: list[LinkRecord]):
    """Displays saved links with their probe status."""
    console = Console()
    if not records:
        console.print(
            "[dim]No saved links yet. Add one with[/dim] "
            "[cyan]lcpkg links add <URL>[/cyan]"
        )
        return

    table = Table(box=box.SIMPLE_HEAVY)
    table.add_column("#", style="dim", justify="right")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Status")
    table.add_column("Size", justify="right", style="cyan")
    table.add_column("Checked", style="dim")
    table.add_column("URL", overflow="fold")

    for i, record in enumerate(records, 1):
        symbol, color, label = STATUS_STYLES[record.reachability]
        table.add_row(
            str(i),
            record.short_id,
            record.display_name or "[dim]-[/dim]",
            f"[{color}]{symbol} {label}[/{color}]",
            format_size(record.size_bytes),
            format_age(record.last_probed_at),
            record.url,
        )
    console.print(table)


def print_library_table(packages: list[DownloadedPackage]):
    """Displays downloaded packages, newest first."""
    console = Console()
    if not packages:
        console.print("[dim]No downloaded packages.[/dim]")
        return

    table = Table(box=box.SIMPLE_HEAVY)
    table.add_column("File", style="bold")
    table.add_column("Size", justify="right", style="cyan")
    table.add_column("Downloaded", style="dim")
    for package in packages:
        table.add_row(
            package.file_name,
            format_size(package.size_bytes),
            package.downloaded_at.astimezone().strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)
    total = sum(p.size_bytes for p in packages)
    console.print(f"[dim]{len(packages)} packages, {format_size(total)} total[/dim]")
