"""
The lcpkg command tree. Each command loads the settings, builds the services
once and hands the work to the core layer.
"""

import asyncio
import dataclasses
import logging
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler

from lcpkg import __version__
from lcpkg.core.containers import (
    ApplicationDescriptor,
    ContainerRecord,
    StorageGroup,
)
from lcpkg.core.services import Services, create_services
from lcpkg.exceptions import LcpkgError
from lcpkg.models.config import AppConfig
from lcpkg.storage.config_manager import ConfigManager
from lcpkg.utils.formatting import format_size

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_library_table,
    print_links_table,
    print_validation_table,
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
log = logging.getLogger("lcpkg")

app = typer.Typer(
    name="lcpkg",
    help=(
        "Save, check and download .ipa links, and export installed apps with"
        " their container data. Use 'lcpkg <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)
links_app = typer.Typer(help="Manage saved package links.", no_args_is_help=True)
library_app = typer.Typer(help="Manage downloaded packages.", no_args_is_help=True)
app.add_typer(links_app, name="links")
app.add_typer(library_app, name="library")

T = TypeVar("T")


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "lcpkg"


def get_config_file() -> Path:
    return get_config_dir() / "config.ini"


def _load_config() -> AppConfig:
    try:
        return ConfigManager(get_config_file()).load_config()
    except LcpkgError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1) from e


def _run(action: Callable[[Services], Awaitable[T]]) -> T:
    """Runs `action` with freshly built services and renders core errors."""
    config = _load_config()

    async def _runner() -> T:
        services = create_services(config)
        try:
            return await action(services)
        except LcpkgError as e:
            console.print(format_error_with_suggestions(e))
            raise typer.Exit(code=1) from e
        finally:
            await services.close()

    return asyncio.run(_runner())


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """LiveContainer package tool"""
    if version:
        console.print(f"[bold]lcpkg[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    logging.getLogger("lcpkg").setLevel("DEBUG" if verbose >= 1 else "INFO")

    if show_config:
        config_file = get_config_file()
        if not config_file.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]lcpkg init[/cyan] first."
            )
            raise typer.Exit(code=1)
        config = _load_config()
        print_config(config_file, config.model_dump(exclude={"config_path"}))
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    data_dir: Path | None = typer.Option(
        None,
        "--data-dir",
        help="Root folder for saved links, downloads, exports and container data.",
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration."
    ),
):
    """Create a configuration file with default locations."""
    config_file = get_config_file()
    if (
        config_file.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {}
    if data_dir:
        root = data_dir.expanduser().resolve()
        settings = {
            "app_group_dir": root / "AppGroup",
            "documents_dir": root / "Documents",
            "private_data_dir": root / "Data" / "Application",
            "shared_data_dir": root / "AppGroup" / "Data" / "Application",
            "export_dir": root / "Exports",
        }

    try:
        ConfigManager(config_file).save_new_config(settings)
    except LcpkgError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(
        f"[bold green]✓ Configuration saved to '{config_file}'[/bold green]"
    )


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config = ConfigManager(get_config_file()).load_config()
        print_validation_table(config)
    except LcpkgError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e


# --- Saved links ---


@links_app.command("list")
def list_links():
    """Show saved links and their last known status."""

    async def _list(services: Services):
        print_links_table(services.store.records)

    _run(_list)


@links_app.command("add")
def add_link(
    url: str = typer.Argument(..., help="Direct URL of an .ipa file."),
    name: str = typer.Option("", "--name", "-n", help="Display name for the link."),
):
    """Save a link and check it right away."""

    async def _add(services: Services):
        record = await services.store.add(url, name)
        await services.store.wait_for_pending()
        print_links_table([services.store.get(record.id) or record])

    _run(_add)


@links_app.command("edit")
def edit_link(
    ref: str = typer.Argument(..., help="List position or ID prefix of the link."),
    url: str | None = typer.Option(None, "--url", help="New URL."),
    name: str | None = typer.Option(None, "--name", "-n", help="New display name."),
):
    """Change the URL or name of a saved link."""
    if url is None and name is None:
        console.print("[yellow]Nothing to change. Pass --url and/or --name.[/yellow]")
        raise typer.Exit(code=1)

    async def _edit(services: Services):
        record = services.store.resolve(ref)
        changes = {
            key: value
            for key, value in {"url": url, "display_name": name}.items()
            if value is not None
        }
        updated = record.model_copy(update=changes)
        await services.store.update(updated)
        if url is not None and url != record.url:
            updated = await services.coordinator.refresh_one(record.id) or updated
        print_links_table([updated])

    _run(_edit)


@links_app.command("remove")
def remove_links(
    refs: list[str] = typer.Argument(  # noqa: B008
        ..., help="List positions or ID prefixes of the links to remove."
    ),
):
    """Delete saved links."""

    async def _remove(services: Services):
        records = [services.store.resolve(ref) for ref in refs]
        for record in records:
            await services.store.delete(record)
            console.print(
                f"[green]✓ Removed '{record.display_name or record.url}'[/green]"
            )

    _run(_remove)


@links_app.command("refresh")
def refresh_links(
    ref: str | None = typer.Argument(
        None, help="Refresh only this link (list position or ID prefix)."
    ),
):
    """Check whether saved links are online and how large they are."""

    async def _refresh(services: Services):
        if ref is not None:
            record = services.store.resolve(ref)
            await services.coordinator.refresh_one(record.id)
        else:
            with console.status(
                f"[cyan]Checking {len(services.store)} links...[/cyan]"
            ):
                await services.coordinator.refresh_all()
        print_links_table(services.store.records)

    _run(_refresh)


# --- Downloads ---


@app.command(name="download")
def download_command(
    ref: str = typer.Argument(..., help="List position or ID prefix of the link."),
):
    """Download the package behind a saved link into DownloadedIPAs."""

    async def _download(services: Services):
        record = services.store.resolve(ref)
        title = record.display_name or record.short_id
        async with ProgressManager(console, title) as progress_manager:
            destination = await services.download_engine.download(
                record, on_progress=progress_manager.on_progress
            )
        console.print(f"[bold green]✓ Saved to '{destination}'[/bold green]")

    _run(_download)


@library_app.command("list")
def list_library():
    """Show downloaded packages."""

    async def _list(services: Services):
        print_library_table(services.library.list_packages())

    _run(_list)


@library_app.command("remove")
def remove_packages(
    names: list[str] = typer.Argument(  # noqa: B008
        ..., help="File names of the packages to delete."
    ),
):
    """Delete downloaded packages."""

    async def _remove(services: Services):
        packages = []
        for name in names:
            package = services.library.find(name)
            if package is None:
                console.print(
                    f"[yellow]⚠️  No downloaded package named '{name}'[/yellow]"
                )
            else:
                packages.append(package)
        removed = services.library.delete(packages)
        console.print(f"[green]✓ Removed {removed} packages.[/green]")

    _run(_remove)


@library_app.command("clear")
def clear_library(
    force: bool = typer.Option(
        False, "--force", "-f", help="Bypass the confirmation prompt."
    ),
):
    """Delete every downloaded package."""
    if not force and not typer.confirm(
        "This will permanently delete all downloaded packages. Continue?"
    ):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    async def _clear(services: Services):
        total = sum(p.size_bytes for p in services.library.list_packages())
        removed = services.library.delete_all()
        console.print(
            f"[green]✓ Removed {removed} packages ({format_size(total)}).[/green]"
        )

    _run(_clear)


# --- Export ---


@app.command(name="export")
def export_command(
    bundle: Path = typer.Argument(  # noqa: B008
        ...,
        exists=True,
        file_okay=False,
        help="Path to the installed .app bundle.",
    ),
    container_path: Path | None = typer.Option(
        None, "--container-path", help="Container data folder to include."
    ),
    container: str | None = typer.Option(
        None,
        "--container",
        "-c",
        help="Data UUID of the container to include, resolved under the data roots.",
    ),
    shared: bool | None = typer.Option(
        None,
        "--shared/--private",
        help="Look the container up in shared or private storage.",
    ),
    documents: bool = typer.Option(True, "--documents/--no-documents"),
    library: bool = typer.Option(True, "--library/--no-library"),
    caches: bool = typer.Option(False, "--caches/--no-caches"),
):
    """Export an installed app, optionally with container data, as an .ipa."""
    if container_path and container:
        console.print("[red]✗ Use either --container-path or --container.[/red]")
        raise typer.Exit(code=1)

    async def _export(services: Services):
        app_info = ApplicationDescriptor.from_bundle(bundle)
        data_path = container_path
        if container:
            record = app_info.find_container(container) or ContainerRecord(
                data_uuid=container
            )
            if shared is not None:
                group = StorageGroup.SHARED if shared else StorageGroup.PRIVATE
                record = dataclasses.replace(record, storage_group=group)
            data_path = services.container_resolver.resolve(record)
            log.debug(f"Resolved container {container} to {data_path}")

        title = app_info.display_name or app_info.bundle_name
        async with ProgressManager(console, title) as progress_manager:
            archive = await services.export_stager.export(
                app_info,
                container_path=data_path,
                include_documents=documents,
                include_library=library,
                include_caches=caches,
                on_progress=progress_manager.on_progress,
            )
        size = archive.stat().st_size
        console.print(
            f"[bold green]✓ Exported to '{archive}'[/bold green] "
            f"({format_size(size)})"
        )

    _run(_export)
