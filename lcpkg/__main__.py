"""
Console entry point for lcpkg.

Runs the Typer app and turns anything that escapes a command into an error
panel and a non-zero exit status.
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from lcpkg.cli.app import app
from lcpkg.cli.formatters import format_error_with_suggestions
from lcpkg.exceptions import LcpkgError


def _force_utf8_streams() -> None:
    """Windows consoles default to a legacy code page that cannot print rich symbols."""
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            continue


def main() -> None:
    if os.name == "nt":
        _force_utf8_streams()

    console = Console()
    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]⚠️  Interrupted.[/yellow]")
        sys.exit(130)
    except LcpkgError as e:
        console.print()
        console.print(format_error_with_suggestions(e))
        sys.exit(1)
    except Exception as e:
        console.print()
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        logging.getLogger("lcpkg").debug("Traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
