"""
Renders download and export progress events as a Rich progress bar.
"""

import asyncio

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from lcpkg.models.progress import ProgressEvent

PHASE_LABELS = {
    "transfer": "Downloading",
    "bundle": "Copying app bundle",
    "container": "Copying container data",
    "descriptor": "Writing metadata",
    "compress": "Compressing",
}


class ProgressManager:
    """Shows one task whose bar follows the fractions of incoming progress events."""

    def __init__(self, console: Console, title: str):
        self.console = console
        self.title = title
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )
        self._task_id: TaskID | None = None
        self.events: list[ProgressEvent] = []

    def on_progress(self, event: ProgressEvent) -> None:
        """Progress callback handed to the download engine or export stager."""
        self.events.append(event)
        if self._task_id is None:
            return
        label = PHASE_LABELS.get(event.phase, event.phase)
        self.progress.update(
            self._task_id,
            completed=event.fraction * 100,
            description=f"{self.title} [dim]({label})[/dim]",
        )

    async def __aenter__(self):
        self.progress.start()
        self._task_id = self.progress.add_task(self.title, total=100)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await asyncio.sleep(0.1)
        self.progress.stop()
