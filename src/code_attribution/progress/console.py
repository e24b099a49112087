"""Terminal observer for a ProgressChannel using a Rich progress bar."""

import logging
from typing import Optional

from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn

from .channel import ErrorUpdate, ProgressChannel, ProgressEvent, ProgressUpdate

logger = logging.getLogger(__name__)


class ConsoleProgressObserver:
    """Renders channel events until the terminal event arrives."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)

    async def follow(self, channel: ProgressChannel) -> Optional[ProgressEvent]:
        """Consume ``channel`` and return its terminal event."""
        terminal: Optional[ProgressEvent] = None

        with Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            console=self.console,
            transient=False,
        ) as progress:
            task_id = progress.add_task("Starting analysis...", total=100)
            async for event in channel:
                if isinstance(event, ProgressUpdate):
                    progress.update(
                        task_id, completed=event.percent, description=event.message
                    )
                    continue
                terminal = event
                if isinstance(event, ErrorUpdate):
                    progress.update(task_id, description="[red]Analysis failed")
                else:
                    progress.update(task_id, completed=100, description="Analysis complete")

        if isinstance(terminal, ErrorUpdate):
            code = f" ({terminal.code})" if terminal.code else ""
            self.console.print(f"[bold red]Error{code}:[/bold red] {terminal.message}")

        return terminal
