"""
The single consumer of pipeline events: drives a Rich progress bar and prints
status lines.
"""

import asyncio
import logging

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from mingw_dl.core.events import (
    EventChannel,
    OutcomeEvent,
    OutcomeStatus,
    ProgressEvent,
    Stage,
    StatusEvent,
)
from mingw_dl.utils.formatting import format_size

log = logging.getLogger("mingw_dl")

_STAGE_LABELS = {
    Stage.DOWNLOAD: "Downloading",
    Stage.COUNT: "Counting entries",
    Stage.EXTRACT: "Extracting",
}


class ProgressManager:
    """
    Drains an EventChannel and renders it.

    Exactly one ProgressManager consumes a channel. Each stage gets its own bar
    row, and every row is left in a terminal state: the final stage is completed
    on success, and all rows are stopped once the outcome arrives.
    """

    def __init__(self, console: Console):
        self.console = console

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=40),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            TextColumn("{task.fields[detail]}"),
            "•",
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )
        self._tasks: dict[Stage, TaskID] = {}
        self.outcome: OutcomeEvent | None = None

    def _ensure_task(self, stage: Stage) -> TaskID:
        """Returns the row of `stage`, adding it as an indeterminate bar if needed."""
        if stage not in self._tasks:
            label = _STAGE_LABELS.get(stage, stage.value.title())
            self._tasks[stage] = self.progress.add_task(label, total=None, detail="")
        return self._tasks[stage]

    @staticmethod
    def _detail(event: ProgressEvent) -> str:
        if event.stage is Stage.DOWNLOAD:
            if event.total:
                return f"{format_size(event.done)} / {format_size(event.total)}"
            return format_size(event.done)
        if event.total:
            return f"{event.done}/{event.total} entries"
        return f"{event.done} entries"

    def _on_progress(self, event: ProgressEvent) -> None:
        task_id = self._ensure_task(event.stage)
        detail = self._detail(event)
        if event.indeterminate:
            self.progress.update(task_id, detail=detail)
            return
        self.progress.update(task_id, total=100, completed=event.percent, detail=detail)

    def _on_status(self, event: StatusEvent) -> None:
        self.console.print(f"[cyan]{event.message}[/cyan]")

    def _on_outcome(self, event: OutcomeEvent) -> None:
        if event.stage is not Stage.REFRESH:
            self.outcome = event
            if event.status is OutcomeStatus.SUCCEEDED and event.stage in self._tasks:
                self.progress.update(
                    self._tasks[event.stage], total=100, completed=100
                )
            self._stop_all()
        if event.status is OutcomeStatus.FAILED:
            log.debug(f"Operation failed: {event.error!r}")
        if event.stage is Stage.REFRESH:
            style = "green" if event.succeeded else "red"
            self.console.print(f"[{style}]{event.message}[/{style}]")

    def _stop_all(self) -> None:
        for task_id in self._tasks.values():
            self.progress.stop_task(task_id)

    def handle(self, event) -> None:
        if isinstance(event, ProgressEvent):
            self._on_progress(event)
        elif isinstance(event, StatusEvent):
            self._on_status(event)
        elif isinstance(event, OutcomeEvent):
            self._on_outcome(event)

    async def consume(self, channel: EventChannel) -> OutcomeEvent | None:
        """Handles events until the channel is closed; returns the last outcome."""
        async for event in channel:
            self.handle(event)
        return self.outcome

    async def __aenter__(self):
        self.progress.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await asyncio.sleep(0.1)
        self._stop_all()
        self.progress.stop()
