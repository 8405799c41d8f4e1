"""Rich progress bar fed by the reconciliation engine's checkpoints."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

__all__ = ["DatasetProgress", "progress_tracker"]


class DatasetProgress:
    """Callable receiving ``(units_completed, total_units)`` checkpoints.

    The total is only known once the run has been planned, so it is taken
    from every checkpoint. Checkpoints that would move the bar backwards are
    ignored.
    """

    def __init__(self, progress: Progress, task_id: TaskID, unit_label: str) -> None:
        self._progress = progress
        self._task_id = task_id
        self._unit_label = unit_label
        self.completed = 0
        self.total = 0

    def __call__(self, units_completed: int, total_units: int) -> None:
        if units_completed < self.completed:
            return
        self.completed = units_completed
        self.total = total_units
        self._progress.update(
            self._task_id,
            completed=units_completed,
            total=max(total_units, 1),
            description=f"Checking {self._unit_label}",
        )

    def outcome(self) -> str:
        return f"{self.completed}/{self.total} {self._unit_label} checked"


@contextmanager
def progress_tracker(
    title: str,
    *,
    total: int,
    unit_label: str = "datasets",
    console: Optional[Console] = None,
) -> Iterator[DatasetProgress]:
    """Render a progress bar for *title* and yield its checkpoint callback."""

    output = console or Console()
    output.rule(f"[bold cyan]{title}")

    progress = Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(bar_width=None),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
        console=output,
    )
    task_id = progress.add_task(f"Planning {unit_label}", total=max(total, 1))
    tracker = DatasetProgress(progress, task_id, unit_label)

    with progress:
        try:
            yield tracker
        except Exception:
            output.print(f"[bold red]✖ {title} stopped ({tracker.outcome()})[/bold red]")
            raise
    output.print(f"[bold green]✔ {title} finished ({tracker.outcome()})[/bold green]")
