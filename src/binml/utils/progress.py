"""Rich progress bar over orchestrator work items."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Generator

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)


def create_progress(console: Console | None = None) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
        console=console or Console(stderr=True),
        transient=True,
    )


@contextmanager
def work_item_progress(
    description: str, total: int | None = None
) -> Generator[Callable[[], None], None, None]:
    """Yield a zero-argument callback that advances the bar by one work item.

    Units are loaded lazily, so ``total`` is usually unknown and the bar pulses.
    The callback is invoked from the collecting thread only, never from workers.
    """
    progress = create_progress()
    with progress:
        task_id = progress.add_task(description, total=total)

        def advance() -> None:
            progress.advance(task_id)

        yield advance
