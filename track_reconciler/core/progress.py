"""
Progress bar for the matching pass, rendered with Rich.

The batch matcher reports progress as immutable BatchProgress snapshots
through a callback. MatchingProgressBar.update has that callback's
signature, so the bound method is handed to the matcher directly.

Usage:
    from track_reconciler.core.progress import MatchingProgressBar

    with MatchingProgressBar(total=len(tracks)) as progress:
        matcher.match_tracks(tracks, on_progress=progress.update)
"""

from typing import Optional

from rich import get_console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.theme import Theme

from track_reconciler.matching.models import BatchProgress


PROGRESS_THEME = Theme({
    "bar.back": "grey23",
    "bar.complete": "rgb(165,66,129)",
    "bar.finished": "rgb(114,156,31)",
    "bar.pulse": "rgb(165,66,129)",
    "progress.percentage": "white",
})


def format_counters(matched: int, unmatched: int, ambiguous: int) -> str:
    """
    Rich markup for the status column.

    Example:
        ✓ 45  ✗ 2  ⚠ 3
    """
    parts = [
        f"[green]✓ {matched}[/green]",
        f"[red]✗ {unmatched}[/red]",
    ]
    if ambiguous > 0:
        parts.append(f"[yellow]⚠ {ambiguous}[/yellow]")
    return "  ".join(parts)


class MatchingProgressBar:
    """
    Progress display for a batch of tracks.

    Displays:
        Matching  ✓ 45  ✗ 2  ⚠ 3  ━━━━━━━━━━━━━━━  50/100  47%  0:00:12

    Attributes:
        total: Number of tracks in the batch.
        last_snapshot: Most recent BatchProgress received, or None.
    """

    def __init__(self, total: int, description: str = "Matching") -> None:
        self.total = total
        self.description = description
        self.last_snapshot: Optional[BatchProgress] = None

        self.console = get_console()
        self.progress = Progress(
            TextColumn("[white]{task.description}"),
            TextColumn("{task.fields[status]}"),
            BarColumn(bar_width=40, finished_style="green"),
            MofNCompleteColumn(),
            "[progress.percentage]{task.percentage:>3.0f}%",
            TimeElapsedColumn(),
            console=self.console,
            transient=False,
        )
        self._task_id: Optional[TaskID] = None

    def __enter__(self) -> "MatchingProgressBar":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def start(self) -> None:
        """Show the bar. Calling it twice has no effect."""
        if self._task_id is not None:
            return
        self.console.push_theme(PROGRESS_THEME)
        self.progress.start()
        self._task_id = self.progress.add_task(
            self.description,
            total=self.total,
            status=format_counters(0, 0, 0),
        )

    def stop(self) -> None:
        """Hide the bar and restore the console theme."""
        if self._task_id is None:
            return
        self.progress.stop()
        self.console.pop_theme()
        self._task_id = None

    def update(self, snapshot: BatchProgress) -> None:
        """Show the counters of a cumulative progress snapshot."""
        self.last_snapshot = snapshot
        if self._task_id is None:
            return
        self.progress.update(
            self._task_id,
            completed=snapshot.current,
            total=snapshot.total,
            status=format_counters(snapshot.matched, snapshot.unmatched, snapshot.ambiguous),
        )
