"""Test the matching progress bar"""

from track_reconciler.core.progress import MatchingProgressBar, format_counters
from track_reconciler.matching.models import BatchProgress


def test_format_counters():
    assert format_counters(3, 1, 0) == "[green]✓ 3[/green]  [red]✗ 1[/red]"
    assert "[yellow]⚠ 2[/yellow]" in format_counters(3, 1, 2)


def test_update_outside_context_keeps_snapshot():
    bar = MatchingProgressBar(total=4)
    snapshot = BatchProgress(current=2, total=4, percent=50, matched=1, unmatched=1)

    bar.update(snapshot)

    assert bar.last_snapshot == snapshot


def test_context_manager_updates_task():
    with MatchingProgressBar(total=4) as bar:
        bar.update(BatchProgress(current=4, total=4, percent=100, matched=3, unmatched=1))
        task = bar.progress.tasks[0]

        assert task.completed == 4
        assert task.fields["status"] == format_counters(3, 1, 0)

    bar.stop()
