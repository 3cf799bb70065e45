"""CLI progress display for sync operations.

This module provides a Rich-based progress display fed by the events the
WorkScheduler emits after every attempt.
"""

from typing import Any, Optional

from rich.progress import Progress, SpinnerColumn, TaskID, TextColumn, TimeElapsedColumn

from .output import OutputFormatter
from .sync.models import Outcome, WorkItem


class SyncProgressDisplay:
    """Rich-based progress display for sync operations.

    In verbose mode every attempt is printed as a line
    ``"<kind> <path>: <outcome>"``. Lines appear in completion order, which
    interleaves freely across workers.

    The live display is started lazily on the first event, after the
    engine's scanning spinner has finished.
    """

    def __init__(self, output: OutputFormatter, verbose: bool = False) -> None:
        self.output = output
        self.verbose = verbose
        self.counts = {outcome: 0 for outcome in Outcome}
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def __enter__(self) -> "SyncProgressDisplay":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()

    def _start(self) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TextColumn("{task.fields[summary]}"),
            TimeElapsedColumn(),
            console=self.output.console,
            transient=True,
        )
        self._progress.start()
        self._task = self._progress.add_task("Transferring", summary="")

    def stop(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
            self._task = None

    def _format_summary(self) -> str:
        done = self.counts[Outcome.SUCCEEDED]
        failed = self.counts[Outcome.FAILED]
        retrying = self.counts[Outcome.RETRYING]
        summary = f"{done} done"
        if retrying:
            summary += f", {retrying} retried"
        if failed:
            summary += f", {failed} failed"
        return summary

    def handle_event(
        self, item: WorkItem, outcome: Outcome, error: Optional[BaseException]
    ) -> None:
        """Handle an attempt event from the scheduler."""
        self.counts[outcome] += 1

        if self.verbose:
            line = f"{item.kind.value} {item.path}: {outcome.value}"
            if error is not None:
                line += f" ({error})"
            self.output.print(line)

        if self.output.quiet:
            return
        if self._progress is None:
            self._start()
        if self._progress is not None and self._task is not None:
            self._progress.update(self._task, summary=self._format_summary())
