"""CLI progress display for sync passes.

Rich-based progress display fed by the engine's progress callback.
"""

from typing import Optional

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TransferSpeedColumn,
)

from .sync.comparator import SyncAction
from .sync.engine import SyncProgressEvent, SyncProgressInfo

ACTION_LABELS = {
    SyncAction.UPLOAD: "Uploading",
    SyncAction.DOWNLOAD: "Downloading",
    SyncAction.MKDIR_LOCAL: "Creating folder",
    SyncAction.MKDIR_REMOTE: "Creating remote folder",
    SyncAction.DELETE_LOCAL: "Deleting",
    SyncAction.DELETE_REMOTE: "Deleting remote",
}


class SyncProgressDisplay:
    """Shows the item currently being propagated with its transfer progress."""

    def __init__(self) -> None:
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None
        self.items_completed = 0

    def handle_event(self, info: SyncProgressInfo) -> None:
        """Progress callback for :class:`~davsync.sync.engine.SyncEngine`."""
        if self._progress is None or self._task is None:
            return

        if info.event == SyncProgressEvent.ITEM_STARTED:
            label = ACTION_LABELS.get(info.action, info.action.value)
            self._progress.update(
                self._task,
                description=f"{label}: {info.relative_path}",
                total=None,
                completed=0,
            )
        elif info.event == SyncProgressEvent.ITEM_PROGRESS:
            self._progress.update(
                self._task,
                total=info.bytes_total or None,
                completed=info.bytes_done,
            )
        elif info.event == SyncProgressEvent.ITEM_COMPLETED:
            self.items_completed += 1
            self._progress.update(
                self._task,
                items=f"{self.items_completed} item(s) done",
            )

    def __enter__(self) -> "SyncProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("[cyan]{task.fields[items]}"),
            TransferSpeedColumn(),
            TimeElapsedColumn(),
            transient=True,
            refresh_per_second=4,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task(
            "Discovering changes...", total=None, items="0 item(s) done"
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None
