"""Core sync engine executing one synchronization pass."""

import logging
import os
import shutil
import time
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..exceptions import DavAPIError, DavAuthenticationError, DavNetworkError
from ..journal import ItemType, JournalRecord, SelectiveSyncListKind, SyncJournal
from ..output import OutputFormatter
from .comparator import FileComparator, SyncAction, SyncDecision
from .context import SyncContext
from .dav import DavClient
from .scanner import LocalScanner, RemoteScanner

logger = logging.getLogger(__name__)

# HTTP statuses after which a further pass is likely to succeed
SOFT_ERROR_STATUSES = (409, 412, 423)


class SyncProgressEvent(str, Enum):
    ITEM_STARTED = "item_started"
    ITEM_PROGRESS = "item_progress"
    ITEM_COMPLETED = "item_completed"


@dataclass
class SyncProgressInfo:
    """Progress of one propagated item."""

    event: SyncProgressEvent
    action: SyncAction
    relative_path: str
    bytes_done: int = 0
    bytes_total: int = 0


ProgressCallback = Callable[[SyncProgressInfo], None]
FinishedCallback = Callable[[bool], None]


class SyncEngine:
    """Runs one synchronization pass between a local folder and the server.

    The pass is started with :meth:`start`, which only schedules it on an
    executor; completion is reported through the returned future and the
    finished callbacks, never by :meth:`start` itself.
    """

    minimum_file_age_for_upload: float = 2.0
    """Seconds a file must be left untouched before it is uploaded"""

    def __init__(
        self,
        context: SyncContext,
        client: DavClient,
        journal: SyncJournal,
        output: Optional[OutputFormatter] = None,
        progress_callback: Optional[ProgressCallback] = None,
        minimum_file_age_for_upload: Optional[float] = None,
    ):
        """Initialize sync engine.

        Args:
            context: Low-level context of this pass (excludes, hidden files)
            client: WebDAV client for the remote sync folder
            journal: Journal of the local sync folder
            output: Output formatter for the pass summary
            progress_callback: Optional callback for item progress
            minimum_file_age_for_upload: Override of the class default
        """
        self.context = context
        self.client = client
        self.journal = journal
        self.output = output or OutputFormatter(quiet=True)
        self.progress_callback = progress_callback
        if minimum_file_age_for_upload is not None:
            self.minimum_file_age_for_upload = minimum_file_age_for_upload
        self.stats = self._create_empty_stats()
        self._another_sync_needed = False
        self._finished_callbacks: list[FinishedCallback] = []
        self._future: Optional[Future] = None

    @property
    def another_sync_needed(self) -> bool:
        """True if state changed during the pass so that another pass is warranted."""
        return self._another_sync_needed

    def _set_another_sync_needed(self, reason: str) -> None:
        if not self._another_sync_needed:
            logger.info(f"Another sync will be needed: {reason}")
        self._another_sync_needed = True

    def add_finished_callback(self, callback: FinishedCallback) -> None:
        """Register ``callback(success)`` to run when the pass completes."""
        self._finished_callbacks.append(callback)

    def start(self, executor: Executor) -> "Future[bool]":
        """Schedule the pass on ``executor``.

        Raises:
            RuntimeError: If the engine was already started
        """
        if self._future is not None:
            raise RuntimeError("SyncEngine can only be started once")
        self._future = executor.submit(self.run)
        self._future.add_done_callback(self._notify_finished)
        return self._future

    def _notify_finished(self, future: Future) -> None:
        success = not future.cancelled() and future.exception() is None
        if success:
            success = bool(future.result())
        for callback in self._finished_callbacks:
            callback(success)

    def _create_empty_stats(self) -> dict:
        return {
            "uploads": 0,
            "downloads": 0,
            "mkdirs_local": 0,
            "mkdirs_remote": 0,
            "deletes_local": 0,
            "deletes_remote": 0,
            "skips": 0,
            "conflicts": 0,
            "errors": 0,
        }

    # =========================
    # Pass
    # =========================

    def run(self) -> bool:
        """Run the pass synchronously.

        Returns:
            True if every item was propagated without error
        """
        start_time = time.time()
        root = self.context.local_root
        blacklist = self.journal.get_selective_sync_list(SelectiveSyncListKind.BLACKLIST)
        logger.info(f"Syncing {root} <-> {self.client.base_url}")

        try:
            remote_scanner = RemoteScanner(
                self.client, self.journal, self.context.is_excluded, blacklist
            )
            remote_root, remote_entries = remote_scanner.scan()
        except (DavAuthenticationError, DavNetworkError) as e:
            logger.error(f"Remote discovery failed: {e}")
            return False
        except DavAPIError as e:
            logger.error(f"Remote discovery failed: {e}")
            if e.status_code in SOFT_ERROR_STATUSES or e.status_code >= 500:
                self._set_another_sync_needed(str(e))
            return False

        local_items = LocalScanner(self.context.is_excluded, blacklist).scan(root)
        records = {record.path: record for record in self.journal.all_records()}
        decisions = FileComparator().compare(local_items, remote_entries, records)

        failed_paths: list[str] = []
        conflict_paths: list[str] = []
        self._execute_decisions(decisions, failed_paths, conflict_paths)

        # after propagation, which may have rewritten the folder records
        for path in conflict_paths + failed_paths:
            self.journal.avoid_read_from_db_on_next_sync(path)
        if not failed_paths:
            self.journal.set_record(
                JournalRecord(path="", type=ItemType.DIRECTORY, etag=remote_root.etag)
            )
        self.journal.commit()

        elapsed = time.time() - start_time
        logger.debug(f"Sync pass took {elapsed:.2f}s")
        self._display_summary()
        return not failed_paths

    def _execute_decisions(
        self,
        decisions: list[SyncDecision],
        failed_paths: list[str],
        conflict_paths: list[str],
    ) -> None:
        """Create folders first, then transfer files, then delete (deepest first)."""
        mkdirs = [
            d
            for d in decisions
            if d.action in (SyncAction.MKDIR_LOCAL, SyncAction.MKDIR_REMOTE)
        ]
        transfers = [
            d
            for d in decisions
            if d.action
            in (
                SyncAction.UPLOAD,
                SyncAction.DOWNLOAD,
                SyncAction.UPDATE_RECORD,
                SyncAction.REMOVE_RECORD,
            )
        ]
        deletes = sorted(
            (
                d
                for d in decisions
                if d.action in (SyncAction.DELETE_LOCAL, SyncAction.DELETE_REMOTE)
            ),
            key=lambda d: d.relative_path.count("/"),
            reverse=True,
        )

        for decision in decisions:
            if decision.action == SyncAction.SKIP:
                self.stats["skips"] += 1
            elif decision.action == SyncAction.CONFLICT:
                self.stats["conflicts"] += 1
                conflict_paths.append(decision.relative_path)
                logger.warning(
                    f"Conflict, not synced: {decision.relative_path} ({decision.reason})"
                )

        for decision in mkdirs + transfers + deletes:
            try:
                self._execute(decision)
            except DavAuthenticationError:
                raise
            except DavAPIError as e:
                self.stats["errors"] += 1
                failed_paths.append(decision.relative_path)
                logger.error(f"{decision.action.value} {decision.relative_path}: {e}")
                if e.status_code in SOFT_ERROR_STATUSES:
                    self._set_another_sync_needed(str(e))
            except OSError as e:
                self.stats["errors"] += 1
                failed_paths.append(decision.relative_path)
                logger.error(f"{decision.action.value} {decision.relative_path}: {e}")

    def _progress(
        self, event: SyncProgressEvent, decision: SyncDecision, done: int = 0, total: int = 0
    ) -> None:
        if self.progress_callback:
            self.progress_callback(
                SyncProgressInfo(event, decision.action, decision.relative_path, done, total)
            )

    def _execute(self, decision: SyncDecision) -> None:
        action = decision.action
        path = decision.relative_path
        local_path = self.context.local_root / path

        if action == SyncAction.REMOVE_RECORD:
            self.journal.delete_record(path)
            return
        if action == SyncAction.UPDATE_RECORD:
            self._record_from_both(decision)
            return

        self._progress(SyncProgressEvent.ITEM_STARTED, decision)
        if action == SyncAction.MKDIR_LOCAL:
            local_path.mkdir(parents=True, exist_ok=True)
            self._record_directory(path, decision.remote_entry.etag)
            self.stats["mkdirs_local"] += 1
        elif action == SyncAction.MKDIR_REMOTE:
            etag = self.client.mkcol(path)
            self._record_directory(path, etag)
            self.stats["mkdirs_remote"] += 1
        elif action == SyncAction.UPLOAD:
            if not self._upload(decision, local_path):
                return
        elif action == SyncAction.DOWNLOAD:
            self._download(decision, local_path)
        elif action == SyncAction.DELETE_LOCAL:
            if local_path.is_dir():
                shutil.rmtree(local_path)
            else:
                local_path.unlink()
            self.journal.delete_record(path)
            self.stats["deletes_local"] += 1
        elif action == SyncAction.DELETE_REMOTE:
            self.client.delete(path)
            self.journal.delete_record(path)
            self.stats["deletes_remote"] += 1
        self._progress(SyncProgressEvent.ITEM_COMPLETED, decision)

    def _upload(self, decision: SyncDecision, local_path) -> bool:
        local = decision.local_item
        if time.time() - local.mtime < self.minimum_file_age_for_upload:
            self._set_another_sync_needed(f"{decision.relative_path} changed too recently")
            return False

        if_match = decision.remote_entry.etag if decision.remote_entry else None
        etag = self.client.upload(
            decision.relative_path,
            local_path,
            local.mtime,
            if_match=if_match,
            progress_callback=lambda done, total: self._progress(
                SyncProgressEvent.ITEM_PROGRESS, decision, done, total
            ),
        )
        self.stats["uploads"] += 1

        stat = local_path.stat()
        if stat.st_mtime != local.mtime or stat.st_size != local.size:
            # the journal keeps the old metadata, the next pass uploads again
            self._set_another_sync_needed(f"{decision.relative_path} changed during upload")
            return True

        self.journal.set_record(
            JournalRecord(
                path=decision.relative_path,
                type=ItemType.FILE,
                etag=etag,
                mtime=local.mtime,
                size=local.size,
                inode=local.inode,
            )
        )
        return True

    def _download(self, decision: SyncDecision, local_path) -> None:
        remote = decision.remote_entry
        etag = self.client.download(
            decision.relative_path,
            local_path,
            progress_callback=lambda done, total: self._progress(
                SyncProgressEvent.ITEM_PROGRESS, decision, done, total
            ),
        )
        if remote.mtime:
            os.utime(local_path, (remote.mtime, remote.mtime))
        stat = local_path.stat()
        self.journal.set_record(
            JournalRecord(
                path=decision.relative_path,
                type=ItemType.FILE,
                etag=etag or remote.etag,
                mtime=stat.st_mtime,
                size=stat.st_size,
                inode=stat.st_ino,
            )
        )
        self.stats["downloads"] += 1

    def _record_directory(self, path: str, etag: str) -> None:
        self.journal.set_record(JournalRecord(path=path, type=ItemType.DIRECTORY, etag=etag))

    def _record_from_both(self, decision: SyncDecision) -> None:
        local = decision.local_item
        remote = decision.remote_entry
        if local.is_dir:
            self._record_directory(decision.relative_path, remote.etag)
            return
        self.journal.set_record(
            JournalRecord(
                path=decision.relative_path,
                type=ItemType.FILE,
                etag=remote.etag,
                mtime=local.mtime,
                size=local.size,
                inode=local.inode,
            )
        )

    def _display_summary(self) -> None:
        if self.output.quiet:
            return
        stats = self.stats
        self.output.print_summary(
            "Sync summary",
            [
                ("Uploaded", str(stats["uploads"])),
                ("Downloaded", str(stats["downloads"])),
                ("Folders created", str(stats["mkdirs_local"] + stats["mkdirs_remote"])),
                ("Deleted", str(stats["deletes_local"] + stats["deletes_remote"])),
                ("Conflicts", str(stats["conflicts"])),
                ("Errors", str(stats["errors"])),
            ],
        )
