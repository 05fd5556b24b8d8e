"""Comparison of local, remote and journal state."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..journal import JournalRecord
from .dav import RemoteEntry
from .scanner import LocalItem


class SyncAction(str, Enum):
    """Actions that can be taken during sync."""

    UPLOAD = "upload"
    """Upload local file to remote"""

    DOWNLOAD = "download"
    """Download remote file to local"""

    MKDIR_REMOTE = "mkdir_remote"
    """Create folder on the server"""

    MKDIR_LOCAL = "mkdir_local"
    """Create local folder"""

    DELETE_LOCAL = "delete_local"
    """Delete local item (deleted on the server)"""

    DELETE_REMOTE = "delete_remote"
    """Delete remote item (deleted locally)"""

    UPDATE_RECORD = "update_record"
    """Both sides agree, only the journal needs updating"""

    REMOVE_RECORD = "remove_record"
    """Item is gone on both sides"""

    SKIP = "skip"
    """Nothing to do"""

    CONFLICT = "conflict"
    """Changed on both sides; reported and left alone"""


@dataclass
class SyncDecision:
    """Represents a decision about how to sync one item."""

    action: SyncAction
    reason: str
    relative_path: str
    local_item: Optional[LocalItem] = None
    remote_entry: Optional[RemoteEntry] = None
    record: Optional[JournalRecord] = None

    @property
    def is_dir(self) -> bool:
        if self.local_item is not None:
            return self.local_item.is_dir
        if self.remote_entry is not None:
            return self.remote_entry.is_dir
        return self.record is not None and self.record.is_directory


DELETIONS = (SyncAction.DELETE_LOCAL, SyncAction.DELETE_REMOTE)


class FileComparator:
    """Decides the action for every item seen locally, remotely or in the journal."""

    def compare(
        self,
        local_items: dict[str, LocalItem],
        remote_entries: dict[str, RemoteEntry],
        records: dict[str, JournalRecord],
    ) -> list[SyncDecision]:
        """Compare the three trees.

        Returns:
            Decisions sorted by path (parents before children)
        """
        all_paths = set(local_items) | set(remote_entries) | set(records)
        all_paths.discard("")
        decisions = {
            path: self._compare_item(
                path,
                local_items.get(path),
                remote_entries.get(path),
                records.get(path),
            )
            for path in all_paths
        }
        self._fold_folder_deletions(decisions)
        return [decisions[path] for path in sorted(decisions)]

    def _compare_item(
        self,
        path: str,
        local: Optional[LocalItem],
        remote: Optional[RemoteEntry],
        record: Optional[JournalRecord],
    ) -> SyncDecision:
        def decide(action: SyncAction, reason: str) -> SyncDecision:
            return SyncDecision(action, reason, path, local, remote, record)

        if local is None and remote is None:
            return decide(SyncAction.REMOVE_RECORD, "Gone on both sides")

        if local is not None and remote is not None:
            if local.is_dir != remote.is_dir:
                return decide(SyncAction.CONFLICT, "File on one side, folder on the other")
            if local.is_dir:
                if record is None or record.etag != remote.etag:
                    return decide(SyncAction.UPDATE_RECORD, "Folder exists on both sides")
                return decide(SyncAction.SKIP, "Folder unchanged")
            return self._compare_files(decide, local, remote, record)

        if local is not None:
            if record is None:
                if local.is_dir:
                    return decide(SyncAction.MKDIR_REMOTE, "New local folder")
                return decide(SyncAction.UPLOAD, "New local file")
            if local.is_dir or not self._local_changed(local, record):
                return decide(SyncAction.DELETE_LOCAL, "Deleted on the server")
            return decide(SyncAction.UPLOAD, "Deleted on the server but changed locally")

        assert remote is not None
        if record is None:
            if remote.is_dir:
                return decide(SyncAction.MKDIR_LOCAL, "New remote folder")
            return decide(SyncAction.DOWNLOAD, "New remote file")
        if remote.etag == record.etag:
            return decide(SyncAction.DELETE_REMOTE, "Deleted locally")
        if remote.is_dir:
            return decide(SyncAction.MKDIR_LOCAL, "Deleted locally but changed on the server")
        return decide(SyncAction.DOWNLOAD, "Deleted locally but changed on the server")

    @staticmethod
    def _local_changed(local: LocalItem, record: JournalRecord) -> bool:
        return local.size != record.size or int(local.mtime) != int(record.mtime)

    def _compare_files(
        self,
        decide,
        local: LocalItem,
        remote: RemoteEntry,
        record: Optional[JournalRecord],
    ) -> SyncDecision:
        if record is None:
            if local.size == remote.size and int(local.mtime) == int(remote.mtime):
                return decide(SyncAction.UPDATE_RECORD, "Identical on both sides")
            return decide(SyncAction.CONFLICT, "New on both sides with different content")

        local_changed = self._local_changed(local, record)
        remote_changed = remote.etag != record.etag
        if local_changed and remote_changed:
            if local.size == remote.size and int(local.mtime) == int(remote.mtime):
                return decide(SyncAction.UPDATE_RECORD, "Same change on both sides")
            return decide(SyncAction.CONFLICT, "Changed on both sides")
        if local_changed:
            return decide(SyncAction.UPLOAD, "Changed locally")
        if remote_changed:
            return decide(SyncAction.DOWNLOAD, "Changed on the server")
        return decide(SyncAction.SKIP, "Unchanged")

    @staticmethod
    def _fold_folder_deletions(decisions: dict[str, SyncDecision]) -> None:
        """Collapse folder deletions.

        A folder is only deleted if everything below it is deleted as well;
        then the deletion of the folder covers its content. Otherwise the
        folder is recreated on the side where it went missing.
        """
        for path in sorted(decisions, key=lambda p: p.count("/"), reverse=True):
            decision = decisions[path]
            if decision.action not in DELETIONS or not decision.is_dir:
                continue
            prefix = path + "/"
            below = [p for p in decisions if p.startswith(prefix)]
            keeps_content = any(
                decisions[p].action not in DELETIONS + (SyncAction.REMOVE_RECORD,)
                for p in below
            )
            if keeps_content:
                if decision.action == SyncAction.DELETE_LOCAL:
                    decision.action = SyncAction.MKDIR_REMOTE
                else:
                    decision.action = SyncAction.MKDIR_LOCAL
                decision.reason = "Folder deleted on one side but content changed"
                continue
            for p in below:
                if decisions[p].action in DELETIONS:
                    decisions[p].action = SyncAction.REMOVE_RECORD
                    decisions[p].reason = "Removed with its folder"
