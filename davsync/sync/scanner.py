"""Local and remote discovery for a sync pass."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..journal import INVALID_ETAG, JournalRecord, SyncJournal
from ..selective_sync import blacklist_contains
from .dav import DavClient, RemoteEntry

logger = logging.getLogger(__name__)

PathFilter = Callable[[str, bool], bool]


@dataclass
class LocalItem:
    """A local file or folder with metadata."""

    path: Path
    """Absolute path"""

    relative_path: str
    """Relative path (using forward slashes for cross-platform compatibility)"""

    is_dir: bool
    size: int
    mtime: float
    inode: int = 0

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "LocalItem":
        stat = file_path.stat()
        is_dir = file_path.is_dir()
        return cls(
            path=file_path,
            relative_path=file_path.relative_to(base_path).as_posix(),
            is_dir=is_dir,
            size=0 if is_dir else stat.st_size,
            mtime=stat.st_mtime,
            inode=stat.st_ino,
        )


class LocalScanner:
    """Walks the local sync folder."""

    def __init__(self, is_excluded: PathFilter, blacklist: Optional[set[str]] = None):
        """Initialize the scanner.

        Args:
            is_excluded: Callable(relative_path, is_dir) for exclude rules
            blacklist: Selective sync folders to skip
        """
        self.is_excluded = is_excluded
        self.blacklist = blacklist or set()

    def _skip(self, relative_path: str, is_dir: bool) -> bool:
        if self.is_excluded(relative_path, is_dir):
            logger.debug(f"Excluded: {relative_path}")
            return True
        if is_dir and blacklist_contains(self.blacklist, relative_path):
            logger.debug(f"Not synced (selective sync): {relative_path}")
            return True
        return False

    def scan(self, root: Path) -> dict[str, LocalItem]:
        """Scan ``root`` recursively; symlinks are not followed."""
        items: dict[str, LocalItem] = {}
        self._scan_dir(root, root, items)
        return items

    def _scan_dir(self, directory: Path, root: Path, items: dict) -> None:
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except PermissionError as e:
            logger.warning(f"Permission denied: {e}")
            return

        for entry in entries:
            if entry.is_symlink():
                logger.debug(f"Skipping symlink: {entry.path}")
                continue
            is_dir = entry.is_dir()
            if not is_dir and not entry.is_file():
                continue
            path = Path(entry.path)
            relative_path = path.relative_to(root).as_posix()
            if self._skip(relative_path, is_dir):
                continue
            try:
                item = LocalItem.from_path(path, root)
            except OSError as e:
                logger.warning(f"Cannot stat {path}: {e}")
                continue
            items[relative_path] = item
            if is_dir:
                self._scan_dir(path, root, items)


class RemoteScanner:
    """Lists the remote sync folder.

    Folders whose ETag matches the journal are not listed again; their
    content is taken from the journal records instead. Invalidated records
    never match.
    """

    def __init__(
        self,
        client: DavClient,
        journal: SyncJournal,
        is_excluded: PathFilter,
        blacklist: Optional[set[str]] = None,
    ):
        self.client = client
        self.journal = journal
        self.is_excluded = is_excluded
        self.blacklist = blacklist or set()
        self.listed_folders = 0
        self.reused_folders = 0

    def _skip(self, relative_path: str, is_dir: bool) -> bool:
        if self.is_excluded(relative_path, is_dir):
            return True
        return is_dir and blacklist_contains(self.blacklist, relative_path)

    def _can_reuse(self, entry: RemoteEntry) -> bool:
        record = self.journal.get_record(entry.path)
        return (
            record is not None
            and record.is_directory
            and bool(entry.etag)
            and record.etag != INVALID_ETAG
            and record.etag == entry.etag
        )

    def _reuse(self, folder: str, entries: dict[str, RemoteEntry]) -> None:
        self.reused_folders += 1
        for record in self.journal.records_below(folder):
            if self._skip_record(record):
                continue
            entries[record.path] = RemoteEntry(
                path=record.path,
                is_dir=record.is_directory,
                etag=record.etag,
                mtime=record.mtime,
                size=record.size,
            )

    def _skip_record(self, record: JournalRecord) -> bool:
        parts = record.path.split("/")
        for depth in range(1, len(parts) + 1):
            sub_path = "/".join(parts[:depth])
            is_dir = depth < len(parts) or record.is_directory
            if self._skip(sub_path, is_dir):
                return True
        return False

    def scan(self) -> tuple[RemoteEntry, dict[str, RemoteEntry]]:
        """List the remote tree.

        Returns:
            Tuple of (the sync root entry, all entries below it by path)
        """
        root, children = self.client.list_folder("")
        self.listed_folders += 1
        entries: dict[str, RemoteEntry] = {}
        pending = [children]
        while pending:
            for entry in pending.pop():
                if self._skip(entry.path, entry.is_dir):
                    continue
                entries[entry.path] = entry
                if not entry.is_dir:
                    continue
                if self._can_reuse(entry):
                    self._reuse(entry.path, entries)
                else:
                    _folder, sub_children = self.client.list_folder(entry.path)
                    self.listed_folders += 1
                    pending.append(sub_children)
        logger.debug(
            f"Remote discovery listed {self.listed_folders} folder(s), "
            f"reused {self.reused_folders} from the journal"
        )
        return root, entries
