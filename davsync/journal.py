"""Persisted sync journal.

The journal lives inside the synced directory and remembers, per item,
the metadata seen after the last successful propagation, plus the
selective sync lists. It is opened once per process and shared by every
pass of a run.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

JOURNAL_FILE_NAME = ".davsync_journal.json"
JOURNAL_VERSION = 1
INVALID_ETAG = "_invalid_"


class SelectiveSyncListKind(str, Enum):
    """Kinds of selective sync lists stored in the journal."""

    BLACKLIST = "blacklist"
    """Remote folders excluded from sync"""


class ItemType(str, Enum):
    FILE = "file"
    DIRECTORY = "dir"


@dataclass
class JournalRecord:
    """Metadata of one item after its last successful sync."""

    path: str
    """Relative path, forward slashes, no trailing slash"""

    type: ItemType
    etag: str = ""
    mtime: float = 0.0
    size: int = 0
    inode: int = 0

    @property
    def is_directory(self) -> bool:
        return self.type == ItemType.DIRECTORY

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "etag": self.etag,
            "mtime": self.mtime,
            "size": self.size,
            "inode": self.inode,
        }

    @classmethod
    def from_dict(cls, path: str, data: dict) -> "JournalRecord":
        return cls(
            path=path,
            type=ItemType(data.get("type", ItemType.FILE.value)),
            etag=data.get("etag", ""),
            mtime=float(data.get("mtime", 0.0)),
            size=int(data.get("size", 0)),
            inode=int(data.get("inode", 0)),
        )


def _strip_path(path: str) -> str:
    return path.strip("/")


class SyncJournal:
    """JSON backed journal for one local sync folder."""

    def __init__(self, source_dir: Union[str, Path]):
        self.source_dir = Path(source_dir)
        self.path = self.source_dir / JOURNAL_FILE_NAME
        self._records: dict[str, JournalRecord] = {}
        self._selective_sync: dict[str, list[str]] = {}
        self._loaded = False

    def exists(self) -> bool:
        """True once the journal has been written to disk."""
        return self.path.is_file()

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        if not self.exists():
            return
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load sync journal {self.path}: {e}")
            return

        if data.get("version") != JOURNAL_VERSION:
            logger.warning(
                f"Ignoring sync journal with unknown version {data.get('version')}"
            )
            return
        self._selective_sync = {
            kind: list(paths)
            for kind, paths in data.get("selective_sync", {}).items()
        }
        self._records = {
            path: JournalRecord.from_dict(path, entry)
            for path, entry in data.get("files", {}).items()
        }
        logger.debug(f"Loaded sync journal with {len(self._records)} records")

    def commit(self) -> None:
        """Write the journal atomically (temporary file, then rename)."""
        self._ensure_loaded()
        data = {
            "version": JOURNAL_VERSION,
            "selective_sync": self._selective_sync,
            "files": {
                path: record.to_dict()
                for path, record in sorted(self._records.items())
            },
        }
        fd, tmp_name = tempfile.mkstemp(
            prefix=JOURNAL_FILE_NAME, suffix=".tmp", dir=self.source_dir
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    # =========================
    # Selective sync
    # =========================

    def get_selective_sync_list(self, kind: SelectiveSyncListKind) -> set[str]:
        self._ensure_loaded()
        return set(self._selective_sync.get(kind.value, []))

    def set_selective_sync_list(
        self, kind: SelectiveSyncListKind, paths: set[str]
    ) -> None:
        """Replace the list of ``kind`` and commit the journal."""
        self._ensure_loaded()
        self._selective_sync[kind.value] = sorted(paths)
        self.commit()

    def avoid_read_from_db_on_next_sync(self, path: str) -> None:
        """Invalidate the etags of ``path`` and of all its parent folders.

        The next remote discovery then lists these folders again instead of
        reusing the records stored here. Takes effect with the next commit.
        """
        self._ensure_loaded()
        target = _strip_path(path)
        for record in self._records.values():
            if not record.is_directory:
                continue
            if (
                record.path == ""
                or record.path == target
                or target.startswith(record.path + "/")
            ):
                record.etag = INVALID_ETAG
        logger.debug(f"Invalidated cached metadata for {target or '/'}")

    # =========================
    # File records
    # =========================

    def get_record(self, path: str) -> Optional[JournalRecord]:
        self._ensure_loaded()
        return self._records.get(_strip_path(path))

    def set_record(self, record: JournalRecord) -> None:
        self._ensure_loaded()
        record.path = _strip_path(record.path)
        self._records[record.path] = record

    def delete_record(self, path: str, recursive: bool = True) -> None:
        """Remove the record of ``path`` and, for folders, everything below."""
        self._ensure_loaded()
        target = _strip_path(path)
        self._records.pop(target, None)
        if recursive:
            prefix = target + "/"
            for key in [k for k in self._records if k.startswith(prefix)]:
                del self._records[key]

    def records_below(self, path: str) -> list[JournalRecord]:
        """All records strictly below folder ``path``."""
        self._ensure_loaded()
        target = _strip_path(path)
        prefix = target + "/" if target else ""
        return [
            record
            for key, record in self._records.items()
            if key and key.startswith(prefix) and key != target
        ]

    def all_records(self) -> list[JournalRecord]:
        self._ensure_loaded()
        return list(self._records.values())
