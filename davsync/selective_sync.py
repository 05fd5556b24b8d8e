"""Selective sync: reconcile the folder blacklist with the journal."""

import logging
from pathlib import Path
from typing import Optional, Union

from .journal import SelectiveSyncListKind, SyncJournal

logger = logging.getLogger(__name__)


def normalize_folder(path: str) -> str:
    """Return ``path`` in the stored form: one leading and one trailing ``/``.

    >>> normalize_folder("a/b")
    '/a/b/'
    >>> normalize_folder("/a/b/")
    '/a/b/'
    """
    folder = path.strip("/")
    return f"/{folder}/" if folder else "/"


def read_selective_sync_file(path: Union[str, Path]) -> Optional[set[str]]:
    """Read the list of unsynced folders, one per line.

    Blank lines and lines starting with ``#`` are skipped; every entry is
    normalized to ``/folder/``.

    Returns:
        The exclusion set, or None if the file cannot be read
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error(
            f"Could not open file containing the list of unsynced folders: {path} ({e})"
        )
        return None

    folders = set()
    for line in text.split("\n"):
        entry = line.strip()
        if not entry or line.startswith("#"):
            continue
        folders.add(normalize_folder(entry))
    return folders


def blacklist_contains(blacklist: set[str], relative_path: str) -> bool:
    """True if ``relative_path`` is a blacklisted folder or lies below one."""
    candidate = normalize_folder(relative_path)
    for entry in blacklist:
        folder = normalize_folder(entry)
        if folder != "/" and candidate.startswith(folder):
            return True
    return False


class SelectiveSyncReconciler:
    """Bring the journal's blacklist in line with a newly supplied one.

    Folders entering or leaving the blacklist get their cached metadata
    invalidated so the next discovery compares them against the server
    instead of trusting the journal.
    """

    kind = SelectiveSyncListKind.BLACKLIST

    def reconcile(self, journal: SyncJournal, new_set: set[str]) -> set[str]:
        """Persist ``new_set`` as the blacklist.

        Args:
            journal: Journal of the sync folder
            new_set: Normalized folders to exclude

        Returns:
            Folders whose cached metadata was invalidated
        """
        new_set = {normalize_folder(p) for p in new_set}

        if not journal.exists():
            logger.debug("No sync journal yet, storing selective sync list")
            journal.set_selective_sync_list(self.kind, new_set)
            return set()

        # lists written by older runs may lack the leading slash
        old_set = {
            normalize_folder(p) for p in journal.get_selective_sync_list(self.kind)
        }
        changed = (old_set - new_set) | (new_set - old_set)
        for path in sorted(changed):
            journal.avoid_read_from_db_on_next_sync(path)

        if changed:
            logger.info(f"Selective sync list changed for {len(changed)} folder(s)")
        # one commit: the invalidations and the new list land together
        journal.set_selective_sync_list(self.kind, new_set)
        return changed
