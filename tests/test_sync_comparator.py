"""Tests for the sync comparator."""

from pathlib import Path

from davsync.journal import ItemType, JournalRecord
from davsync.sync.comparator import FileComparator, SyncAction
from davsync.sync.dav import RemoteEntry
from davsync.sync.scanner import LocalItem


def _local(path, is_dir=False, size=10, mtime=1000.0):
    return LocalItem(
        path=Path("/sync") / path,
        relative_path=path,
        is_dir=is_dir,
        size=0 if is_dir else size,
        mtime=mtime,
    )


def _remote(path, etag="e1", is_dir=False, size=10, mtime=1000.0):
    return RemoteEntry(path=path, is_dir=is_dir, etag=etag, mtime=mtime, size=size)


def _record(path, etag="e1", is_dir=False, size=10, mtime=1000.0):
    return JournalRecord(
        path=path,
        type=ItemType.DIRECTORY if is_dir else ItemType.FILE,
        etag=etag,
        mtime=mtime,
        size=0 if is_dir else size,
    )


def _compare(local=(), remote=(), records=()):
    decisions = FileComparator().compare(
        {item.relative_path: item for item in local},
        {entry.path: entry for entry in remote},
        {record.path: record for record in records},
    )
    return {d.relative_path: d for d in decisions}


class TestNewItems:
    """Items seen on one side only, without journal record."""

    def test_new_local_file(self):
        decision = _compare(local=[_local("a.txt")])["a.txt"]
        assert decision.action == SyncAction.UPLOAD
        assert decision.reason == "New local file"

    def test_new_local_folder(self):
        decision = _compare(local=[_local("dir", is_dir=True)])["dir"]
        assert decision.action == SyncAction.MKDIR_REMOTE

    def test_new_remote_file(self):
        decision = _compare(remote=[_remote("a.txt")])["a.txt"]
        assert decision.action == SyncAction.DOWNLOAD
        assert decision.reason == "New remote file"

    def test_new_remote_folder(self):
        decision = _compare(remote=[_remote("dir", is_dir=True)])["dir"]
        assert decision.action == SyncAction.MKDIR_LOCAL

    def test_identical_on_both_sides(self):
        decision = _compare(local=[_local("a.txt")], remote=[_remote("a.txt")])["a.txt"]
        assert decision.action == SyncAction.UPDATE_RECORD

    def test_different_on_both_sides(self):
        decision = _compare(
            local=[_local("a.txt", size=1)], remote=[_remote("a.txt", size=2)]
        )["a.txt"]
        assert decision.action == SyncAction.CONFLICT


class TestKnownItems:
    """Items with a journal record."""

    def test_unchanged(self):
        decision = _compare(
            local=[_local("a.txt")], remote=[_remote("a.txt")], records=[_record("a.txt")]
        )["a.txt"]
        assert decision.action == SyncAction.SKIP
        assert decision.reason == "Unchanged"

    def test_changed_locally(self):
        decision = _compare(
            local=[_local("a.txt", size=20)],
            remote=[_remote("a.txt")],
            records=[_record("a.txt")],
        )["a.txt"]
        assert decision.action == SyncAction.UPLOAD
        assert decision.reason == "Changed locally"

    def test_changed_on_server(self):
        decision = _compare(
            local=[_local("a.txt")],
            remote=[_remote("a.txt", etag="e2")],
            records=[_record("a.txt")],
        )["a.txt"]
        assert decision.action == SyncAction.DOWNLOAD

    def test_changed_on_both_sides(self):
        decision = _compare(
            local=[_local("a.txt", mtime=2000.0)],
            remote=[_remote("a.txt", etag="e2", size=30)],
            records=[_record("a.txt")],
        )["a.txt"]
        assert decision.action == SyncAction.CONFLICT
        assert decision.reason == "Changed on both sides"

    def test_sub_second_mtime_difference_is_ignored(self):
        decision = _compare(
            local=[_local("a.txt", mtime=1000.4)],
            remote=[_remote("a.txt")],
            records=[_record("a.txt")],
        )["a.txt"]
        assert decision.action == SyncAction.SKIP

    def test_deleted_on_server(self):
        decision = _compare(local=[_local("a.txt")], records=[_record("a.txt")])["a.txt"]
        assert decision.action == SyncAction.DELETE_LOCAL

    def test_deleted_on_server_but_changed_locally(self):
        decision = _compare(
            local=[_local("a.txt", size=99)], records=[_record("a.txt")]
        )["a.txt"]
        assert decision.action == SyncAction.UPLOAD

    def test_deleted_locally(self):
        decision = _compare(remote=[_remote("a.txt")], records=[_record("a.txt")])["a.txt"]
        assert decision.action == SyncAction.DELETE_REMOTE

    def test_deleted_locally_but_changed_on_server(self):
        decision = _compare(
            remote=[_remote("a.txt", etag="e2")], records=[_record("a.txt")]
        )["a.txt"]
        assert decision.action == SyncAction.DOWNLOAD

    def test_gone_on_both_sides(self):
        decision = _compare(records=[_record("a.txt")])["a.txt"]
        assert decision.action == SyncAction.REMOVE_RECORD

    def test_type_mismatch(self):
        decision = _compare(
            local=[_local("x", is_dir=True)], remote=[_remote("x")]
        )["x"]
        assert decision.action == SyncAction.CONFLICT


class TestFolderDeletions:
    """Folder deletions are folded into a single deletion."""

    def test_whole_folder_deleted_locally(self):
        decisions = _compare(
            remote=[_remote("dir", "ed", is_dir=True), _remote("dir/f.txt")],
            records=[_record("dir", "ed", is_dir=True), _record("dir/f.txt")],
        )
        assert decisions["dir"].action == SyncAction.DELETE_REMOTE
        assert decisions["dir/f.txt"].action == SyncAction.REMOVE_RECORD

    def test_folder_deleted_locally_with_new_remote_content(self):
        decisions = _compare(
            remote=[
                _remote("dir", "ed2", is_dir=True),
                _remote("dir/f.txt"),
                _remote("dir/new.txt", "en"),
            ],
            records=[_record("dir", "ed", is_dir=True), _record("dir/f.txt")],
        )
        assert decisions["dir"].action == SyncAction.MKDIR_LOCAL
        assert decisions["dir/new.txt"].action == SyncAction.DOWNLOAD

    def test_folder_deleted_on_server_with_local_changes(self):
        decisions = _compare(
            local=[_local("dir", is_dir=True), _local("dir/f.txt", size=50)],
            records=[_record("dir", "ed", is_dir=True), _record("dir/f.txt")],
        )
        assert decisions["dir"].action == SyncAction.MKDIR_REMOTE
        assert decisions["dir/f.txt"].action == SyncAction.UPLOAD

    def test_decisions_are_sorted_parents_first(self):
        decisions = FileComparator().compare(
            {},
            {
                "b/c.txt": _remote("b/c.txt"),
                "b": _remote("b", is_dir=True),
                "a.txt": _remote("a.txt"),
            },
            {},
        )
        assert [d.relative_path for d in decisions] == ["a.txt", "b", "b/c.txt"]
