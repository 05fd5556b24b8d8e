"""Tests for local and remote discovery."""

import os
from unittest.mock import Mock

import pytest

from davsync.journal import INVALID_ETAG, ItemType, JournalRecord, SyncJournal
from davsync.sync.dav import DavClient, RemoteEntry
from davsync.sync.excludes import ExcludeRules
from davsync.sync.scanner import LocalScanner, RemoteScanner


def no_excludes(relative_path, is_dir):
    return False


class TestLocalScanner:
    """Tests for LocalScanner."""

    @pytest.fixture
    def tree(self, tmp_path):
        (tmp_path / "a").mkdir()
        (tmp_path / "a" / "one.txt").write_text("1")
        (tmp_path / "b").mkdir()
        (tmp_path / "b" / "two.txt").write_text("22")
        (tmp_path / "top.txt").write_text("333")
        return tmp_path

    def test_scan_all(self, tree):
        items = LocalScanner(no_excludes).scan(tree)
        assert set(items) == {"a", "a/one.txt", "b", "b/two.txt", "top.txt"}
        assert items["a"].is_dir
        assert items["a"].size == 0
        assert items["b/two.txt"].size == 2
        assert items["top.txt"].relative_path == "top.txt"

    def test_excluded_folder_is_not_descended(self, tree):
        items = LocalScanner(lambda path, is_dir: path == "a").scan(tree)
        assert "a" not in items
        assert "a/one.txt" not in items

    def test_blacklisted_folder_is_skipped(self, tree):
        items = LocalScanner(no_excludes, blacklist={"/b/"}).scan(tree)
        assert "b" not in items
        assert "b/two.txt" not in items
        assert "a/one.txt" in items

    def test_hidden_files_follow_rules(self, tree):
        (tree / ".hidden").write_text("x")
        rules = ExcludeRules()
        hidden_ignored = LocalScanner(rules.is_excluded).scan(tree)
        assert ".hidden" not in hidden_ignored
        hidden_synced = LocalScanner(
            lambda path, is_dir: rules.is_excluded(path, is_dir, ignore_hidden_files=False)
        ).scan(tree)
        assert ".hidden" in hidden_synced

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
    def test_symlinks_are_skipped(self, tree):
        os.symlink(tree / "top.txt", tree / "link.txt")
        assert "link.txt" not in LocalScanner(no_excludes).scan(tree)


class TestRemoteScanner:
    """Tests for RemoteScanner."""

    @pytest.fixture
    def journal(self, tmp_path):
        return SyncJournal(tmp_path)

    @pytest.fixture
    def client(self):
        listings = {
            "": (
                RemoteEntry("", True, "root"),
                [RemoteEntry("docs", True, "edocs"), RemoteEntry("top.txt", False, "etop")],
            ),
            "docs": (
                RemoteEntry("docs", True, "edocs"),
                [RemoteEntry("docs/readme.md", False, "ereadme", size=4)],
            ),
        }
        client = Mock(spec=DavClient)
        client.list_folder.side_effect = lambda path: listings[path]
        return client

    def test_lists_every_folder_without_journal(self, client, journal):
        scanner = RemoteScanner(client, journal, no_excludes)
        root, entries = scanner.scan()
        assert root.etag == "root"
        assert set(entries) == {"docs", "docs/readme.md", "top.txt"}
        assert scanner.listed_folders == 2
        assert scanner.reused_folders == 0

    def test_reuses_unchanged_folder_from_journal(self, client, journal):
        journal.set_record(JournalRecord("docs", ItemType.DIRECTORY, etag="edocs"))
        journal.set_record(
            JournalRecord("docs/readme.md", ItemType.FILE, etag="ereadme", size=4, mtime=5.0)
        )
        scanner = RemoteScanner(client, journal, no_excludes)
        _root, entries = scanner.scan()

        client.list_folder.assert_called_once_with("")
        assert scanner.reused_folders == 1
        assert entries["docs/readme.md"].etag == "ereadme"
        assert entries["docs/readme.md"].mtime == 5.0

    def test_invalidated_folder_is_listed(self, client, journal):
        journal.set_record(JournalRecord("docs", ItemType.DIRECTORY, etag="edocs"))
        journal.avoid_read_from_db_on_next_sync("docs")
        assert journal.get_record("docs").etag == INVALID_ETAG

        scanner = RemoteScanner(client, journal, no_excludes)
        scanner.scan()
        assert scanner.listed_folders == 2

    def test_blacklisted_folder_is_not_listed(self, client, journal):
        scanner = RemoteScanner(client, journal, no_excludes, blacklist={"/docs/"})
        _root, entries = scanner.scan()
        assert set(entries) == {"top.txt"}
        client.list_folder.assert_called_once_with("")

    def test_excluded_entries(self, client, journal):
        scanner = RemoteScanner(client, journal, lambda path, is_dir: path.endswith(".md"))
        _root, entries = scanner.scan()
        assert "docs/readme.md" not in entries
