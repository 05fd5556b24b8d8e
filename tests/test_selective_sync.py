"""Tests for selective sync reconciliation."""

from unittest.mock import Mock

import pytest

from davsync.journal import (
    INVALID_ETAG,
    ItemType,
    JournalRecord,
    SelectiveSyncListKind,
    SyncJournal,
)
from davsync.selective_sync import (
    SelectiveSyncReconciler,
    blacklist_contains,
    normalize_folder,
    read_selective_sync_file,
)

BLACKLIST = SelectiveSyncListKind.BLACKLIST


@pytest.fixture
def journal(tmp_path):
    journal = SyncJournal(tmp_path)
    journal.set_selective_sync_list(BLACKLIST, {"/a/", "/b/"})
    return journal


class TestReadSelectiveSyncFile:
    """Tests for read_selective_sync_file."""

    def test_reads_and_normalizes(self, tmp_path):
        path = tmp_path / "unsynced.lst"
        path.write_text("/a\n/b/\n\n# comment\n  /c/  \n")
        assert read_selective_sync_file(path) == {"/a/", "/b/", "/c/"}

    def test_relative_entries_get_leading_slash(self, tmp_path):
        path = tmp_path / "unsynced.lst"
        path.write_text("a\n/a/\nb/c\n")
        assert read_selective_sync_file(path) == {"/a/", "/b/c/"}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "unsynced.lst"
        path.write_text("")
        assert read_selective_sync_file(path) == set()

    def test_unreadable_file(self, tmp_path, caplog):
        assert read_selective_sync_file(tmp_path / "missing.lst") is None
        assert "Could not open file containing the list of unsynced folders" in caplog.text


class TestBlacklistContains:
    """Tests for blacklist_contains."""

    def test_folder_and_children(self):
        blacklist = {"/a/"}
        assert blacklist_contains(blacklist, "a")
        assert blacklist_contains(blacklist, "a/sub")
        assert not blacklist_contains(blacklist, "ab")
        assert not blacklist_contains(blacklist, "b")

    def test_relative_entries_match(self):
        assert blacklist_contains({"a/"}, "a/sub")
        assert blacklist_contains({"a"}, "/a")
        assert not blacklist_contains({"/"}, "a")

    def test_normalize_folder(self):
        assert normalize_folder("/x") == "/x/"
        assert normalize_folder("/x/") == "/x/"

    def test_normalize_folder_single_form(self):
        """Relative and absolute spellings of a folder normalize alike."""
        assert normalize_folder("a/") == normalize_folder("/a/") == "/a/"
        assert normalize_folder("a/b") == "/a/b/"
        assert normalize_folder("//a//") == "/a/"
        assert normalize_folder("") == "/"


class TestSelectiveSyncReconciler:
    """Tests for SelectiveSyncReconciler."""

    def test_invalidates_symmetric_difference(self, journal):
        """Folders entering or leaving the list are invalidated, others are not."""
        changed = SelectiveSyncReconciler().reconcile(journal, {"/b/", "/c/"})
        assert changed == {"/a/", "/c/"}
        assert journal.get_selective_sync_list(BLACKLIST) == {"/b/", "/c/"}

    def test_invalidation_calls(self):
        mock_journal = Mock(spec=SyncJournal)
        mock_journal.exists.return_value = True
        mock_journal.get_selective_sync_list.return_value = {"/a/", "/b/"}

        SelectiveSyncReconciler().reconcile(mock_journal, {"/b/", "/c/"})

        invalidated = {
            call.args[0]
            for call in mock_journal.avoid_read_from_db_on_next_sync.call_args_list
        }
        assert invalidated == {"/a/", "/c/"}
        mock_journal.set_selective_sync_list.assert_called_once_with(
            BLACKLIST, {"/b/", "/c/"}
        )

    def test_new_list_is_persisted(self, tmp_path, journal):
        SelectiveSyncReconciler().reconcile(journal, {"/b/", "/c/"})
        reloaded = SyncJournal(tmp_path)
        assert reloaded.get_selective_sync_list(BLACKLIST) == {"/b/", "/c/"}

    def test_invalidated_etags_are_persisted(self, tmp_path, journal):
        journal.set_record(JournalRecord("", ItemType.DIRECTORY, etag="root"))
        journal.set_record(JournalRecord("a", ItemType.DIRECTORY, etag="ea"))
        journal.set_record(JournalRecord("b", ItemType.DIRECTORY, etag="eb"))
        journal.commit()

        SelectiveSyncReconciler().reconcile(journal, {"/b/"})

        reloaded = SyncJournal(tmp_path)
        assert reloaded.get_record("a").etag == INVALID_ETAG
        assert reloaded.get_record("").etag == INVALID_ETAG
        assert reloaded.get_record("b").etag == "eb"

    def test_idempotent(self, journal):
        reconciler = SelectiveSyncReconciler()
        reconciler.reconcile(journal, {"/b/", "/c/"})
        assert reconciler.reconcile(journal, {"/b/", "/c/"}) == set()

    def test_first_run_stores_list_without_invalidation(self, tmp_path):
        journal = SyncJournal(tmp_path)
        changed = SelectiveSyncReconciler().reconcile(journal, {"/x/"})
        assert changed == set()
        assert SyncJournal(tmp_path).get_selective_sync_list(BLACKLIST) == {"/x/"}

    def test_spelling_change_is_not_a_list_change(self, tmp_path):
        """A stored "a/" and a new "/a/" name the same folder."""
        journal = SyncJournal(tmp_path)
        journal.set_selective_sync_list(BLACKLIST, {"a/"})

        changed = SelectiveSyncReconciler().reconcile(journal, {"/a/"})

        assert changed == set()
        assert journal.get_selective_sync_list(BLACKLIST) == {"/a/"}

    def test_empty_set_clears_list(self, journal):
        changed = SelectiveSyncReconciler().reconcile(journal, set())
        assert changed == {"/a/", "/b/"}
        assert journal.get_selective_sync_list(BLACKLIST) == set()
