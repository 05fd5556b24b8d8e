"""Tests for exclude rules and the exclude list loader."""

from unittest.mock import Mock

import pytest

from davsync.exceptions import ExcludeListUnavailable
from davsync.excludes import ExcludeListLoader
from davsync.journal import JOURNAL_FILE_NAME
from davsync.sync.context import SyncContext
from davsync.sync.excludes import ExcludeRule, ExcludeRules


@pytest.fixture
def exclude_file(tmp_path):
    path = tmp_path / "sync-exclude.lst"
    path.write_text("# editor files\n*~\n]*.swp\nbuild/\ndocs/draft.txt\n\\#*#\n")
    return path


class TestExcludeRule:
    """Tests for parsing single exclude lines."""

    def test_plain_pattern(self):
        assert ExcludeRule.parse("*.tmp") == ExcludeRule("*.tmp")

    def test_removable_marker_is_stripped(self):
        assert ExcludeRule.parse("]*.swp") == ExcludeRule("*.swp")

    def test_directory_only(self):
        rule = ExcludeRule.parse("build/")
        assert rule.directory_only is True
        assert rule.matches("build", True)
        assert not rule.matches("build", False)

    def test_escaped_hash(self):
        assert ExcludeRule.parse("\\#*#").pattern == "#*#"

    @pytest.mark.parametrize("line", ["", "   ", "# comment", "/"])
    def test_ignored_lines(self, line):
        assert ExcludeRule.parse(line) is None

    def test_name_pattern_matches_at_any_depth(self):
        rule = ExcludeRule.parse("*~")
        assert rule.matches("a/b/file.txt~", False)

    def test_anchored_pattern(self):
        rule = ExcludeRule.parse("docs/draft.txt")
        assert rule.matches("docs/draft.txt", False)
        assert not rule.matches("other/docs/draft.txt", False)


class TestExcludeRules:
    """Tests for the rule store."""

    def test_journal_is_always_excluded(self):
        rules = ExcludeRules()
        assert rules.is_excluded(JOURNAL_FILE_NAME, False, ignore_hidden_files=False)
        assert rules.is_excluded(
            f"{JOURNAL_FILE_NAME}abc123.tmp", False, ignore_hidden_files=False
        )

    def test_hidden_files(self):
        rules = ExcludeRules()
        assert rules.is_excluded("dir/.hidden", False)
        assert not rules.is_excluded("dir/.hidden", False, ignore_hidden_files=False)

    def test_add_file(self, exclude_file):
        rules = ExcludeRules()
        assert rules.add_file(exclude_file) is True
        assert rules.files == [exclude_file]
        assert rules.is_excluded("notes.txt~", False)
        assert rules.is_excluded("a/.x.swp", False)
        assert rules.is_excluded("build", True)
        assert rules.is_excluded("#autosave#", False)
        assert not rules.is_excluded("build", False)
        assert not rules.is_excluded("notes.txt", False)

    def test_add_missing_file(self, tmp_path):
        assert ExcludeRules().add_file(tmp_path / "missing.lst") is False


class TestExcludeListLoader:
    """Tests for ExcludeListLoader."""

    @pytest.fixture
    def context(self, tmp_path):
        return SyncContext(tmp_path, "https://h/remote.php/webdav/")

    def test_both_lists_load(self, context, exclude_file, tmp_path):
        user_file = tmp_path / "user.lst"
        user_file.write_text("*.bak\n")
        result = ExcludeListLoader(context).load(exclude_file, user_file)
        assert result == (True, True)
        assert context.is_excluded("x.bak", False)

    def test_only_user_list_loads(self, context, exclude_file, tmp_path):
        result = ExcludeListLoader(context).load(tmp_path / "missing.lst", exclude_file)
        assert result == (False, True)

    def test_only_system_list_loads(self, context, exclude_file, tmp_path):
        result = ExcludeListLoader(context).load(exclude_file, tmp_path / "missing.lst")
        assert result == (True, False)

    def test_no_list_loads_is_fatal(self, context, tmp_path):
        with pytest.raises(ExcludeListUnavailable, match="Cannot load system exclude list"):
            ExcludeListLoader(context).load(tmp_path / "a.lst", tmp_path / "b.lst")

    def test_user_list_alone_missing_is_fatal(self, context, tmp_path):
        with pytest.raises(ExcludeListUnavailable):
            ExcludeListLoader(context).load(None, tmp_path / "missing.lst")

    def test_nothing_configured_continues(self, context, caplog):
        assert ExcludeListLoader(context).load(None, None) == (False, False)
        assert "No exclude list configured" in caplog.text

    def test_registers_through_context(self, exclude_file):
        context = Mock(spec=SyncContext)
        context.add_exclude_list.return_value = True
        ExcludeListLoader(context).load(exclude_file, None)
        context.add_exclude_list.assert_called_once_with(exclude_file)
