"""Exclude rules: local paths that are never synchronized."""

import fnmatch
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..journal import JOURNAL_FILE_NAME

logger = logging.getLogger(__name__)

ALWAYS_EXCLUDED = (JOURNAL_FILE_NAME, f"{JOURNAL_FILE_NAME}*.tmp")


@dataclass(frozen=True)
class ExcludeRule:
    """A single glob pattern from an exclude list."""

    pattern: str
    directory_only: bool = False

    @property
    def anchored(self) -> bool:
        return "/" in self.pattern

    @classmethod
    def parse(cls, line: str) -> Optional["ExcludeRule"]:
        """Parse one exclude list line; comments and blanks yield None.

        Examples:
            >>> ExcludeRule.parse("]*.~*")
            ExcludeRule(pattern='*.~*', directory_only=False)
            >>> ExcludeRule.parse("build/")
            ExcludeRule(pattern='build', directory_only=True)
            >>> ExcludeRule.parse("# comment") is None
            True
        """
        pattern = line.rstrip("\r\n")
        if not pattern.strip() or pattern.startswith("#"):
            return None
        # the "]" marker (removable with its folder) does not change matching
        if pattern.startswith("]"):
            pattern = pattern[1:]
        if pattern.startswith("\\#"):
            pattern = pattern[1:]
        directory_only = pattern.endswith("/")
        pattern = pattern.rstrip("/")
        if not pattern:
            return None
        return cls(pattern=pattern, directory_only=directory_only)

    def matches(self, relative_path: str, is_dir: bool) -> bool:
        if self.directory_only and not is_dir:
            return False
        if self.anchored:
            return fnmatch.fnmatchcase(relative_path, self.pattern.lstrip("/"))
        name = relative_path.rsplit("/", 1)[-1]
        return fnmatch.fnmatchcase(name, self.pattern)


class ExcludeRules:
    """Rule store of a sync context, filled from exclude list files."""

    def __init__(self) -> None:
        self.rules: list[ExcludeRule] = [
            ExcludeRule(pattern) for pattern in ALWAYS_EXCLUDED
        ]
        self.files: list[Path] = []

    def add_pattern(self, line: str) -> bool:
        rule = ExcludeRule.parse(line)
        if rule is None:
            return False
        self.rules.append(rule)
        return True

    def add_file(self, path: Union[str, Path]) -> bool:
        """Load all rules of an exclude list file.

        Returns:
            False if the file cannot be read, True otherwise
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug(f"Cannot read exclude list {path}: {e}")
            return False
        count = sum(1 for line in text.splitlines() if self.add_pattern(line))
        self.files.append(path)
        logger.debug(f"Loaded {count} exclude rule(s) from {path}")
        return True

    def is_excluded(
        self, relative_path: str, is_dir: bool, ignore_hidden_files: bool = True
    ) -> bool:
        """Check a path relative to the sync root (forward slashes)."""
        relative_path = relative_path.strip("/")
        if ignore_hidden_files and relative_path.rsplit("/", 1)[-1].startswith("."):
            return True
        return any(rule.matches(relative_path, is_dir) for rule in self.rules)
