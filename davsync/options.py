"""Run options for a single davsync invocation."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .exceptions import DavSyncConfigError

DEFAULT_DAV_PATH = "remote.php/webdav/"
NONSHIB_DAV_PATH = "remote.php/nonshib-webdav/"
DEFAULT_MAX_RESTARTS = 3


@dataclass(frozen=True)
class RunOptions:
    """Immutable options of one run, built once from the command line."""

    source_dir: str
    """Local directory, always ending with a path separator"""

    target_url: str
    """Remote URL, always ending with ``/`` and containing ``dav_path``"""

    dav_path: str = DEFAULT_DAV_PATH
    """Resolved WebDAV path below the server root"""

    proxy: Optional[str] = None
    user: str = ""
    password: str = ""
    use_netrc: bool = False
    interactive: bool = True
    ignore_hidden_files: bool = True
    non_shib: bool = False
    trust_ssl: bool = False
    exclude: Optional[str] = None
    unsynced_folders: Optional[str] = None
    max_restarts: int = DEFAULT_MAX_RESTARTS
    silent: bool = False

    @property
    def source_path(self) -> Path:
        return Path(self.source_dir)


def resolve_dav_path(non_shib: bool = False, dav_path: Optional[str] = None) -> str:
    """Return the WebDAV path; an explicit override wins over ``non_shib``.

    Examples:
        >>> resolve_dav_path()
        'remote.php/webdav/'
        >>> resolve_dav_path(non_shib=True)
        'remote.php/nonshib-webdav/'
        >>> resolve_dav_path(True, "/dav/files")
        'dav/files/'
    """
    if dav_path:
        path = dav_path.lstrip("/")
        if not path.endswith("/"):
            path += "/"
        return path
    return NONSHIB_DAV_PATH if non_shib else DEFAULT_DAV_PATH


def normalize_source_dir(source_dir: str) -> str:
    """Append a trailing separator to ``source_dir`` if it has none."""
    if source_dir and not source_dir.endswith(("/", os.sep)):
        source_dir += os.sep
    return source_dir


def normalize_target_url(target_url: str, dav_path: str) -> str:
    """Ensure ``target_url`` ends with ``/`` and contains ``dav_path``."""
    if not target_url.endswith("/"):
        target_url += "/"
    if dav_path not in target_url:
        target_url += dav_path
    return target_url


def build_run_options(
    source_dir: str,
    target_url: str,
    *,
    non_shib: bool = False,
    dav_path: Optional[str] = None,
    **kwargs,
) -> RunOptions:
    """Validate and normalize command line values into :class:`RunOptions`.

    Args:
        source_dir: Local directory to sync
        target_url: Server URL, with or without the dav path
        non_shib: Use the non-Shibboleth dav path
        dav_path: Explicit dav path, overrides ``non_shib``
        **kwargs: Remaining :class:`RunOptions` fields

    Returns:
        Normalized run options

    Raises:
        DavSyncConfigError: If source or target is empty or the source
            directory does not exist
    """
    if not source_dir or not target_url:
        raise DavSyncConfigError("Both <source_dir> and <server_url> are required")

    source_dir = normalize_source_dir(source_dir)
    if not os.path.exists(source_dir):
        raise DavSyncConfigError(f"Source dir '{source_dir}' does not exist.")
    if not os.path.isdir(source_dir):
        raise DavSyncConfigError(f"Source dir '{source_dir}' is not a directory.")

    resolved_dav_path = resolve_dav_path(non_shib, dav_path)
    return RunOptions(
        source_dir=source_dir,
        target_url=normalize_target_url(target_url, resolved_dav_path),
        dav_path=resolved_dav_path,
        non_shib=non_shib,
        **kwargs,
    )
