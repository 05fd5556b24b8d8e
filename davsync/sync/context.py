"""Low-level sync context, rebuilt for every pass."""

import logging
from pathlib import Path
from typing import Optional, Union

from ..proxy import ProxySettings
from .excludes import ExcludeRules

logger = logging.getLogger(__name__)

SYNC_LOGGER_NAME = "davsync.sync"


class SyncContext:
    """Per-pass state: local root, remote URL, exclude rules, hidden-file
    policy, proxy and the transport opened for the pass.

    A context must not be reused once :meth:`destroy` has been called.
    """

    def __init__(self, source_path: Union[str, Path], remote_url: str):
        self.local_root = Path(source_path)
        self.remote_url = remote_url
        self.ignore_hidden_files = True
        self.excludes = ExcludeRules()
        self.proxy = ProxySettings()
        self.silent = False
        self._client = None
        self._destroyed = False

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def add_exclude_list(self, path: Union[str, Path]) -> bool:
        """Register an exclude list file; False if it cannot be read."""
        return self.excludes.add_file(path)

    def set_log_level(self, silent: bool) -> None:
        self.silent = silent
        logging.getLogger(SYNC_LOGGER_NAME).setLevel(
            logging.WARNING if silent else logging.INFO
        )

    def is_excluded(self, relative_path: str, is_dir: bool) -> bool:
        return self.excludes.is_excluded(
            relative_path, is_dir, ignore_hidden_files=self.ignore_hidden_files
        )

    def open_client(self, account, **kwargs):
        """Create the WebDAV client of this pass (closed by :meth:`destroy`)."""
        if self._destroyed:
            raise RuntimeError("Sync context was destroyed")
        if self._client is None:
            self._client = account.create_client(proxy=self.proxy, **kwargs)
        return self._client

    def destroy(self) -> None:
        if self._destroyed:
            return
        if self._client is not None:
            self._client.close()
            self._client = None
        self._destroyed = True
        logger.debug(f"Destroyed sync context for {self.local_root}")


def create_context(
    source_path: Union[str, Path],
    remote_url: str,
    proxy: Optional[ProxySettings] = None,
) -> SyncContext:
    context = SyncContext(source_path, remote_url)
    if proxy is not None:
        context.proxy = proxy
    return context
