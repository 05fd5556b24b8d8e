"""Loading of the system and user exclude lists."""

import logging
from pathlib import Path
from typing import Union

from .exceptions import ExcludeListUnavailable
from .sync.context import SyncContext

logger = logging.getLogger(__name__)

PathLike = Union[str, Path, None]


class ExcludeListLoader:
    """Register exclude lists with a sync context.

    At least one configured list has to load; syncing without any exclude
    rules would pick up editor swap files, OS metadata and the like.
    """

    def __init__(self, context: SyncContext):
        self.context = context

    def _load_one(self, path: PathLike, label: str) -> bool:
        if not path:
            return False
        loaded = self.context.add_exclude_list(path)
        if loaded:
            logger.debug(f"Loaded {label} exclude list {path}")
        else:
            logger.warning(f"Could not load {label} exclude list {path}")
        return loaded

    def load(
        self, system_path: PathLike, user_path: PathLike
    ) -> tuple[bool, bool]:
        """Load the system and the user exclude list.

        Args:
            system_path: Exclude list shipped with the client (may be None)
            user_path: Exclude list given with ``--exclude`` (may be None)

        Returns:
            Tuple of (system_loaded, user_loaded)

        Raises:
            ExcludeListUnavailable: If lists are configured but none loaded
        """
        system_loaded = self._load_one(system_path, "system")
        user_loaded = self._load_one(user_path, "user")

        if not system_path and not user_path:
            logger.warning("No exclude list configured, syncing without exclude rules")
        elif not (system_loaded or user_loaded):
            raise ExcludeListUnavailable(
                "Cannot load system exclude list or list supplied via --exclude"
            )
        return system_loaded, user_loaded

