"""Ambient client configuration.

Settings that do not come from the command line are read from the
environment and from ``davsync.cfg`` in the user's config directory::

    [proxy]
    type = http
    host = proxy.example.com
    port = 3128
    user = alice
    password = secret

``type`` is one of ``none``, ``system`` (use the HTTP(S)_PROXY environment)
or ``http``.
"""

import configparser
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "davsync.cfg"
EXCLUDE_FILE_NAME = "sync-exclude.lst"
SYSTEM_EXCLUDE_DIR = Path("/etc/davsync")
BUNDLED_EXCLUDE_FILE = Path(__file__).parent / "data" / EXCLUDE_FILE_NAME


@dataclass(frozen=True)
class ConfiguredProxy:
    """Proxy section of the client config file."""

    type: str = "system"
    host: str = ""
    port: int = 0
    user: str = ""
    password: str = ""


class ClientConfig:
    """Read-only view on the ambient client configuration."""

    def get_config_dir(self) -> Path:
        """Return the config directory (``$DAVSYNC_CONFIG_DIR`` or ~/.config/davsync)."""
        env_dir = os.environ.get("DAVSYNC_CONFIG_DIR")
        if env_dir:
            return Path(env_dir).expanduser()
        return Path.home() / ".config" / "davsync"

    def get_config_path(self) -> Path:
        return self.get_config_dir() / CONFIG_FILE_NAME

    def system_exclude_file(self) -> Optional[Path]:
        """Locate the system exclude list.

        Returns:
            First existing candidate, or None if no exclude list is installed
        """
        candidates = []
        env_file = os.environ.get("DAVSYNC_SYSTEM_EXCLUDE")
        if env_file:
            candidates.append(Path(env_file).expanduser())
        candidates.extend(
            [
                self.get_config_dir() / EXCLUDE_FILE_NAME,
                SYSTEM_EXCLUDE_DIR / EXCLUDE_FILE_NAME,
                BUNDLED_EXCLUDE_FILE,
            ]
        )
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        return None

    def proxy_settings(self) -> ConfiguredProxy:
        """Read the ``[proxy]`` section of the config file.

        A missing or unreadable file means ``system``.
        """
        path = self.get_config_path()
        parser = configparser.ConfigParser()
        try:
            read = parser.read(path, encoding="utf-8")
        except configparser.Error as e:
            logger.warning(f"Failed to read client config {path}: {e}")
            return ConfiguredProxy()
        if not read or not parser.has_section("proxy"):
            return ConfiguredProxy()

        section = parser["proxy"]
        try:
            port = section.getint("port", fallback=0)
        except ValueError:
            logger.warning(f"Invalid proxy port in {path}: {section.get('port')}")
            port = 0
        return ConfiguredProxy(
            type=section.get("type", "system").strip().lower(),
            host=section.get("host", "").strip(),
            port=port,
            user=section.get("user", ""),
            password=section.get("password", ""),
        )


config = ClientConfig()
