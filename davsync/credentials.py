"""Credential resolution for the command line client.

Credentials are collected once per run, later sources overriding earlier
ones:

1. user name and password embedded in the server URL
2. ``--user`` / ``--password`` options
3. the netrc entry for the server host (``-n``), always as a pair
4. an interactive prompt for whatever is still empty
"""

import logging
import netrc
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import httpx

from .terminal import query_password, query_user

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedCredentials:
    """Final credentials used for the whole run."""

    user: str
    password: str
    ssl_trusted: bool = False


class NetrcParser:
    """Host lookup in a netrc(5) file."""

    def __init__(self, path: Optional[Path] = None):
        """Initialize the parser.

        Args:
            path: netrc file (default: ``$NETRC`` or ``~/.netrc``)
        """
        if path is None:
            env_path = os.environ.get("NETRC")
            path = Path(env_path) if env_path else Path.home() / ".netrc"
        self.path = path
        self._netrc: Optional[netrc.netrc] = None

    def parse(self) -> bool:
        """Parse the file; returns False if it is missing or malformed."""
        try:
            self._netrc = netrc.netrc(str(self.path))
        except FileNotFoundError:
            logger.debug(f"No netrc file at {self.path}")
            return False
        except (netrc.NetrcParseError, OSError) as e:
            logger.warning(f"Failed to parse netrc file {self.path}: {e}")
            return False
        return True

    def find(self, host: str) -> Optional[tuple[str, str]]:
        """Return ``(login, password)`` for ``host`` or the default entry."""
        if self._netrc is None:
            return None
        entry = self._netrc.authenticators(host)
        if entry is None:
            return None
        login, _account, password = entry
        return login or "", password or ""


class CredentialResolver:
    """Merge all credential sources into a single user/password pair."""

    def __init__(
        self,
        netrc_parser: Optional[NetrcParser] = None,
        user_reader: Callable[[], str] = query_user,
        password_reader: Callable[[str], str] = query_password,
    ):
        self.netrc_parser = netrc_parser
        self.user_reader = user_reader
        self.password_reader = password_reader

    def resolve(
        self,
        url_user: str,
        url_password: str,
        option_user: str,
        option_password: str,
        netrc_enabled: bool,
        interactive: bool,
        target_host: str,
        trust_ssl: bool = False,
    ) -> ResolvedCredentials:
        """Resolve the credentials for ``target_host``.

        Empty values never overwrite a previous stage. A netrc match replaces
        user and password together; no match keeps the previous values.
        Without ``interactive`` empty fields are returned as they are and the
        server rejects them at authentication time.
        """
        user = url_user or ""
        password = url_password or ""

        if option_user:
            user = option_user
        if option_password:
            password = option_password

        if netrc_enabled:
            parser = self.netrc_parser or NetrcParser()
            if parser.parse():
                pair = parser.find(target_host)
                if pair is not None:
                    user, password = pair
                    logger.debug(f"Using netrc credentials for {target_host}")
                else:
                    logger.debug(f"No netrc entry for {target_host}")

        if interactive:
            if not user:
                user = self.user_reader()
            if not password:
                password = self.password_reader(user)

        return ResolvedCredentials(user=user, password=password, ssl_trusted=trust_ssl)


class TextCredentials:
    """Credentials handed to the transport.

    Asks for the password again on the terminal when the server rejects it
    and the run is interactive.
    """

    def __init__(
        self,
        resolved: ResolvedCredentials,
        interactive: bool = True,
        password_reader: Callable[[str], str] = query_password,
    ):
        self.user = resolved.user
        self.password = resolved.password
        self.interactive = interactive
        self._ssl_trusted = resolved.ssl_trusted
        self._password_reader = password_reader

    @property
    def can_ask(self) -> bool:
        return self.interactive

    def ask_from_user(self) -> str:
        self.password = self._password_reader(self.user)
        return self.password

    def ssl_is_trusted(self) -> bool:
        return self._ssl_trusted

    def auth(self) -> Optional[httpx.BasicAuth]:
        """Basic auth for httpx, or None when no user is known."""
        if not self.user:
            return None
        return httpx.BasicAuth(self.user, self.password)
