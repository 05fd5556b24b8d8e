"""Server account derived from the target URL."""

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from .credentials import TextCredentials
from .exceptions import DavSyncAccountError
from .proxy import ProxySettings

logger = logging.getLogger(__name__)


class Account:
    """A server, its WebDAV path, and the credentials to talk to it.

    ``url`` is the server root (no credentials, no dav path); ``folder`` is
    the remote folder below the dav path that is synchronized.
    """

    def __init__(
        self,
        url: str,
        dav_path: str,
        folder: str = "",
        credentials: Optional[TextCredentials] = None,
        url_user: str = "",
        url_password: str = "",
    ):
        self.url = url if url.endswith("/") else url + "/"
        self.dav_path = dav_path
        self.folder = folder.strip("/")
        self.credentials = credentials
        self.url_user = url_user
        self.url_password = url_password

    @classmethod
    def from_target_url(cls, target_url: str, dav_path: str) -> "Account":
        """Split ``target_url`` into server root and remote folder.

        Args:
            target_url: Normalized target URL containing ``dav_path``
            dav_path: WebDAV path, e.g. ``remote.php/webdav/``

        Raises:
            DavSyncAccountError: If the URL cannot be parsed
        """
        if "://" not in target_url:
            target_url = "http://" + target_url
        try:
            url = httpx.URL(target_url)
        except httpx.InvalidURL as e:
            raise DavSyncAccountError(f"Invalid server URL {target_url}: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise DavSyncAccountError(f"Invalid server URL: {target_url}")

        path = url.path
        index = path.find(dav_path)
        if index < 0:
            raise DavSyncAccountError(
                f"Server URL {target_url} does not contain {dav_path}"
            )
        base_path = path[:index]
        folder = path[index + len(dav_path) :]
        netloc = url.netloc.decode("ascii")

        return cls(
            url=f"{url.scheme}://{netloc}{quote(base_path)}",
            dav_path=dav_path,
            folder=folder,
            url_user=url.username,
            url_password=url.password,
        )

    @property
    def host(self) -> str:
        return httpx.URL(self.url).host

    @property
    def dav_url(self) -> str:
        return self.url + quote(self.dav_path)

    @property
    def remote_root_url(self) -> str:
        """URL of the synchronized folder, ending with ``/``."""
        if not self.folder:
            return self.dav_url
        return self.dav_url + quote(self.folder) + "/"

    @property
    def verify_ssl(self) -> bool:
        if self.credentials is None:
            return True
        return not self.credentials.ssl_is_trusted()

    def set_credentials(self, credentials: TextCredentials) -> None:
        self.credentials = credentials

    def create_client(self, proxy: Optional[ProxySettings] = None, **kwargs):
        """Create a :class:`~davsync.sync.dav.DavClient` for the sync folder."""
        from .sync.dav import DavClient

        if self.credentials is None:
            raise DavSyncAccountError("Account has no credentials")
        return DavClient(
            base_url=self.remote_root_url,
            credentials=self.credentials,
            proxy=proxy,
            verify=self.verify_ssl,
            **kwargs,
        )
