"""WebDAV client used by the sync engine."""

from __future__ import annotations

import logging
import os
import random
import tempfile
import time
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from dataclasses import dataclass
from email.utils import formatdate, parsedate_to_datetime
from pathlib import Path
from typing import Any, Callable
from urllib.parse import quote, unquote, urlparse

import httpx

from ..credentials import TextCredentials
from ..exceptions import (
    DavAPIError,
    DavAuthenticationError,
    DavConflictError,
    DavInvalidResponseError,
    DavNetworkError,
    DavNotFoundError,
    DavPermissionError,
    DavTransferError,
)
from ..proxy import ProxySettings

logger = logging.getLogger(__name__)

DAV_NS = "DAV:"
PROPFIND_BODY = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<d:propfind xmlns:d="DAV:"><d:prop>'
    "<d:resourcetype/><d:getetag/><d:getlastmodified/><d:getcontentlength/>"
    "</d:prop></d:propfind>"
)
TRANSFER_CHUNK_SIZE = 64 * 1024

ProgressCallback = Callable[[int, int], None]


@dataclass
class RemoteEntry:
    """One item reported by the server."""

    path: str
    """Path relative to the sync root, forward slashes, no trailing slash"""

    is_dir: bool
    etag: str = ""
    mtime: float = 0.0
    size: int = 0


def _clean_etag(value: str | None) -> str:
    if not value:
        return ""
    value = value.strip()
    if value.startswith("W/"):
        value = value[2:]
    return value.strip('"')


def _parse_http_date(value: str | None) -> float:
    if not value:
        return 0.0
    try:
        return parsedate_to_datetime(value).timestamp()
    except (TypeError, ValueError):
        return 0.0


class DavClient:
    """Client for the WebDAV folder that is being synchronized.

    All paths passed to the public methods are relative to ``base_url``.
    """

    def __init__(
        self,
        base_url: str,
        credentials: TextCredentials,
        proxy: ProxySettings | None = None,
        verify: bool = True,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: URL of the remote sync folder, ending with ``/``
            credentials: Credentials used for basic auth
            proxy: Proxy settings (default: ambient discovery)
            verify: Verify the server's TLS certificate
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            transport: Custom httpx transport
        """
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.credentials = credentials
        self.proxy = proxy or ProxySettings()
        self.verify = verify
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.transport = transport
        self._base_path = unquote(urlparse(self.base_url).path)
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                auth=self.credentials.auth(),
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                verify=self.verify,
                transport=self.transport,
                **self.proxy.client_kwargs(),
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def _url(self, path: str) -> str:
        return self.base_url + quote(path.lstrip("/"))

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Exponential backoff with +/- 25% jitter."""
        base_delay = self.retry_delay * (2**attempt)
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, attempt: int
    ) -> tuple[DavAPIError, bool]:
        """Map an HTTP error onto our exceptions.

        Returns:
            Tuple of (exception to raise, should_retry)
        """
        status_code = e.response.status_code
        url = e.request.url

        if status_code == 401:
            return DavAuthenticationError(
                "Authentication failed - check user name and password", 401
            ), False
        if status_code == 403:
            return DavPermissionError(f"Access forbidden: {url}", 403), False
        if status_code == 404:
            return DavNotFoundError(f"Not found: {url}", 404), False
        if status_code == 409:
            return DavConflictError(f"Conflict: {url}", 409), False

        error = DavAPIError(
            f"Request failed with status {status_code}: {url}", status_code
        )
        should_retry = 500 <= status_code < 600 and attempt < self.max_retries
        return error, should_retry

    def _request(
        self,
        method: str,
        path: str,
        stream: bool = False,
        content_factory: Callable[[], Any] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request with retry logic.

        Network errors and 5xx responses are retried with backoff. A 401 asks
        the credentials for a new password once, if they can.

        Args:
            method: HTTP method
            path: Path relative to the sync folder
            stream: Return an unread streaming response
            content_factory: Creates the request body, once per attempt
            **kwargs: Additional arguments passed to httpx

        Raises:
            DavAPIError: If the request fails after all retries
        """
        url = self._url(path)
        client = self._get_client()
        asked_password = False
        attempt = 0

        while True:
            if content_factory is not None:
                kwargs["content"] = content_factory()
            request = client.build_request(method, url, **kwargs)
            try:
                response = client.send(request, stream=stream)
                try:
                    response.raise_for_status()
                except httpx.HTTPStatusError:
                    response.close()
                    raise
                return response
            except httpx.HTTPStatusError as e:
                if (
                    e.response.status_code == 401
                    and not asked_password
                    and self.credentials.can_ask
                ):
                    asked_password = True
                    self.credentials.ask_from_user()
                    client.auth = self.credentials.auth()
                    continue
                error, should_retry = self._handle_http_error(e, attempt)
                if not should_retry:
                    raise error from e
                logger.debug(f"{method} {url} failed ({error}), retrying")
            except httpx.RequestError as e:
                if attempt >= self.max_retries:
                    raise DavNetworkError(f"Network error: {e}") from e
                logger.debug(f"{method} {url} network error ({e}), retrying")

            time.sleep(self._calculate_retry_delay(attempt))
            attempt += 1

    # =========================
    # Discovery
    # =========================

    def _parse_multistatus(self, content: bytes) -> list[RemoteEntry]:
        try:
            root = ET.fromstring(content)
        except ET.ParseError as e:
            raise DavInvalidResponseError(f"Invalid PROPFIND response: {e}") from e

        entries = []
        for response in root.iter(f"{{{DAV_NS}}}response"):
            href = response.findtext(f"{{{DAV_NS}}}href")
            if href is None:
                continue
            href_path = unquote(urlparse(href).path)
            if not href_path.startswith(self._base_path.rstrip("/")):
                logger.debug(f"Ignoring entry outside sync folder: {href_path}")
                continue
            relative = href_path[len(self._base_path) :].strip("/")

            props = None
            for propstat in response.iter(f"{{{DAV_NS}}}propstat"):
                status = propstat.findtext(f"{{{DAV_NS}}}status", "")
                if " 200 " in f"{status} ":
                    props = propstat.find(f"{{{DAV_NS}}}prop")
                    break
            if props is None:
                continue

            resourcetype = props.find(f"{{{DAV_NS}}}resourcetype")
            is_dir = (
                resourcetype is not None
                and resourcetype.find(f"{{{DAV_NS}}}collection") is not None
            )
            size_text = props.findtext(f"{{{DAV_NS}}}getcontentlength") or "0"
            entries.append(
                RemoteEntry(
                    path=relative,
                    is_dir=is_dir,
                    etag=_clean_etag(props.findtext(f"{{{DAV_NS}}}getetag")),
                    mtime=_parse_http_date(
                        props.findtext(f"{{{DAV_NS}}}getlastmodified")
                    ),
                    size=int(size_text) if size_text.isdigit() else 0,
                )
            )
        return entries

    def propfind(self, path: str = "", depth: int = 1) -> list[RemoteEntry]:
        """Run a PROPFIND and return all entries (including ``path`` itself)."""
        url_path = path.strip("/")
        if url_path:
            url_path += "/"
        response = self._request(
            "PROPFIND",
            url_path,
            content=PROPFIND_BODY.encode("utf-8"),
            headers={"Depth": str(depth), "Content-Type": "application/xml"},
        )
        return self._parse_multistatus(response.content)

    def list_folder(self, path: str = "") -> tuple[RemoteEntry, list[RemoteEntry]]:
        """List a remote folder.

        Returns:
            Tuple of (the folder itself, its direct children)
        """
        target = path.strip("/")
        folder = None
        children = []
        for entry in self.propfind(target, depth=1):
            if entry.path == target:
                folder = entry
            else:
                children.append(entry)
        if folder is None:
            raise DavInvalidResponseError(f"PROPFIND response lacks {target or '/'}")
        return folder, children

    def stat(self, path: str) -> RemoteEntry:
        target = path.strip("/")
        response = self._request(
            "PROPFIND",
            target,
            content=PROPFIND_BODY.encode("utf-8"),
            headers={"Depth": "0", "Content-Type": "application/xml"},
        )
        for entry in self._parse_multistatus(response.content):
            if entry.path == target:
                return entry
        raise DavInvalidResponseError(f"PROPFIND response lacks {target}")

    # =========================
    # Propagation
    # =========================

    def download(
        self,
        path: str,
        output_path: Path,
        progress_callback: ProgressCallback | None = None,
    ) -> str:
        """Download a file, replacing ``output_path`` atomically.

        Returns:
            ETag reported by the server (may be empty)

        Raises:
            DavTransferError: If the local file cannot be written
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)
        response = self._request("GET", path, stream=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{output_path.name}.", suffix=".part", dir=output_path.parent
        )
        try:
            total_size = int(response.headers.get("Content-Length", 0))
            bytes_downloaded = 0
            with os.fdopen(fd, "wb") as f:
                for chunk in response.iter_bytes(chunk_size=TRANSFER_CHUNK_SIZE):
                    f.write(chunk)
                    bytes_downloaded += len(chunk)
                    if progress_callback:
                        progress_callback(bytes_downloaded, total_size)
            os.replace(tmp_name, output_path)
        except httpx.RequestError as e:
            os.unlink(tmp_name)
            raise DavNetworkError(f"Network error during download: {e}") from e
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise DavTransferError(f"Failed to write {output_path}: {e}") from e
        finally:
            response.close()
        return _clean_etag(
            response.headers.get("OC-ETag") or response.headers.get("ETag")
        )

    def upload(
        self,
        path: str,
        file_path: Path,
        mtime: float,
        if_match: str | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> str:
        """Upload a file with PUT.

        Args:
            path: Remote path relative to the sync folder
            file_path: Local file
            mtime: Modification time to keep on the server
            if_match: Only overwrite if the remote ETag still matches
            progress_callback: Optional callback(bytes_uploaded, total_bytes)

        Returns:
            ETag of the uploaded file
        """
        total_size = file_path.stat().st_size

        def read_chunks() -> Iterator[bytes]:
            uploaded = 0
            with open(file_path, "rb") as f:
                while chunk := f.read(TRANSFER_CHUNK_SIZE):
                    uploaded += len(chunk)
                    if progress_callback:
                        progress_callback(uploaded, total_size)
                    yield chunk

        headers = {
            "Content-Length": str(total_size),
            "X-OC-Mtime": str(int(mtime)),
            "Last-Modified": formatdate(mtime, usegmt=True),
        }
        if if_match:
            headers["If-Match"] = f'"{if_match}"'

        response = self._request(
            "PUT", path, content_factory=read_chunks, headers=headers
        )
        etag = _clean_etag(
            response.headers.get("OC-ETag") or response.headers.get("ETag")
        )
        if not etag:
            etag = self.stat(path).etag
        return etag

    def mkcol(self, path: str) -> str:
        """Create a remote folder; an existing folder is not an error.

        Returns:
            ETag of the folder
        """
        try:
            self._request("MKCOL", path)
        except DavAPIError as e:
            if e.status_code != 405:
                raise
            logger.debug(f"Remote folder already exists: {path}")
        return self.stat(path).etag

    def delete(self, path: str) -> None:
        try:
            self._request("DELETE", path)
        except DavNotFoundError:
            logger.debug(f"Remote item already gone: {path}")
