"""Exception hierarchy for davsync."""


class DavSyncError(Exception):
    """Base exception for all davsync errors."""


class DavSyncConfigError(DavSyncError):
    """Invalid run configuration (source directory, target URL, ...)."""


class ExcludeListUnavailable(DavSyncError):
    """None of the configured exclude lists could be loaded."""


class DavSyncAccountError(DavSyncError):
    """The account could not be initialized from the target URL."""


class DavAPIError(DavSyncError):
    """Base exception for WebDAV request failures."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class DavAuthenticationError(DavAPIError):
    """Server rejected the credentials."""


class DavPermissionError(DavAPIError):
    """Server refused access to a resource."""


class DavNotFoundError(DavAPIError):
    """Resource does not exist on the server."""


class DavConflictError(DavAPIError):
    """Server reported a conflict (e.g. missing parent collection)."""


class DavNetworkError(DavAPIError):
    """Connection level failure."""


class DavTransferError(DavAPIError):
    """Upload or download of a file failed."""


class DavInvalidResponseError(DavAPIError):
    """Server returned a response that could not be parsed."""
