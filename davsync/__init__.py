"""davsync - one-shot command line synchronization with a WebDAV server."""

__version__ = "1.0.0"

from .account import Account  # noqa: E402
from .credentials import (  # noqa: E402
    CredentialResolver,
    NetrcParser,
    ResolvedCredentials,
    TextCredentials,
)
from .excludes import ExcludeListLoader  # noqa: E402
from .exceptions import (  # noqa: E402
    DavAPIError,
    DavAuthenticationError,
    DavConflictError,
    DavInvalidResponseError,
    DavNetworkError,
    DavNotFoundError,
    DavPermissionError,
    DavSyncAccountError,
    DavSyncConfigError,
    DavSyncError,
    DavTransferError,
    ExcludeListUnavailable,
)
from .journal import SelectiveSyncListKind, SyncJournal  # noqa: E402
from .options import RunOptions, build_run_options  # noqa: E402
from .orchestrator import RetryState, RunResult, SyncRetryOrchestrator  # noqa: E402
from .proxy import ProxyConfigurator, ProxySettings, parse_proxy_string  # noqa: E402
from .selective_sync import SelectiveSyncReconciler  # noqa: E402

__all__ = [
    "__version__",
    "Account",
    "CredentialResolver",
    "NetrcParser",
    "ResolvedCredentials",
    "TextCredentials",
    "ExcludeListLoader",
    "DavAPIError",
    "DavAuthenticationError",
    "DavConflictError",
    "DavInvalidResponseError",
    "DavNetworkError",
    "DavNotFoundError",
    "DavPermissionError",
    "DavSyncAccountError",
    "DavSyncConfigError",
    "DavSyncError",
    "DavTransferError",
    "ExcludeListUnavailable",
    "SelectiveSyncListKind",
    "SyncJournal",
    "RunOptions",
    "build_run_options",
    "RetryState",
    "RunResult",
    "SyncRetryOrchestrator",
    "ProxyConfigurator",
    "ProxySettings",
    "parse_proxy_string",
    "SelectiveSyncReconciler",
]
