"""Sync engine for davsync - discovery, comparison and propagation."""

from .comparator import FileComparator, SyncAction, SyncDecision
from .context import SyncContext, create_context
from .dav import DavClient, RemoteEntry
from .engine import SyncEngine, SyncProgressEvent, SyncProgressInfo
from .excludes import ExcludeRule, ExcludeRules
from .scanner import LocalItem, LocalScanner, RemoteScanner

__all__ = [
    "SyncEngine",
    "SyncProgressEvent",
    "SyncProgressInfo",
    "SyncContext",
    "create_context",
    "DavClient",
    "RemoteEntry",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "ExcludeRule",
    "ExcludeRules",
    "LocalItem",
    "LocalScanner",
    "RemoteScanner",
]
