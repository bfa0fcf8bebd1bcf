"""Core sync engine package."""

from .hasher import ContentHasher, HasherStateError, BLOCK_SIZE, compute_content_hash, file_content_hash
from .state import Account, Mapping, SyncResult, CancelToken
from .local_storage import LocalStorage
from .reconciler import ListingReconciler, SyncError, MappingSyncError
from .watcher import ChangeWatcher
from .orchestrator import SyncOrchestrator, SyncState

__all__ = [
    "ContentHasher",
    "HasherStateError",
    "BLOCK_SIZE",
    "compute_content_hash",
    "file_content_hash",
    "Account",
    "Mapping",
    "SyncResult",
    "CancelToken",
    "LocalStorage",
    "ListingReconciler",
    "SyncError",
    "MappingSyncError",
    "ChangeWatcher",
    "SyncOrchestrator",
    "SyncState"
]
