"""
Remote synchronization.

Full-state push of every local collection to a remote HTTP endpoint.
"""

from .client import RemoteEndpoint, RemoteSyncClient
from .coordinator import SyncCoordinator, SyncReport, SyncState, SyncStatus

__all__ = [
    "RemoteEndpoint",
    "RemoteSyncClient",
    "SyncCoordinator",
    "SyncReport",
    "SyncState",
    "SyncStatus",
]
