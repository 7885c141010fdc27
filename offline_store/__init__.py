"""
Offline Store

Offline-first local record store with live queries and remote sync.

Provides:
- Durable per-kind collections (one atomic JSON file per kind)
- Schema validation before every write
- Live query subscriptions that emit fresh snapshots on every relevant change
- Connectivity tracking from an injected online/offline source
- Full-state push of local data to a remote HTTP endpoint

Usage:

    >>> from offline_store import Article, Business, OfflineDatabase, StoreConfig, field_equals
    >>> config = StoreConfig(sync_endpoint="https://api.example.com/sync")
    >>> async with await OfflineDatabase.create(config) as db:
    ...     acme = Business.create("Acme")
    ...     await db.businesses.insert(acme)
    ...     sub = db.articles.subscribe(field_equals("business_id", acme.id))
    ...     await db.articles.insert(Article.create("Widget", 5, 9.99, acme.id))
    ...     latest = await sub.get()
    ...     report = await db.sync()

Connectivity:

    # Host pushes online/offline events it already receives
    from offline_store.connectivity import ManualConnectivitySource

    # Or poll by opening a TCP connection
    from offline_store.connectivity import ProbeConnectivitySource
"""

from .config import StoreConfig
from .connectivity import (
    ConnectivityMonitor,
    ConnectivitySource,
    ManualConnectivitySource,
    ProbeConnectivitySource,
)
from .database import Collection, OfflineDatabase
from .exceptions import (
    ConflictError,
    OfflineStoreError,
    RecordNotFoundError,
    StorageIOError,
    StoreClosedError,
    SyncError,
    UnknownKindError,
    ValidationError,
)
from .live import LiveQueryEngine, Subscription, field_equals
from .local import ChangeEvent, ChangeOperation, LocalStore
from .models import Article, Business
from .schema import (
    ARTICLE_SCHEMA,
    ARTICLES,
    BUSINESS_SCHEMA,
    BUSINESSES,
    FieldSpec,
    FieldType,
    RecordSchema,
    SchemaRegistry,
    default_registry,
)
from .sync import RemoteSyncClient, SyncCoordinator, SyncReport, SyncState, SyncStatus

__version__ = "0.1.0"

__all__ = [
    # Facade
    "OfflineDatabase",
    "Collection",
    "StoreConfig",
    # Records and schemas
    "Business",
    "Article",
    "BUSINESSES",
    "ARTICLES",
    "BUSINESS_SCHEMA",
    "ARTICLE_SCHEMA",
    "FieldSpec",
    "FieldType",
    "RecordSchema",
    "SchemaRegistry",
    "default_registry",
    # Components
    "LocalStore",
    "ChangeEvent",
    "ChangeOperation",
    "LiveQueryEngine",
    "Subscription",
    "field_equals",
    "ConnectivityMonitor",
    "ConnectivitySource",
    "ManualConnectivitySource",
    "ProbeConnectivitySource",
    "SyncCoordinator",
    "RemoteSyncClient",
    "SyncReport",
    "SyncState",
    "SyncStatus",
    # Exceptions
    "OfflineStoreError",
    "ValidationError",
    "ConflictError",
    "RecordNotFoundError",
    "UnknownKindError",
    "StorageIOError",
    "StoreClosedError",
    "SyncError",
]
