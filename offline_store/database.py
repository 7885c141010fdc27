"""
Offline database facade.

The single object an application constructs at start-up and passes to
whatever needs the store. It wires the local store, live query engine,
connectivity monitor and sync coordinator together and applies the
sync trigger policy:

- After every successful insert, replace or delete, a background sync is
  scheduled when online (and auto_sync is enabled)
- An offline->online transition schedules a background sync
- Background sync failures are logged and recorded, never raised into
  the mutation that triggered them
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from .config import StoreConfig
from .connectivity import ConnectivityMonitor, ConnectivitySource, ProbeConnectivitySource
from .exceptions import SyncError, UnknownKindError
from .live import LiveQueryEngine, Predicate, SnapshotCallback, Subscription
from .local import Document, LocalStore
from .logging_utils import configure_structured_logging
from .schema import ARTICLES, BUSINESSES, SchemaRegistry
from .sync import RemoteEndpoint, RemoteSyncClient, SyncCoordinator, SyncReport, SyncState

logger = logging.getLogger(__name__)


def _as_document(record: Any) -> Mapping[str, Any]:
    if hasattr(record, "to_dict"):
        return record.to_dict()
    return record


class Collection:
    """Per-kind handle exposed to the presentation layer.

    Accepts plain dict documents or record models with ``to_dict()``.
    """

    def __init__(self, database: OfflineDatabase, kind: str) -> None:
        self._database = database
        self.kind = kind

    def __repr__(self) -> str:
        return f"Collection({self.kind!r})"

    async def insert(self, record: Any) -> Document:
        return await self._database.insert(self.kind, record)

    async def replace(self, record: Any) -> Document:
        return await self._database.replace(self.kind, record)

    async def delete(self, record_id: str) -> bool:
        return await self._database.delete(self.kind, record_id)

    async def get(self, record_id: str) -> Document | None:
        return await self._database.store.get(self.kind, record_id)

    async def get_all(self) -> list[Document]:
        return await self._database.store.get_all(self.kind)

    def subscribe(
        self,
        predicate: Predicate | None = None,
        callback: SnapshotCallback | None = None,
    ) -> Subscription:
        return self._database.engine.subscribe(self.kind, predicate, callback)


class OfflineDatabase:
    """Offline-first record store with live queries and remote sync.

    Example:
        >>> config = StoreConfig(data_dir=Path("/tmp/shop"), sync_endpoint="https://api.example.com/sync")
        >>> async with await OfflineDatabase.create(config) as db:
        ...     business = Business.create("Acme")
        ...     await db.businesses.insert(business)
        ...     sub = db.articles.subscribe(field_equals("business_id", business.id))
        ...     report = await db.sync()
    """

    def __init__(
        self,
        store: LocalStore,
        engine: LiveQueryEngine,
        monitor: ConnectivityMonitor,
        coordinator: SyncCoordinator,
        auto_sync: bool = True,
        probe: ProbeConnectivitySource | None = None,
    ) -> None:
        self.store = store
        self.engine = engine
        self.monitor = monitor
        self.coordinator = coordinator
        self.auto_sync = auto_sync

        self._probe = probe
        self._background: set[asyncio.Task[None]] = set()
        self._collections = {kind: Collection(self, kind) for kind in store.registry.kinds()}
        self._unsubscribe_connectivity = monitor.on_change(self._on_connectivity_change)

    @classmethod
    async def create(
        cls,
        config: StoreConfig | None = None,
        connectivity: ConnectivitySource | None = None,
        remote: RemoteEndpoint | None = None,
        registry: SchemaRegistry | None = None,
    ) -> OfflineDatabase:
        """Open the store and build every component.

        Args:
            config: Configuration (default: from environment)
            connectivity: Connectivity source (default: TCP probe from config)
            remote: Remote endpoint (default: HTTP client for config.sync_endpoint)
            registry: Schema registry (default: businesses + articles)

        Returns:
            An open OfflineDatabase
        """
        config = config or StoreConfig.from_environment()
        if config.structured_logging:
            configure_structured_logging(config.log_level)

        store = LocalStore(config.data_dir, registry)
        await store.open()

        probe = None
        if connectivity is None:
            probe = ProbeConnectivitySource(
                config.probe_host, config.probe_port, interval=config.probe_interval
            )
            await probe.start()
            connectivity = probe

        if remote is None and config.sync_enabled:
            remote = RemoteSyncClient(
                config.sync_endpoint,  # type: ignore[arg-type]
                timeout=config.sync_timeout,
                headers=config.sync_headers,
            )

        monitor = ConnectivityMonitor(connectivity)
        return cls(
            store=store,
            engine=LiveQueryEngine(store),
            monitor=monitor,
            coordinator=SyncCoordinator(store, monitor, remote),
            auto_sync=config.auto_sync,
            probe=probe,
        )

    async def __aenter__(self) -> OfflineDatabase:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # =========================================================================
    # Collections
    # =========================================================================

    def collection(self, kind: str) -> Collection:
        if kind not in self._collections:
            raise UnknownKindError(kind)
        return self._collections[kind]

    @property
    def businesses(self) -> Collection:
        return self.collection(BUSINESSES)

    @property
    def articles(self) -> Collection:
        return self.collection(ARTICLES)

    async def insert(self, kind: str, record: Any) -> Document:
        document = await self.store.insert(kind, _as_document(record))
        self._schedule_sync(f"insert {kind}/{document['id']}")
        return document

    async def replace(self, kind: str, record: Any) -> Document:
        document = await self.store.replace(kind, _as_document(record))
        self._schedule_sync(f"replace {kind}/{document['id']}")
        return document

    async def delete(self, kind: str, record_id: str) -> bool:
        removed = await self.store.delete(kind, record_id)
        if removed:
            self._schedule_sync(f"delete {kind}/{record_id}")
        return removed

    # =========================================================================
    # Sync
    # =========================================================================

    async def sync(self) -> SyncReport:
        """Push local state now. See SyncCoordinator.sync."""
        return await self.coordinator.sync()

    @property
    def is_online(self) -> bool:
        return self.monitor.current()

    @property
    def is_syncing(self) -> bool:
        return self.coordinator.is_syncing

    @property
    def sync_state(self) -> SyncState:
        return self.coordinator.state

    @property
    def last_sync_report(self) -> SyncReport | None:
        return self.coordinator.last_report

    @property
    def last_sync_error(self) -> SyncError | None:
        return self.coordinator.last_error

    async def wait_for_background_sync(self) -> None:
        """Wait for every background sync scheduled so far."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def _schedule_sync(self, reason: str) -> None:
        if not self.auto_sync or self.coordinator.remote is None:
            return
        if not self.monitor.current():
            logger.debug(f"Offline, not syncing after {reason}", extra={"reason": reason})
            return

        task = asyncio.create_task(self._background_sync(reason))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _background_sync(self, reason: str) -> None:
        try:
            await self.coordinator.sync()
        except SyncError as e:
            logger.info(
                f"Background sync after {reason} failed, will retry on next trigger: {e}",
                extra={"reason": reason},
            )
        except Exception:
            logger.exception(
                f"Unexpected error in background sync after {reason}", extra={"reason": reason}
            )

    def _on_connectivity_change(self, online: bool) -> None:
        if online:
            self._schedule_sync("reconnect")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def close(self) -> None:
        """Cancel subscriptions, finish background syncs and close the store."""
        self._unsubscribe_connectivity()
        await self.engine.close()
        await self.wait_for_background_sync()
        self.monitor.close()
        if self._probe is not None:
            await self._probe.stop()
        await self.store.close()
