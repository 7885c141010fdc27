"""
Sync coordinator.

Reconciles local state with the remote store by pushing the full
current contents of every collection as one bulk payload:

- Offline: skipped immediately, no network call
- Online: read every collection, POST once, report counts per kind
- At most one push in flight; concurrent calls join the running push
- Failures raise SyncError and never touch local data

Full-state push keeps the protocol idempotent: pushing the same state
twice is a pure overwrite keyed by the same ids.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from ..connectivity.monitor import ConnectivityMonitor
from ..exceptions import SyncError
from ..local.store import Document, LocalStore
from ..logging_utils import StoreLoggerAdapter
from ..schema import ARTICLES, BUSINESSES
from .client import RemoteEndpoint

logger = logging.getLogger(__name__)


class SyncState(Enum):
    """Current state of the sync coordinator."""

    IDLE = "idle"
    SYNCING = "syncing"
    OFFLINE = "offline"
    ERROR = "error"


class SyncStatus(Enum):
    """Outcome of a sync call that did not raise."""

    COMPLETED = "completed"
    SKIPPED = "skipped"


@dataclass
class SyncReport:
    """Result of a sync operation.

    Attributes:
        status: COMPLETED after a successful push, SKIPPED when offline
        counts: Number of documents pushed per kind
        acknowledgement: Parsed response body from the remote
        duration_ms: Wall time of the push
        completed_at: When the sync finished
        reason: Why the sync was skipped, if it was
    """

    status: SyncStatus
    counts: dict[str, int] = field(default_factory=dict)
    acknowledgement: Any = None
    duration_ms: int = 0
    completed_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.status == SyncStatus.SKIPPED

    @property
    def business_count(self) -> int:
        return self.counts.get(BUSINESSES, 0)

    @property
    def article_count(self) -> int:
        return self.counts.get(ARTICLES, 0)

    @classmethod
    def skip(cls, reason: str) -> SyncReport:
        return cls(status=SyncStatus.SKIPPED, reason=reason)


class SyncCoordinator:
    """Pushes the full local dataset to the remote store.

    The in-flight task reference is the only state shared across calls.
    It is set and cleared without an intervening await, so two callers
    can never both start a push.
    """

    def __init__(
        self,
        store: LocalStore,
        monitor: ConnectivityMonitor,
        remote: RemoteEndpoint | None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            store: Local store to read from
            monitor: Connectivity monitor consulted before every push
            remote: Remote endpoint; None makes every sync a skip
        """
        self.store = store
        self.monitor = monitor
        self.remote = remote

        self._in_flight: asyncio.Task[SyncReport] | None = None
        self._last_report: SyncReport | None = None
        self._last_error: SyncError | None = None
        self._last_synced_at: datetime | None = None
        self._log = StoreLoggerAdapter(logger, {"remote": repr(remote)})

    @property
    def is_syncing(self) -> bool:
        return self._in_flight is not None

    @property
    def state(self) -> SyncState:
        if self._in_flight is not None:
            return SyncState.SYNCING
        if not self.monitor.current():
            return SyncState.OFFLINE
        if self._last_error is not None:
            return SyncState.ERROR
        return SyncState.IDLE

    @property
    def last_report(self) -> SyncReport | None:
        return self._last_report

    @property
    def last_error(self) -> SyncError | None:
        return self._last_error

    @property
    def last_synced_at(self) -> datetime | None:
        return self._last_synced_at

    async def sync(self) -> SyncReport:
        """Push local state to the remote.

        Returns:
            A COMPLETED report with per-kind counts, or a SKIPPED report
            when offline or when no remote is configured

        Raises:
            SyncError: If the push failed
        """
        if not self.monitor.current():
            self._log.debug("Sync skipped: offline", extra={"reason": "offline"})
            return SyncReport.skip("offline")

        if self.remote is None:
            return SyncReport.skip("no remote endpoint configured")

        task = self._in_flight
        if task is None:
            task = asyncio.create_task(self._push())
            task.add_done_callback(_consume_exception)
            self._in_flight = task
        else:
            self._log.debug("Sync already in flight, joining it")

        return await asyncio.shield(task)

    async def _push(self) -> SyncReport:
        start = time.monotonic()
        try:
            payload, counts = await self._build_payload()
            self._log.info(f"Pushing {_format_counts(counts)}", extra={"counts": counts})

            try:
                acknowledgement = await self.remote.push(payload)  # type: ignore[union-attr]
            except SyncError:
                raise
            except Exception as e:
                raise SyncError(f"Sync failed: {e}", cause=e) from e

        except SyncError as e:
            self._last_error = e
            self._log.warning(f"Sync failed, local data kept: {e}")
            raise
        finally:
            self._in_flight = None

        report = SyncReport(
            status=SyncStatus.COMPLETED,
            counts=counts,
            acknowledgement=acknowledgement,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        self._last_report = report
        self._last_error = None
        self._last_synced_at = report.completed_at
        self._log.info(
            f"Sync completed in {report.duration_ms}ms",
            extra={"counts": counts, "duration_ms": report.duration_ms},
        )
        return report

    async def _build_payload(self) -> tuple[dict[str, list[Document]], dict[str, int]]:
        payload: dict[str, list[Document]] = {}
        for kind in self.store.registry.kinds():
            payload[kind] = await self.store.get_all(kind)
        counts = {kind: len(docs) for kind, docs in payload.items()}
        return payload, counts


def _consume_exception(task: asyncio.Task[Any]) -> None:
    # Mark the exception retrieved even if every awaiting caller was cancelled
    if not task.cancelled():
        task.exception()


def _format_counts(counts: dict[str, int]) -> str:
    return ", ".join(f"{count} {kind}" for kind, count in counts.items())
